from pydantic import BaseModel, EmailStr, Field

from liftcycle.db.models.enums import WeightUnit


class SignupRequest(BaseModel):
    email: EmailStr
    name: str = Field(min_length=1, max_length=120)
    password: str = Field(min_length=8)
    weight_unit: WeightUnit = WeightUnit.LB


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=8)


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"


class MeResponse(BaseModel):
    user_id: int
    email: EmailStr
    name: str
    weight_unit: WeightUnit
