from __future__ import annotations

from typing import Any, ClassVar, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, ValidationError

from liftcycle.core.errors import InvalidConfiguration


class VersionedConfig(BaseModel):
    """Base for type-discriminated configuration blobs stored as JSON.

    Subclasses pin ``type`` with a ``Literal`` default and list the blob
    versions they can decode in ``supported_versions``.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    type: str
    version: int = 1

    supported_versions: ClassVar[frozenset[int]] = frozenset({1})

    def to_blob(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


ConfigT = TypeVar("ConfigT", bound=VersionedConfig)


class ConfigRegistry(Generic[ConfigT]):
    def __init__(self, kind: str):
        self.kind = kind
        self._types: dict[str, type[ConfigT]] = {}

    def register(self, cls: type[ConfigT]) -> type[ConfigT]:
        discriminator = cls.model_fields["type"].default
        if not isinstance(discriminator, str):
            raise TypeError(f"{cls.__name__} must declare a default for its type field")
        if discriminator in self._types:
            raise TypeError(f"{self.kind} type {discriminator!r} is already registered")
        self._types[discriminator] = cls
        return cls

    def types(self) -> list[str]:
        return sorted(self._types)

    def parse(self, blob: Any) -> ConfigT:
        if isinstance(blob, VersionedConfig):
            blob = blob.to_blob()
        if not isinstance(blob, dict):
            raise InvalidConfiguration(f"{self.kind} config must be an object")

        discriminator = blob.get("type")
        cls = self._types.get(discriminator)
        if cls is None:
            raise InvalidConfiguration(f"Unknown {self.kind} type: {discriminator!r}")

        version = blob.get("version", 1)
        if version not in cls.supported_versions:
            raise InvalidConfiguration(f"Unsupported {self.kind} version for {discriminator}: {version!r}")

        try:
            return cls.model_validate(blob)
        except ValidationError as exc:
            raise InvalidConfiguration(f"Invalid {self.kind} config for {discriminator}: {exc}") from None
