from __future__ import annotations

from contextlib import contextmanager
from datetime import date, datetime, timedelta, timezone
import json
import os
import tempfile
import unittest
from uuid import UUID, uuid4

os.environ.setdefault("JWT_SECRET", "liftcycle-test-secret")

from fastapi.testclient import TestClient

from liftcycle.db.models import (
    Cycle,
    DailyLookup,
    Day,
    DayPrescription,
    Lift,
    Prescription,
    Program,
    ProgramProgression,
    Progression,
    Week,
    WeekDay,
    WeeklyLookup,
)
from liftcycle.db.models.enums import MaxType
from liftcycle.db.session import Base, build_engine, build_sessionmaker, get_db
from liftcycle.main import app
from liftcycle.services.lift_maxes import record_max

# Monday, Wednesday, Friday, then the rest of the week.
DEFAULT_DAYS_OF_WEEK = (1, 3, 5, 2, 4, 6, 7)


class BackendTestBase(unittest.TestCase):
    def setUp(self):
        print(f"\n[TEST] running test for {self._testMethodName}\n")
        fd, self.db_path = tempfile.mkstemp(prefix="liftcycle-test-", suffix=".db")
        os.close(fd)
        self.engine = build_engine(f"sqlite:///{self.db_path}")
        Base.metadata.create_all(self.engine)
        self.SessionLocal = build_sessionmaker(self.engine)

        def override_get_db():
            db = self.SessionLocal()
            try:
                yield db
            finally:
                db.close()

        app.dependency_overrides[get_db] = override_get_db
        self.client = TestClient(app)

    def tearDown(self):
        app.dependency_overrides.pop(get_db, None)
        self.client.close()
        self.engine.dispose()
        if os.path.exists(self.db_path):
            os.remove(self.db_path)
        print("\n")

    def _info(self, text: str):
        print(f"[INFO] {text}\n")

    def _fmt(self, value):
        if isinstance(value, (dict, list)):
            return json.dumps(value, indent=2, sort_keys=True, default=str)
        return str(value)

    def _pass(self, expected: str, received, expected_payload=None, received_payload=None):
        print("[PASS]")
        print(f"Expected: {expected}")
        print(f"Received: {received}")
        if expected_payload is not None:
            print("Expected Sample Payload:")
            print(self._fmt(expected_payload))
        if received_payload is not None:
            print("Received Payload:")
            print(self._fmt(received_payload))

    def _fail_with(self, expected: str, received):
        print("[FAIL]")
        print(f"Expected: {expected}")
        print(f"Received: {received}")
        self.fail(f"Expected: {expected} | Received: {received}")

    def _request(
        self,
        method: str,
        path: str,
        payload: dict | None = None,
        token: str | None = None,
        params: dict | None = None,
        headers: dict | None = None,
        client: TestClient | None = None,
    ) -> tuple[int, dict | list]:
        request_headers = dict(headers or {})
        if token is not None:
            request_headers["Authorization"] = f"Bearer {token}"
        response = (client or self.client).request(
            method,
            path,
            json=payload,
            params=params,
            headers=request_headers,
        )
        if not response.content:
            return response.status_code, {}
        try:
            return response.status_code, response.json()
        except ValueError:
            return response.status_code, {"raw": response.text}

    @contextmanager
    def _db(self):
        db = self.SessionLocal()
        try:
            yield db
        finally:
            db.close()

    def _email(self, prefix: str) -> str:
        return f"{prefix}.{uuid4().hex[:12]}@example.com"

    def _password(self) -> str:
        return f"LiftTest!{uuid4().hex[:10]}"

    def _signup(self, email: str | None = None, password: str | None = None) -> tuple[str, str, str]:
        email = email or self._email("qa")
        password = password or self._password()
        status, body = self._request(
            "POST",
            "/v1/auth/signup",
            payload={
                "email": email,
                "name": "QA User",
                "password": password,
                "weight_unit": "LB",
            },
        )
        if status != 201:
            self._fail_with("201 from signup", {"status": status, "body": body})
        return email, password, body["access_token"]

    def _me(self, token: str) -> dict:
        status, body = self._request("GET", "/v1/auth/me", token=token)
        if status != 200:
            self._fail_with("200 from /v1/auth/me", {"status": status, "body": body})
        return body

    def _user(self) -> tuple[str, int]:
        _, _, token = self._signup()
        return token, self._me(token)["user_id"]

    def _create_lift(self, name: str = "Squat") -> UUID:
        with self._db() as db:
            lift = Lift(name=name, slug=f"{name.lower().replace(' ', '-')}-{uuid4().hex[:8]}")
            db.add(lift)
            db.commit()
            return lift.id

    def _create_program(
        self,
        days: list[list[dict]],
        *,
        length_weeks: int = 1,
        rounding_increment: float | None = None,
        weekly_entries: dict | None = None,
        daily_entries: dict | None = None,
        variants: dict[int, list[str | None]] | None = None,
        days_of_week: tuple[int, ...] = DEFAULT_DAYS_OF_WEEK,
    ) -> dict:
        """Seed a program whose every week runs ``days`` in order.

        Each prescription dict takes ``lift_id``, ``load_strategy``,
        ``set_scheme`` and optionally ``rest_seconds``/``notes``. Week days are
        inserted in reverse so tests exercise canonical ordering.
        """
        with self._db() as db:
            cycle = Cycle(name=f"Cycle {uuid4().hex[:6]}", length_weeks=length_weeks)
            db.add(cycle)
            db.flush()

            weekly = None
            if weekly_entries is not None:
                weekly = WeeklyLookup(name="weekly", entries=weekly_entries)
                db.add(weekly)
            daily = None
            if daily_entries is not None:
                daily = DailyLookup(name="daily", entries=daily_entries)
                db.add(daily)
            db.flush()

            program = Program(
                name="Test Program",
                slug=f"program-{uuid4().hex[:10]}",
                cycle_id=cycle.id,
                weekly_lookup_id=weekly.id if weekly else None,
                daily_lookup_id=daily.id if daily else None,
                rounding_increment=rounding_increment,
                days_per_week=len(days),
            )
            db.add(program)
            db.flush()

            day_ids: list[UUID] = []
            prescription_ids: list[list[UUID]] = []
            for index, items in enumerate(days):
                day = Day(name=f"Day {index + 1}", slug=f"day-{index + 1}", program_id=program.id)
                db.add(day)
                db.flush()
                day_ids.append(day.id)
                ids = []
                for position, item in enumerate(items):
                    prescription = Prescription(
                        lift_id=item["lift_id"],
                        load_strategy=item["load_strategy"],
                        set_scheme=item["set_scheme"],
                        rest_seconds=item.get("rest_seconds"),
                        notes=item.get("notes"),
                    )
                    db.add(prescription)
                    db.flush()
                    db.add(DayPrescription(day_id=day.id, prescription_id=prescription.id, position=position))
                    ids.append(prescription.id)
                prescription_ids.append(ids)

            week_ids: dict[tuple[int, str | None], UUID] = {}
            for week_number in range(1, length_weeks + 1):
                for variant in (variants or {}).get(week_number, [None]):
                    week = Week(cycle_id=cycle.id, week_number=week_number, variant=variant)
                    db.add(week)
                    db.flush()
                    week_ids[(week_number, variant)] = week.id
                    for index in reversed(range(len(day_ids))):
                        db.add(WeekDay(week_id=week.id, day_id=day_ids[index], day_of_week=days_of_week[index]))
            db.commit()

            return {
                "program_id": program.id,
                "cycle_id": cycle.id,
                "day_ids": day_ids,
                "prescription_ids": prescription_ids,
                "week_ids": week_ids,
            }

    def _record_max(
        self,
        user_id: int,
        lift_id: UUID,
        value: float,
        max_type: MaxType = MaxType.TRAINING_MAX,
        effective_date: date | None = None,
    ) -> None:
        with self._db() as db:
            record_max(
                db,
                user_id=user_id,
                lift_id=lift_id,
                max_type=max_type,
                value=value,
                effective_date=effective_date or date(2026, 1, 5),
            )
            db.commit()

    def _bind_progression(
        self,
        program_id: UUID,
        progression_type: str,
        parameters: dict,
        *,
        lift_id: UUID | None = None,
        priority: int = 0,
        override_increment: float | None = None,
        enabled: bool = True,
        name: str | None = None,
    ) -> UUID:
        with self._db() as db:
            progression = Progression(
                name=name or progression_type.lower(),
                progression_type=progression_type,
                parameters=parameters,
            )
            db.add(progression)
            db.flush()
            db.add(
                ProgramProgression(
                    program_id=program_id,
                    progression_id=progression.id,
                    lift_id=lift_id,
                    priority=priority,
                    override_increment=override_increment,
                    enabled=enabled,
                )
            )
            db.commit()
            return progression.id

    def _enroll(self, token: str, program_id: UUID) -> dict:
        status, body = self._request("POST", "/v1/enrollment", payload={"program_id": str(program_id)}, token=token)
        if status != 201:
            self._fail_with("201 from enrollment", {"status": status, "body": body})
        return body

    def _start_session(self, token: str) -> dict:
        status, body = self._request("POST", "/v1/sessions", token=token)
        if status != 201:
            self._fail_with("201 from session start", {"status": status, "body": body})
        return body

    def _log_set(self, token: str, session_id: str, **fields) -> dict:
        payload = {key: str(value) if isinstance(value, UUID) else value for key, value in fields.items()}
        status, body = self._request("POST", f"/v1/sessions/{session_id}/sets", payload=payload, token=token)
        if status != 201:
            self._fail_with("201 from set logging", {"status": status, "body": body})
        return body

    def _complete(self, token: str, session_id: str, finished_at: str | None = None) -> dict:
        payload = {"finished_at": finished_at} if finished_at else None
        status, body = self._request("POST", f"/v1/sessions/{session_id}/complete", payload=payload, token=token)
        if status != 200:
            self._fail_with("200 from session complete", {"status": status, "body": body})
        return body


def percent_of_max(percent: float, **extra) -> dict:
    return {"type": "PERCENT_OF_MAX", "percent": percent, **extra}


def fixed_sets(sets: int, reps: int) -> dict:
    return {"type": "FIXED", "sets": sets, "reps": reps}


def finish_at(days: int) -> str:
    """ISO timestamp ``days`` from now, after any session the test started."""
    return (datetime.now(timezone.utc) + timedelta(days=days)).isoformat()
