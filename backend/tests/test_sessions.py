from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, as_completed
from uuid import uuid4

from fastapi.testclient import TestClient
from sqlalchemy import func, select

from liftcycle.db.models.enums import SessionStatus
from liftcycle.db.models.workout_session import WorkoutSession
from liftcycle.main import app
from tests.base import BackendTestBase, finish_at, fixed_sets, percent_of_max


class SessionLifecycleTests(BackendTestBase):
    def setUp(self):
        super().setUp()
        self.token, self.user_id = self._user()
        self.squat = self._create_lift("Squat")
        self.bench = self._create_lift("Bench Press")
        self.program = self._create_program(
            [
                [{"lift_id": self.squat, "load_strategy": percent_of_max(0.8), "set_scheme": fixed_sets(3, 5)}],
                [
                    {
                        "lift_id": self.bench,
                        "load_strategy": {"type": "FIXED_WEIGHT", "weight": 100},
                        "set_scheme": {"type": "AMRAP", "sets_before": 1, "working_reps": 8},
                    }
                ],
            ],
            rounding_increment=5.0,
        )
        self._record_max(self.user_id, self.squat, 300.0)
        self._enroll(self.token, self.program["program_id"])

    def test_start_log_next_set_and_complete(self):
        self._info("Checks a session walks its prescription set by set and completion advances the enrollment.")
        session = self._start_session(self.token)
        self.assertEqual(session["status"], "IN_PROGRESS")
        self.assertEqual(session["day_id"], str(self.program["day_ids"][0]))
        self.assertEqual((session["week_number"], session["cycle_iteration"], session["day_index"]), (1, 1, 0))

        prescription_id = str(self.program["prescription_ids"][0][0])
        status, upcoming = self._request(
            "GET",
            f"/v1/sessions/{session['id']}/next-set",
            token=self.token,
            params={"prescription_id": prescription_id},
        )
        self.assertEqual(status, 200, upcoming)
        self.assertEqual(upcoming["performed_sets"], 0)
        self.assertEqual(upcoming["next_set"]["set_number"], 1)
        self.assertEqual(upcoming["next_set"]["weight"], 240.0)
        self.assertEqual(upcoming["next_set"]["target_reps"], 5)

        for set_number in (1, 2, 3):
            logged = self._log_set(
                self.token,
                session["id"],
                lift_id=self.squat,
                prescription_id=prescription_id,
                weight=240,
                target_reps=5,
                reps_performed=5,
            )
            self.assertEqual(logged["set_number"], set_number)

        status, done = self._request(
            "GET",
            f"/v1/sessions/{session['id']}/next-set",
            token=self.token,
            params={"prescription_id": prescription_id},
        )
        self.assertEqual(status, 200, done)
        self.assertTrue(done["complete"])
        self.assertIsNone(done["next_set"])

        status_detail, detail = self._request("GET", f"/v1/sessions/{session['id']}", token=self.token)
        self.assertEqual(status_detail, 200, detail)
        self.assertEqual(len(detail["sets"]), 3)

        completed = self._complete(self.token, session["id"])
        self.assertEqual(completed["session"]["status"], "COMPLETED")
        self.assertIsNotNone(completed["session"]["finished_at"])
        self.assertEqual(completed["next_position"], {"week": 1, "cycle_iteration": 1, "day_index": 1})

        status_enrollment, enrollment = self._request("GET", "/v1/enrollment", token=self.token)
        self.assertEqual(status_enrollment, 200, enrollment)
        self.assertEqual(enrollment["current_day_index"], 1)

        second = self._start_session(self.token)
        self.assertEqual(second["day_id"], str(self.program["day_ids"][1]))
        finished = self._complete(self.token, second["id"])
        self.assertEqual(finished["next_position"], {"week": 1, "cycle_iteration": 2, "day_index": 0})
        self._pass(
            "day 1 -> day 2 -> next iteration",
            finished["next_position"],
            expected_payload={"week": 1, "cycle_iteration": 2, "day_index": 0},
            received_payload=finished,
        )

    def test_second_start_is_rejected_while_one_is_open(self):
        first = self._start_session(self.token)
        status, body = self._request("POST", "/v1/sessions", token=self.token)
        self.assertEqual(status, 409, body)
        self.assertEqual(body["detail"], "A session is already in progress")

        self._complete(self.token, first["id"])
        self._start_session(self.token)
        self._pass("409 while open, 201 after completion", status)

    def test_concurrent_starts_create_one_session(self):
        self._info("Checks racing session starts for one enrollment produce exactly one IN_PROGRESS row.")
        attempts = 8

        def post_once(_i: int) -> int:
            with TestClient(app) as client:
                status, _ = self._request("POST", "/v1/sessions", token=self.token, client=client)
                return status

        statuses = []
        with ThreadPoolExecutor(max_workers=attempts) as ex:
            futures = [ex.submit(post_once, i) for i in range(attempts)]
            for f in as_completed(futures):
                statuses.append(f.result())

        self.assertEqual(statuses.count(201), 1, statuses)
        self.assertEqual(statuses.count(409), attempts - 1, statuses)

        with self._db() as db:
            count = db.execute(
                select(func.count(WorkoutSession.id)).where(
                    WorkoutSession.user_id == self.user_id,
                    WorkoutSession.status == SessionStatus.IN_PROGRESS,
                )
            ).scalar_one()
        self.assertEqual(count, 1)
        self._pass(
            "one 201, the rest 409, one open row",
            {"ok_201": statuses.count(201), "rows": count},
            expected_payload={"ok_201": 1, "conflict_409": attempts - 1, "rows": 1},
            received_payload={"ok_201": statuses.count(201), "conflict_409": statuses.count(409), "rows": count},
        )

    def test_terminal_states_reject_transitions(self):
        self._info("Checks COMPLETED and ABANDONED are terminal.")
        session = self._start_session(self.token)
        status, abandoned = self._request("POST", f"/v1/sessions/{session['id']}/abandon", token=self.token)
        self.assertEqual(status, 200, abandoned)
        self.assertEqual(abandoned["status"], "ABANDONED")

        status_enrollment, enrollment = self._request("GET", "/v1/enrollment", token=self.token)
        self.assertEqual(status_enrollment, 200)
        self.assertEqual(enrollment["current_day_index"], 0)

        results = {
            "complete": self._request("POST", f"/v1/sessions/{session['id']}/complete", token=self.token)[0],
            "abandon": self._request("POST", f"/v1/sessions/{session['id']}/abandon", token=self.token)[0],
            "log_set": self._request(
                "POST",
                f"/v1/sessions/{session['id']}/sets",
                payload={"lift_id": str(self.squat), "weight": 240, "reps_performed": 5},
                token=self.token,
            )[0],
            "retrigger": self._request("POST", f"/v1/sessions/{session['id']}/progressions", token=self.token)[0],
        }
        self.assertEqual(results, {"complete": 409, "abandon": 409, "log_set": 409, "retrigger": 409})

        completed = self._start_session(self.token)
        self._complete(self.token, completed["id"])
        again = self._request("POST", f"/v1/sessions/{completed['id']}/complete", token=self.token)[0]
        self.assertEqual(again, 409)
        self._pass("409 for every move out of a terminal state", results)

    def test_sessions_are_scoped_to_their_owner(self):
        session = self._start_session(self.token)
        other_token, _ = self._user()
        status, body = self._request("GET", f"/v1/sessions/{session['id']}", token=other_token)
        self.assertEqual(status, 404, body)
        status_complete, _ = self._request("POST", f"/v1/sessions/{session['id']}/complete", token=other_token)
        self.assertEqual(status_complete, 404)
        self._pass("404 for another user's session", status)

    def test_next_set_without_max_is_a_conflict(self):
        program = self._create_program(
            [[{"lift_id": self.bench, "load_strategy": percent_of_max(0.7), "set_scheme": fixed_sets(3, 5)}]]
        )
        token, _ = self._user()
        self._enroll(token, program["program_id"])
        session = self._start_session(token)
        status, body = self._request(
            "GET",
            f"/v1/sessions/{session['id']}/next-set",
            token=token,
            params={"prescription_id": str(program["prescription_ids"][0][0])},
        )
        self.assertEqual(status, 409, body)
        self.assertIn("TRAINING_MAX", body["detail"])

        status_foreign, _ = self._request(
            "GET",
            f"/v1/sessions/{session['id']}/next-set",
            token=token,
            params={"prescription_id": str(self.program["prescription_ids"][0][0])},
        )
        self.assertEqual(status_foreign, 404)
        self._pass("409 for missing max, 404 for a prescription outside the session day", [status, status_foreign])

    def test_unenroll_abandons_open_session(self):
        self._info("Checks quitting a program abandons its open session and frees re-enrollment.")
        session = self._start_session(self.token)
        status, body = self._request("DELETE", "/v1/enrollment", token=self.token)
        self.assertEqual(status, 200, body)
        self.assertEqual(body["status"], "QUIT")

        status_session, detail = self._request("GET", f"/v1/sessions/{session['id']}", token=self.token)
        self.assertEqual(status_session, 200)
        self.assertEqual(detail["status"], "ABANDONED")

        status_start, _ = self._request("POST", "/v1/sessions", token=self.token)
        self.assertEqual(status_start, 404)

        again = self._enroll(self.token, self.program["program_id"])
        self.assertEqual(again["current_day_index"], 0)
        self._pass("QUIT, session ABANDONED, re-enroll allowed", body)

    def test_double_enrollment_conflicts(self):
        status, body = self._request(
            "POST",
            "/v1/enrollment",
            payload={"program_id": str(self.program["program_id"])},
            token=self.token,
        )
        self.assertEqual(status, 409, body)
        status_missing, _ = self._request(
            "POST",
            "/v1/enrollment",
            payload={"program_id": "00000000-0000-0000-0000-000000000000"},
            token=self.token,
        )
        self.assertEqual(status_missing, 404)
        self._pass("409 already enrolled, 404 unknown program", [status, status_missing])

    def test_log_set_checks_lift_and_prescription(self):
        self._info("Checks set logging rejects unknown lifts, prescriptions from other days and lift mismatches.")
        session = self._start_session(self.token)
        squat_prescription = str(self.program["prescription_ids"][0][0])
        bench_prescription = str(self.program["prescription_ids"][1][0])
        path = f"/v1/sessions/{session['id']}/sets"

        status_mismatch, mismatch = self._request(
            "POST",
            path,
            payload={"lift_id": str(self.bench), "prescription_id": squat_prescription, "weight": 100, "reps_performed": 5},
            token=self.token,
        )
        self.assertEqual(status_mismatch, 422, mismatch)
        self.assertIn(str(self.squat), mismatch["detail"])

        status_unknown, unknown = self._request(
            "POST",
            path,
            payload={"lift_id": str(uuid4()), "weight": 100, "reps_performed": 5},
            token=self.token,
        )
        self.assertEqual(status_unknown, 404, unknown)
        self.assertEqual(unknown["detail"], "Lift not found")

        status_other_day, other_day = self._request(
            "POST",
            path,
            payload={"lift_id": str(self.bench), "prescription_id": bench_prescription, "weight": 100, "reps_performed": 5},
            token=self.token,
        )
        self.assertEqual(status_other_day, 404, other_day)
        self.assertEqual(other_day["detail"], "Prescription not found")

        status_missing, _ = self._request(
            "POST",
            path,
            payload={"lift_id": str(self.squat), "prescription_id": str(uuid4()), "weight": 100, "reps_performed": 5},
            token=self.token,
        )
        self.assertEqual(status_missing, 404)

        # Accessory work without a prescription is still accepted.
        self._log_set(self.token, session["id"], lift_id=self.bench, weight=100, reps_performed=8)
        status_detail, detail = self._request("GET", f"/v1/sessions/{session['id']}", token=self.token)
        self.assertEqual(status_detail, 200, detail)
        self.assertEqual([row["lift_id"] for row in detail["sets"]], [str(self.bench)])
        self._pass(
            "422 mismatch, 404 unknown lift, 404 other-day prescription",
            [status_mismatch, status_unknown, status_other_day, status_missing],
            expected_payload=[422, 404, 404, 404],
        )

    def test_finish_before_start_is_rejected(self):
        session = self._start_session(self.token)
        status, body = self._request(
            "POST",
            f"/v1/sessions/{session['id']}/complete",
            payload={"finished_at": finish_at(-1)},
            token=self.token,
        )
        self.assertEqual(status, 422, body)
        self.assertIn("before it started", body["detail"])

        status_detail, detail = self._request("GET", f"/v1/sessions/{session['id']}", token=self.token)
        self.assertEqual(status_detail, 200, detail)
        self.assertEqual(detail["status"], "IN_PROGRESS")
        completed = self._complete(self.token, session["id"], finished_at=finish_at(1))
        self.assertEqual(completed["session"]["status"], "COMPLETED")
        self._pass("422 for a backdated finish, session left open", status)

    def test_next_set_uses_the_strategy_rounding(self):
        self._info("Checks next-set ramp weights follow the strategy's own increment and mode.")
        program = self._create_program(
            [
                [
                    {
                        "lift_id": self.squat,
                        "load_strategy": percent_of_max(0.842, increment=2.5, rounding="FLOOR"),
                        "set_scheme": {"type": "RAMP", "steps": [{"percent": 0.5, "reps": 5}, {"percent": 1.0, "reps": 1}]},
                    }
                ]
            ],
            rounding_increment=5.0,
        )
        token, user_id = self._user()
        self._record_max(user_id, self.squat, 300.0)
        self._enroll(token, program["program_id"])
        session = self._start_session(token)
        prescription_id = str(program["prescription_ids"][0][0])

        weights = []
        for reps in (5, 1):
            status, upcoming = self._request(
                "GET",
                f"/v1/sessions/{session['id']}/next-set",
                token=token,
                params={"prescription_id": prescription_id},
            )
            self.assertEqual(status, 200, upcoming)
            weights.append(upcoming["next_set"]["weight"])
            self._log_set(
                token,
                session["id"],
                lift_id=self.squat,
                prescription_id=prescription_id,
                weight=upcoming["next_set"]["weight"],
                reps_performed=reps,
            )
        self.assertEqual(weights, [125.0, 252.5])
        self._pass("125 then 252.5", weights)
