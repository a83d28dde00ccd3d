from __future__ import annotations

from sqlalchemy import inspect

from tests.base import BackendTestBase


class HealthAndSmokeTests(BackendTestBase):
    def test_health_endpoints(self):
        self._info("Checks /health and /health/db basic service smoke endpoints.")
        s1, b1 = self._request("GET", "/health")
        self.assertEqual(s1, 200)
        self.assertEqual(b1.get("status"), "ok")
        self._pass("200 + status=ok", b1)

        s2, b2 = self._request("GET", "/health/db")
        self.assertEqual(s2, 200)
        self.assertEqual(b2.get("db"), "ok")
        self._pass(
            "200 + db=ok",
            b2,
            expected_payload={"health": {"status": "ok"}, "health_db": {"db": "ok"}},
            received_payload={"health": b1, "health_db": b2},
        )

    def test_schema_indexes_constraints_exist(self):
        self._info("Checks the uniqueness indexes the session, enrollment and ledger rules rely on.")
        ins = inspect(self.engine)
        session_indexes = {i["name"] for i in ins.get_indexes("workout_sessions")}
        enrollment_indexes = {i["name"] for i in ins.get_indexes("user_program_states")}
        set_indexes = {i["name"] for i in ins.get_indexes("logged_sets")}
        ledger_uniques = {u["name"] for u in ins.get_unique_constraints("progression_logs")}
        max_uniques = {u["name"] for u in ins.get_unique_constraints("lift_maxes")}

        self.assertIn("uq_workout_sessions_one_in_progress", session_indexes)
        self.assertIn("workout_sessions_user_time", session_indexes)
        self.assertIn("uq_user_program_states_one_active", enrollment_indexes)
        self.assertIn("logged_sets_session_order", set_indexes)
        self.assertIn("uq_progression_logs_idempotency", ledger_uniques)
        self.assertIn("uq_lift_maxes_user_lift_type_date", max_uniques)
        self._pass(
            "expected core indexes/constraints present",
            "ok",
            expected_payload={
                "workout_sessions": ["uq_workout_sessions_one_in_progress", "workout_sessions_user_time"],
                "user_program_states": ["uq_user_program_states_one_active"],
                "logged_sets": ["logged_sets_session_order"],
                "progression_logs": ["uq_progression_logs_idempotency"],
                "lift_maxes": ["uq_lift_maxes_user_lift_type_date"],
            },
            received_payload={
                "workout_sessions": sorted(session_indexes),
                "user_program_states": sorted(enrollment_indexes),
                "logged_sets": sorted(set_indexes),
                "progression_logs": sorted(ledger_uniques),
                "lift_maxes": sorted(max_uniques),
            },
        )

    def test_cors_preflight_sessions_and_dashboard(self):
        self._info("Checks CORS preflight for Vite dev origin on sessions and dashboard endpoints.")
        common_headers = {
            "Origin": "http://localhost:5173",
            "Access-Control-Request-Method": "POST",
            "Access-Control-Request-Headers": "Authorization, Content-Type",
        }

        received = {}
        for path in ("/v1/sessions", "/v1/dashboard"):
            response = self.client.options(path, headers=common_headers)
            headers = {k.lower(): v for k, v in response.headers.items()}
            received[path] = {"status": response.status_code, "headers": headers}
            self.assertIn(response.status_code, (200, 204))
            self.assertEqual(headers.get("access-control-allow-origin"), "http://localhost:5173")
            self.assertIn("post", headers.get("access-control-allow-methods", "").lower())
            self.assertIn("authorization", headers.get("access-control-allow-headers", "").lower())
            self.assertIn("content-type", headers.get("access-control-allow-headers", "").lower())

        self._pass(
            "OPTIONS preflight succeeds with expected CORS allow-* headers",
            "ok",
            expected_payload={
                "status": "200 or 204",
                "allow_origin": "http://localhost:5173",
                "allow_methods_contains": ["POST"],
                "allow_headers_contains": ["Authorization", "Content-Type"],
            },
            received_payload=received,
        )
