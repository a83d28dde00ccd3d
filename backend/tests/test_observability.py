from __future__ import annotations

import asyncio
import logging
from unittest.mock import patch
from uuid import uuid4

from starlette.requests import Request as StarletteRequest
from starlette.responses import PlainTextResponse

from liftcycle.middleware.request_logging import RequestLoggingMiddleware
from tests.base import BackendTestBase, fixed_sets


class ObservabilityTests(BackendTestBase):
    def _raw_request(
        self,
        method: str,
        path: str,
        headers: dict[str, str] | None = None,
        payload: dict | None = None,
    ) -> tuple[int, dict, dict]:
        response = self.client.request(method, path, headers=headers or {}, json=payload)
        body = response.json() if response.content else {}
        return response.status_code, body, {k.lower(): v for k, v in response.headers.items()}

    def test_healthz_endpoint(self):
        self._info("Checks /healthz readiness endpoint exists and returns status ok.")
        status, body, _ = self._raw_request("GET", "/healthz")
        self.assertEqual(status, 200)
        self.assertEqual(body, {"status": "ok"})
        self._pass(
            "200 with {'status':'ok'}",
            body,
            expected_payload={"status": "ok"},
            received_payload=body,
        )

    def test_request_id_header_auto_generated(self):
        self._info("Checks middleware adds X-Request-ID when client does not provide one.")
        status, body, headers = self._raw_request("GET", "/health")
        self.assertEqual(status, 200, body)
        self.assertTrue(headers.get("x-request-id"))
        self._pass(
            "response contains generated X-Request-ID",
            "ok",
            expected_payload={"status": 200, "x-request-id": "<uuid>"},
            received_payload={"status": status, "x-request-id": headers.get("x-request-id"), "body": body},
        )

    def test_request_id_header_passthrough_on_unauthorized(self):
        self._info("Checks middleware preserves provided X-Request-ID even on 401 responses.")
        request_id = str(uuid4())
        status, body, headers = self._raw_request(
            "GET",
            "/v1/lift-maxes?limit=20",
            headers={"X-Request-ID": request_id},
        )
        self.assertEqual(status, 401, body)
        self.assertEqual(headers.get("x-request-id"), request_id)
        self._pass(
            "provided X-Request-ID is echoed on unauthorized response",
            "ok",
            expected_payload={"status": 401, "x-request-id": request_id},
            received_payload={"status": status, "x-request-id": headers.get("x-request-id"), "body": body},
        )

    def test_request_id_header_present_on_422(self):
        self._info("Checks middleware includes X-Request-ID on 422 validation responses.")
        _, _, token = self._signup()
        request_id = str(uuid4())
        status, body, headers = self._raw_request(
            "POST",
            "/v1/lift-maxes",
            headers={
                "Authorization": f"Bearer {token}",
                "X-Request-ID": request_id,
            },
            payload={"lift_id": str(uuid4()), "max_type": "ONE_RM", "value": 200, "effective_date": "not-a-date"},
        )
        self.assertEqual(status, 422, body)
        self.assertEqual(headers.get("x-request-id"), request_id)
        self._pass(
            "422 emitted for invalid date with X-Request-ID echoed",
            "ok",
            expected_payload={"invalid_date_status": 422, "x-request-id": request_id},
            received_payload={"invalid_date_status": status, "x-request-id": headers.get("x-request-id")},
        )

    def test_request_log_line_contains_required_keys(self):
        self._info("Checks request log format always includes stable request keys.")
        middleware = RequestLoggingMiddleware(app=lambda scope, receive, send: None)
        scope = {
            "type": "http",
            "http_version": "1.1",
            "method": "GET",
            "path": "/health",
            "raw_path": b"/health",
            "scheme": "http",
            "query_string": b"",
            "headers": [],
            "client": ("testclient", 1234),
            "server": ("testserver", 80),
        }
        request = StarletteRequest(scope)

        async def call_next(_request):
            return PlainTextResponse("ok", status_code=200)

        with patch("liftcycle.middleware.request_logging.logger.info") as mocked_info:
            response = asyncio.run(middleware.dispatch(request, call_next))

        self.assertEqual(response.status_code, 200)
        self.assertTrue(mocked_info.called)
        format_string = mocked_info.call_args[0][0]
        for key in ("request_id=", "method=", "path=", "status_code=", "duration_ms=", "user_id="):
            self.assertIn(key, format_string)
        self._pass(
            "request log line contains request_id/method/path/status_code/duration_ms/user_id keys",
            "ok",
            expected_payload={
                "contains": ["request_id=", "method=", "path=", "status_code=", "duration_ms=", "user_id="],
            },
            received_payload={"format_string": format_string},
        )

    def test_request_id_header_present_on_500_in_middleware(self):
        self._info("Checks middleware returns 500 response with X-Request-ID when downstream raises.")
        middleware = RequestLoggingMiddleware(app=lambda scope, receive, send: None)
        request_id = str(uuid4())
        scope = {
            "type": "http",
            "http_version": "1.1",
            "method": "GET",
            "path": "/boom",
            "raw_path": b"/boom",
            "scheme": "http",
            "query_string": b"",
            "headers": [(b"x-request-id", request_id.encode())],
            "client": ("testclient", 1234),
            "server": ("testserver", 80),
        }
        request = StarletteRequest(scope)

        async def call_next(_request):
            raise RuntimeError("boom")

        response = asyncio.run(middleware.dispatch(request, call_next))
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.headers.get("x-request-id"), request_id)
        self._pass(
            "500 middleware fallback includes X-Request-ID",
            "ok",
            expected_payload={"status": 500, "x-request-id": request_id},
            received_payload={"status": response.status_code, "x-request-id": response.headers.get("x-request-id")},
        )

    def test_domain_events_are_logged(self):
        self._info("Checks session start and completion emit domain_event log lines.")
        token, user_id = self._user()
        lift_id = self._create_lift("Squat")
        program = self._create_program(
            [[{"lift_id": lift_id, "load_strategy": {"type": "FIXED_WEIGHT", "weight": 95}, "set_scheme": fixed_sets(1, 5)}]]
        )
        self._enroll(token, program["program_id"])

        with self.assertLogs("liftcycle.domain", level=logging.INFO) as captured:
            session = self._start_session(token)
            self._complete(token, session["id"])

        events = [line for line in captured.output if "domain_event" in line]
        self.assertTrue(any("event=session_started" in line for line in events), events)
        self.assertTrue(any("event=enrollment_advanced" in line for line in events), events)
        self.assertTrue(any(f"event=session_completed user_id={user_id}" in line for line in events), events)
        self._pass("session_started, enrollment_advanced, session_completed logged", events)
