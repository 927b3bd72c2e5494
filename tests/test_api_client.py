import asyncio
import json
import unittest

import httpx

from student_portal_client.api_client import PortalApiClient
from student_portal_client.errors import AttendanceApiError, LoginError
from student_portal_client.resolver import EndpointFamily

_BASE_URL = "https://portal.test"


def _client(handler, *, retry_attempts: int = 1) -> PortalApiClient:
    return PortalApiClient(
        _BASE_URL,
        timeout_seconds=5,
        retry_attempts=retry_attempts,
        retry_wait_seconds=0,
        transport=httpx.MockTransport(handler),
    )


def _run(client: PortalApiClient, coro_factory):
    async def scenario():
        try:
            return await coro_factory(client)
        finally:
            await client.close()

    return asyncio.run(scenario())


class LoginTests(unittest.TestCase):
    def test_login_returns_student_data(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                200,
                json={"success": True, "data": {"id": "abc", "studentId": "STU001", "username": "Ana", "email": "ana@x.io"}},
            )

        data = _run(_client(handler), lambda c: c.login("ana@x.io", "pw"))

        self.assertEqual("STU001", data["studentId"])
        self.assertEqual("POST", seen[0].method)
        self.assertEqual("/api/login", seen[0].url.path)
        self.assertEqual({"email": "ana@x.io", "password": "pw"}, json.loads(seen[0].content))

    def test_login_failure_carries_server_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(401, json={"success": False, "error": "Wrong password"})

        with self.assertRaises(LoginError) as ctx:
            _run(_client(handler), lambda c: c.login("ana@x.io", "bad"))
        self.assertEqual("Wrong password", str(ctx.exception))

    def test_login_transport_error_becomes_login_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with self.assertRaises(LoginError):
            _run(_client(handler), lambda c: c.login("ana@x.io", "pw"))


class GetAttendanceTests(unittest.TestCase):
    def test_join_and_object_id_paths(self) -> None:
        paths: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            paths.append(request.url.raw_path.decode())
            return httpx.Response(200, json={"success": True, "attendance": []})

        async def both(client: PortalApiClient):
            await client.get_attendance(EndpointFamily.JOIN, "STU 1/2")
            await client.get_attendance(EndpointFamily.OBJECT_ID, "abc")

        _run(_client(handler), both)
        self.assertEqual(
            ["/api/student-attendance-join/STU%201%2F2", "/api/attendance/objectId/abc"],
            paths,
        )

    def test_error_status_raises(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(404, json={"success": False, "error": "Student not found"})

        with self.assertRaises(AttendanceApiError) as ctx:
            _run(_client(handler), lambda c: c.get_attendance(EndpointFamily.JOIN, "9"))
        self.assertEqual(404, ctx.exception.status_code)

    def test_non_json_body_raises(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html>gateway</html>")

        with self.assertRaises(AttendanceApiError):
            _run(_client(handler), lambda c: c.get_attendance(EndpointFamily.OBJECT_ID, "abc"))

    def test_transport_errors_are_retried(self) -> None:
        attempts: list[int] = []

        def handler(request: httpx.Request) -> httpx.Response:
            attempts.append(1)
            if len(attempts) == 1:
                raise httpx.ConnectError("flaky", request=request)
            return httpx.Response(200, json={"success": True, "attendance": [{"status": "present"}]})

        body = _run(_client(handler, retry_attempts=2), lambda c: c.get_attendance(EndpointFamily.OBJECT_ID, "abc"))
        self.assertEqual(2, len(attempts))
        self.assertEqual([{"status": "present"}], body["attendance"])

    def test_retries_are_bounded(self) -> None:
        attempts: list[int] = []

        def handler(request: httpx.Request) -> httpx.Response:
            attempts.append(1)
            raise httpx.ConnectError("down", request=request)

        with self.assertRaises(httpx.ConnectError):
            _run(_client(handler, retry_attempts=3), lambda c: c.get_attendance(EndpointFamily.JOIN, "9"))
        self.assertEqual(3, len(attempts))


if __name__ == "__main__":
    unittest.main()
