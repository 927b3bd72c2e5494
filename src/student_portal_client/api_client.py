from __future__ import annotations

from typing import Any
from urllib.parse import quote

import httpx
from loguru import logger
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from student_portal_client.errors import AttendanceApiError, LoginError
from student_portal_client.resolver import EndpointFamily

_HEADERS = {
    "Accept": "application/json",
    "User-Agent": "student-portal-client",
}


def _on_retry(retry_state) -> None:
    attempt = retry_state.attempt_number
    wait = retry_state.next_action.sleep if retry_state.next_action else 0
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    reason = type(exc).__name__ if exc else "Unknown"
    logger.warning(f"{reason}. Retrying in {wait:.1f}s (attempt {attempt})...")


class PortalApiClient:
    """Async client for the student portal HTTP service."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout_seconds: float = 10.0,
        retry_attempts: int = 2,
        retry_wait_seconds: float = 0.5,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers=_HEADERS,
            timeout=timeout_seconds,
            transport=transport,
        )
        self._retry_attempts = max(1, retry_attempts)
        self._retry_wait_seconds = retry_wait_seconds

    async def close(self) -> None:
        await self._client.aclose()

    async def login(self, email: str, password: str) -> dict[str, Any]:
        try:
            response = await self._request("POST", "/api/login", json={"email": email, "password": password})
        except httpx.HTTPError as ex:
            raise LoginError("Check connection and try again") from ex

        body = self._json_or_none(response)
        if not isinstance(body, dict):
            raise LoginError(f"Unexpected login response (HTTP {response.status_code})")
        if not body.get("success") or not isinstance(body.get("data"), dict):
            raise LoginError(str(body.get("error") or "Unknown error"))
        return body["data"]

    async def get_attendance(self, family: EndpointFamily, identifier: str) -> Any:
        if family is EndpointFamily.JOIN:
            path = f"/api/student-attendance-join/{quote(identifier, safe='')}"
        else:
            path = f"/api/attendance/objectId/{quote(identifier, safe='')}"

        response = await self._request("GET", path)
        if response.status_code >= 400:
            raise AttendanceApiError(
                f"HTTP {response.status_code} from {path}",
                status_code=response.status_code,
            )
        body = self._json_or_none(response)
        if body is None:
            raise AttendanceApiError(f"Non-JSON response from {path}", status_code=response.status_code)
        return body

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        async for attempt in AsyncRetrying(
            retry=retry_if_exception_type(httpx.TransportError),
            wait=wait_exponential(multiplier=self._retry_wait_seconds, max=10),
            stop=stop_after_attempt(self._retry_attempts),
            before_sleep=_on_retry,
            reraise=True,
        ):
            with attempt:
                logger.debug(f"API request: {method} {path}")
                response = await self._client.request(method, path, **kwargs)
        logger.debug(f"API response: {method} {path} -> {response.status_code}")
        return response

    def _json_or_none(self, response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError:
            return None
