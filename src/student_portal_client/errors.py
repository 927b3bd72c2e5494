from __future__ import annotations


class PortalError(Exception):
    """Base class for errors raised inside the attendance client."""


class SessionMissingError(PortalError):
    """No student identifier is stored; the user has to log in again."""


class LoginError(PortalError):
    pass


class AttendanceApiError(PortalError):
    def __init__(self, message: str, *, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code
