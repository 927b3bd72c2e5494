from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field, replace
from datetime import date, datetime, tzinfo
from enum import Enum
from typing import Any, Protocol, runtime_checkable

from loguru import logger

from student_portal_client.date_filter import (
    PRESETS,
    UNSET_RANGE,
    DateRange,
    filter_records,
    preset_to_range,
    today_in,
)
from student_portal_client.errors import LoginError, SessionMissingError
from student_portal_client.fetcher import AttendanceFetcher
from student_portal_client.records import AttendanceStatus, CanonicalRecord
from student_portal_client.resolver import build_plan
from student_portal_client.session import STORE_ERRORS, Session, SessionStore


class FilterMode(str, Enum):
    UNFILTERED = "unfiltered"
    PRESET_APPLIED = "preset"
    RANGE_APPLIED = "range"


@runtime_checkable
class LoginClient(Protocol):
    async def login(self, email: str, password: str) -> dict[str, Any]: ...


@dataclass(frozen=True)
class AttendanceSummary:
    total: int = 0
    present: int = 0
    absent: int = 0
    late: int = 0

    @classmethod
    def of(cls, records: Iterable[CanonicalRecord]) -> AttendanceSummary:
        counts = {status: 0 for status in AttendanceStatus}
        total = 0
        for record in records:
            counts[record.status] += 1
            total += 1
        return cls(
            total=total,
            present=counts[AttendanceStatus.PRESENT],
            absent=counts[AttendanceStatus.ABSENT],
            late=counts[AttendanceStatus.LATE],
        )


@dataclass(frozen=True)
class PortalView:
    """Snapshot handed to the presentation layer after every operation."""

    records: tuple[CanonicalRecord, ...] = ()
    loading: bool = False
    refreshing: bool = False
    requires_login: bool = False
    error: str | None = None
    filter_mode: FilterMode = FilterMode.UNFILTERED
    date_range: DateRange = UNSET_RANGE
    preset: str | None = None
    profile: dict[str, Any] | None = field(default=None, compare=False)

    @property
    def summary(self) -> AttendanceSummary:
        return AttendanceSummary.of(self.records)

    @property
    def display_name(self) -> str:
        profile = self.profile or {}
        return str(profile.get("username") or profile.get("name") or "Student")

    @property
    def display_email(self) -> str:
        profile = self.profile or {}
        return str(profile.get("email") or "No email")

    @property
    def filter_label(self) -> str:
        label = self.date_range.label()
        if label and self.preset:
            return f"{PRESETS.get(self.preset, self.preset)} ({label})"
        return label


class StudentPortal:
    """Operations exposed to the UI: session, attendance refresh and filtering.

    Each operation returns the new PortalView and never raises. Overlapping
    passes are not locked out; every pass takes a generation number and only
    the most recently started one may publish its result.
    """

    def __init__(
        self,
        *,
        store: SessionStore,
        fetcher: AttendanceFetcher,
        login_client: LoginClient,
        tz: tzinfo,
        today: Callable[[], date] | None = None,
    ):
        self._store = store
        self._fetcher = fetcher
        self._login_client = login_client
        self._tz = tz
        self._today = today or (lambda: today_in(tz))
        self._generation = 0
        self._view = PortalView()

    @property
    def view(self) -> PortalView:
        return self._view

    @property
    def generation(self) -> int:
        return self._generation

    async def login(self, email: str, password: str) -> PortalView:
        email = email.lower().strip()
        password = password.strip()
        if not email or not password:
            self._view = PortalView(requires_login=True, error="Enter email and password")
            return self._view

        try:
            data = await self._login_client.login(email, password)
            session = Session.from_login_data(data)
            if not session.has_identity:
                raise LoginError("Login response carried no student identifier")
            await self._store.save(session)
        except (LoginError, *STORE_ERRORS) as ex:
            logger.warning(f"Login failed: {ex}")
            await self._clear_store()
            self._view = PortalView(requires_login=True, error=str(ex) or "Login failed")
            return self._view

        logger.info(f"Logged in (student={session.short_id or session.primary_id})")
        self._view = PortalView(profile=session.profile)
        return await self._run_pass(UNSET_RANGE, is_refresh=False)

    async def load_session(self) -> PortalView:
        return await self._run_pass(self._view.date_range, is_refresh=False)

    async def refresh_attendance(self, force_filter: DateRange | None = None) -> PortalView:
        """Re-fetch and re-filter.

        ``force_filter`` filters this pass only; the applied filter state is
        left as it is.
        """
        date_range = force_filter if force_filter is not None else self._view.date_range
        return await self._run_pass(date_range, is_refresh=True)

    async def apply_preset(self, name: str) -> PortalView:
        date_range = preset_to_range(name, self._today())
        if not date_range.is_set:
            logger.warning(f"Unknown date preset: {name!r}; showing all records")
            return await self.clear_filter()
        self._view = replace(
            self._view,
            filter_mode=FilterMode.PRESET_APPLIED,
            date_range=date_range,
            preset=name,
        )
        return await self._run_pass(date_range, is_refresh=False)

    async def apply_range(self, start: date | datetime, end: date | datetime) -> PortalView:
        date_range = DateRange.between(start, end, self._tz)
        self._view = replace(
            self._view,
            filter_mode=FilterMode.RANGE_APPLIED,
            date_range=date_range,
            preset=None,
        )
        return await self._run_pass(date_range, is_refresh=False)

    async def clear_filter(self) -> PortalView:
        self._view = replace(
            self._view,
            filter_mode=FilterMode.UNFILTERED,
            date_range=UNSET_RANGE,
            preset=None,
        )
        return await self._run_pass(UNSET_RANGE, is_refresh=False)

    async def logout(self) -> PortalView:
        # Any pass still in flight must not repopulate the logged-out view.
        self._generation += 1
        await self._clear_store()
        logger.info("Logged out")
        self._view = PortalView(requires_login=True)
        return self._view

    async def _run_pass(self, date_range: DateRange, *, is_refresh: bool) -> PortalView:
        self._generation += 1
        generation = self._generation
        self._view = replace(self._view, loading=not is_refresh, refreshing=is_refresh, error=None)

        try:
            session = await self._load_session()
        except SessionMissingError:
            if generation != self._generation:
                return self._view
            return await self._expire_session()
        except STORE_ERRORS as ex:
            logger.error(f"Could not read stored session: {ex}")
            if generation == self._generation:
                self._view = replace(
                    self._view,
                    records=(),
                    loading=False,
                    refreshing=False,
                    error="Storage error; clear cache and log in again",
                )
            return self._view

        records = await self._fetcher.fetch(build_plan(session))
        if generation != self._generation:
            logger.debug(f"Discarding stale attendance result (generation {generation}, latest {self._generation})")
            return self._view

        filtered = filter_records(records, date_range, self._tz)
        if date_range.is_set:
            logger.debug(f"Filtered {len(filtered)} of {len(records)} record(s) to {date_range.label()}")
        self._view = replace(
            self._view,
            records=tuple(filtered),
            loading=False,
            refreshing=False,
            requires_login=False,
            profile=session.profile,
        )
        return self._view

    async def _load_session(self) -> Session:
        session = await self._store.load()
        if not session.has_identity:
            raise SessionMissingError("No student identifier stored")
        return session

    async def _expire_session(self) -> PortalView:
        logger.warning("Session expired; login required")
        await self._clear_store()
        self._view = PortalView(requires_login=True, error="Session expired. Please login again")
        return self._view

    async def _clear_store(self) -> None:
        try:
            await self._store.clear()
        except STORE_ERRORS as ex:
            logger.error(f"Failed to clear stored session: {ex}")
