import asyncio
import sqlite3
import unittest
from datetime import date, datetime, timezone
from typing import Any

from student_portal_client.date_filter import DateRange
from student_portal_client.errors import LoginError
from student_portal_client.fetcher import AttendanceFetcher
from student_portal_client.portal import FilterMode, StudentPortal
from student_portal_client.resolver import EndpointFamily
from student_portal_client.session import KeyValueStore, Session, SessionStore
from student_portal_client.session.models import PROFILE_KEY, SESSION_KEYS

UTC = timezone.utc

_JOIN_PAYLOAD = {
    "success": True,
    "attendances": [
        {"attendanceId": "a1", "status": "present", "date": "1/10/2026", "subject": "Class"},
        {"attendanceId": "a2", "status": "absent", "date": "1/1/2026", "subject": "Class"},
        {"attendanceId": "a3", "status": "late", "date": "1/12/2026", "subject": "Class"},
    ],
}


class _FakeSource:
    def __init__(self, responses: dict[EndpointFamily, Any]):
        self._responses = responses
        self.calls: list[tuple[EndpointFamily, str]] = []

    async def get_attendance(self, family: EndpointFamily, identifier: str) -> Any:
        self.calls.append((family, identifier))
        response = self._responses[family]
        if isinstance(response, Exception):
            raise response
        return response


class _GatedSource:
    """Each call blocks until its gate is released, then returns its payload."""

    def __init__(self, payloads: list[Any]):
        self._payloads = payloads
        self.gates = [asyncio.Event() for _ in payloads]
        self.calls = 0

    async def get_attendance(self, family: EndpointFamily, identifier: str) -> Any:
        index = self.calls
        self.calls += 1
        await self.gates[index].wait()
        return self._payloads[index]


class _FakeLoginClient:
    def __init__(self, result: dict | Exception):
        self._result = result
        self.calls: list[tuple[str, str]] = []

    async def login(self, email: str, password: str) -> dict:
        self.calls.append((email, password))
        if isinstance(self._result, Exception):
            raise self._result
        return self._result


class _BrokenClearStore(SessionStore):
    async def clear(self) -> None:
        raise sqlite3.OperationalError("database is locked")


class _BrokenLoadStore(SessionStore):
    async def load(self) -> Session:
        raise sqlite3.OperationalError("unable to open database file")


class StudentPortalTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self._kv = KeyValueStore(":memory:")
        self._store = SessionStore(self._kv)
        self._source = _FakeSource({EndpointFamily.JOIN: _JOIN_PAYLOAD})
        self._login_client = _FakeLoginClient({"id": "abc", "studentId": "9", "username": "Ana", "email": "ana@x.io"})

    def tearDown(self) -> None:
        self._kv.close()

    def _portal(self, source=None, store=None) -> StudentPortal:
        return StudentPortal(
            store=store or self._store,
            fetcher=AttendanceFetcher(source or self._source, UTC),
            login_client=self._login_client,
            tz=UTC,
            today=lambda: date(2026, 1, 12),
        )

    def _seed(self, session: Session) -> None:
        asyncio.run(self._store.save(session))


class SessionFlowTests(StudentPortalTestCase):
    def test_missing_identity_requires_login_and_clears_store(self) -> None:
        self._kv.multi_set([(PROFILE_KEY, '{"username": "Ana"}')])
        portal = self._portal()

        view = asyncio.run(portal.load_session())

        self.assertTrue(view.requires_login)
        self.assertEqual((), view.records)
        self.assertEqual([], self._source.calls)
        self.assertEqual({key: None for key in SESSION_KEYS}, self._kv.multi_get(SESSION_KEYS))

    def test_load_session_fetches_and_exposes_profile(self) -> None:
        self._seed(Session(short_id="9", profile={"username": "Ana", "email": "ana@x.io"}))

        view = asyncio.run(self._portal().load_session())

        self.assertFalse(view.requires_login)
        self.assertFalse(view.loading)
        self.assertEqual(["a3", "a1", "a2"], [r.id for r in view.records])
        self.assertEqual("Ana", view.display_name)
        self.assertEqual("ana@x.io", view.display_email)
        self.assertEqual(3, view.summary.total)
        self.assertEqual((1, 1, 1), (view.summary.present, view.summary.absent, view.summary.late))

    def test_corrupt_profile_does_not_block_fetching(self) -> None:
        self._kv.multi_set([("studentId", "9"), (PROFILE_KEY, "{oops")])

        view = asyncio.run(self._portal().load_session())

        self.assertEqual(3, len(view.records))
        self.assertEqual("Student", view.display_name)
        self.assertEqual("No email", view.display_email)

    def test_fetch_failure_degrades_to_empty_list(self) -> None:
        self._seed(Session(short_id="9"))
        source = _FakeSource({EndpointFamily.JOIN: ValueError("bad payload")})

        view = asyncio.run(self._portal(source).refresh_attendance())

        self.assertEqual((), view.records)
        self.assertFalse(view.requires_login)
        self.assertFalse(view.refreshing)

    def test_login_saves_session_and_fetches(self) -> None:
        portal = self._portal()

        view = asyncio.run(portal.login("  Ana@X.io ", " secret "))

        self.assertEqual([("ana@x.io", "secret")], self._login_client.calls)
        self.assertFalse(view.requires_login)
        self.assertEqual(3, len(view.records))
        stored = asyncio.run(self._store.load())
        self.assertEqual("9", stored.short_id)
        self.assertEqual("abc", stored.primary_id)
        self.assertEqual("Ana", stored.profile["username"])

    def test_login_failure_clears_store_and_reports_error(self) -> None:
        self._seed(Session(short_id="old"))
        self._login_client = _FakeLoginClient(LoginError("Wrong password"))

        view = asyncio.run(self._portal().login("ana@x.io", "bad"))

        self.assertTrue(view.requires_login)
        self.assertEqual("Wrong password", view.error)
        self.assertFalse(asyncio.run(self._store.load()).has_identity)

    def test_blank_credentials_are_rejected_locally(self) -> None:
        view = asyncio.run(self._portal().login("  ", "pw"))
        self.assertTrue(view.requires_login)
        self.assertEqual([], self._login_client.calls)

    def test_logout_clears_session(self) -> None:
        self._seed(Session(short_id="9", primary_id="abc"))
        portal = self._portal()
        asyncio.run(portal.load_session())

        view = asyncio.run(portal.logout())

        self.assertTrue(view.requires_login)
        self.assertEqual((), view.records)
        self.assertFalse(asyncio.run(self._store.load()).has_identity)

    def test_logout_proceeds_when_store_clear_fails(self) -> None:
        portal = self._portal(store=_BrokenClearStore(self._kv))
        view = asyncio.run(portal.logout())
        self.assertTrue(view.requires_login)

    def test_unreadable_store_reports_storage_error(self) -> None:
        portal = self._portal(store=_BrokenLoadStore(self._kv))

        view = asyncio.run(portal.load_session())

        self.assertEqual((), view.records)
        self.assertTrue(view.error.startswith("Storage error"))
        self.assertFalse(view.loading)
        self.assertFalse(view.requires_login)
        self.assertEqual([], self._source.calls)


class FilterFlowTests(StudentPortalTestCase):
    def setUp(self) -> None:
        super().setUp()
        self._seed(Session(short_id="9"))

    def test_last_week_preset_end_to_end(self) -> None:
        source = _FakeSource({
            EndpointFamily.JOIN: {
                "success": True,
                "attendances": [
                    {"attendanceId": "a1", "status": "present", "date": "1/10/2026"},
                    {"attendanceId": "a2", "status": "absent", "date": "1/1/2026"},
                ],
            }
        })
        portal = self._portal(source)

        view = asyncio.run(portal.apply_preset("lastWeek"))

        self.assertEqual(["a1"], [r.id for r in view.records])
        self.assertIs(FilterMode.PRESET_APPLIED, view.filter_mode)
        self.assertEqual(DateRange(date(2026, 1, 5), date(2026, 1, 12)), view.date_range)
        self.assertEqual("Last 7 Days (1/5/2026 - 1/12/2026)", view.filter_label)

    def test_clear_returns_to_unfiltered(self) -> None:
        portal = self._portal()
        asyncio.run(portal.apply_preset("today"))

        view = asyncio.run(portal.clear_filter())

        self.assertIs(FilterMode.UNFILTERED, view.filter_mode)
        self.assertFalse(view.date_range.is_set)
        self.assertEqual(3, len(view.records))
        self.assertEqual("", view.filter_label)

    def test_explicit_range_ignores_time_of_day(self) -> None:
        portal = self._portal()

        view = asyncio.run(portal.apply_range(datetime(2026, 1, 10, 17, 30, tzinfo=UTC), datetime(2026, 1, 12, 6, 0, tzinfo=UTC)))

        self.assertIs(FilterMode.RANGE_APPLIED, view.filter_mode)
        self.assertEqual(["a3", "a1"], [r.id for r in view.records])
        self.assertEqual("1/10/2026 - 1/12/2026", view.filter_label)

    def test_refresh_keeps_applied_filter(self) -> None:
        portal = self._portal()
        asyncio.run(portal.apply_preset("today"))

        view = asyncio.run(portal.refresh_attendance())

        self.assertEqual(["a3"], [r.id for r in view.records])
        self.assertEqual(2, len(self._source.calls))

    def test_forced_filter_applies_to_one_pass_only(self) -> None:
        portal = self._portal()

        view = asyncio.run(portal.refresh_attendance(DateRange(date(2026, 1, 1), date(2026, 1, 1))))

        self.assertEqual(["a2"], [r.id for r in view.records])
        self.assertIs(FilterMode.UNFILTERED, view.filter_mode)

    def test_unknown_preset_shows_everything(self) -> None:
        portal = self._portal()
        asyncio.run(portal.apply_preset("today"))

        view = asyncio.run(portal.apply_preset("nextYear"))

        self.assertIs(FilterMode.UNFILTERED, view.filter_mode)
        self.assertEqual(3, len(view.records))


class StaleResultTests(StudentPortalTestCase):
    def test_older_pass_cannot_overwrite_newer_result(self) -> None:
        self._seed(Session(short_id="9"))
        source = _GatedSource([
            {"success": True, "attendances": [{"attendanceId": "stale", "status": "present", "date": "1/2/2026"}]},
            {"success": True, "attendances": [{"attendanceId": "fresh", "status": "present", "date": "1/3/2026"}]},
        ])
        portal = self._portal(source)

        async def scenario():
            first = asyncio.create_task(portal.refresh_attendance())
            while source.calls < 1:
                await asyncio.sleep(0.01)
            second = asyncio.create_task(portal.refresh_attendance())
            while source.calls < 2:
                await asyncio.sleep(0.01)
            source.gates[1].set()
            await second
            source.gates[0].set()
            await first

        asyncio.run(scenario())

        self.assertEqual(["fresh"], [r.id for r in portal.view.records])
        self.assertFalse(portal.view.refreshing)
        self.assertEqual(2, portal.generation)

    def test_logout_discards_in_flight_fetch(self) -> None:
        self._seed(Session(short_id="9"))
        source = _GatedSource([_JOIN_PAYLOAD])
        portal = self._portal(source)

        async def scenario():
            pending = asyncio.create_task(portal.load_session())
            while source.calls < 1:
                await asyncio.sleep(0.01)
            await portal.logout()
            source.gates[0].set()
            await pending

        asyncio.run(scenario())

        self.assertTrue(portal.view.requires_login)
        self.assertEqual((), portal.view.records)


if __name__ == "__main__":
    unittest.main()
