from __future__ import annotations

from dataclasses import dataclass
from datetime import tzinfo
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from student_portal_client.api_client import PortalApiClient
from student_portal_client.app_config import AppConfig
from student_portal_client.fetcher import AttendanceFetcher
from student_portal_client.logging_config import setup_logging
from student_portal_client.portal import StudentPortal
from student_portal_client.records import local_timezone
from student_portal_client.session import KeyValueStore, SessionStore


@dataclass
class AppRuntime:
    portal: StudentPortal
    api_client: PortalApiClient
    kv_store: KeyValueStore
    tz: tzinfo
    log_descriptions: list[str]

    async def close(self) -> None:
        await self.api_client.close()
        self.kv_store.close()


def resolve_timezone(name: str | None) -> tzinfo:
    if not name:
        return local_timezone()
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as ex:
        raise ValueError(f"Unknown timezone: {name}") from ex


def bootstrap_runtime(app: AppConfig) -> AppRuntime:
    log_descriptions = setup_logging(level=app.log_level, consumers=app.log_consumers)
    tz = resolve_timezone(app.timezone)

    db_path = Path(app.session_db_path)
    if not db_path.is_absolute():
        db_path = Path.cwd() / db_path
    kv_store = KeyValueStore(str(db_path))

    api_client = PortalApiClient(
        app.api_base_url,
        timeout_seconds=app.request_timeout_seconds,
        retry_attempts=app.retry_attempts,
        retry_wait_seconds=app.retry_wait_seconds,
    )
    portal = StudentPortal(
        store=SessionStore(kv_store),
        fetcher=AttendanceFetcher(api_client, tz),
        login_client=api_client,
        tz=tz,
    )

    return AppRuntime(
        portal=portal,
        api_client=api_client,
        kv_store=kv_store,
        tz=tz,
        log_descriptions=log_descriptions,
    )
