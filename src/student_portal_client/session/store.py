from __future__ import annotations

import asyncio
import json
import sqlite3

from loguru import logger

from student_portal_client.session.kv_store import KeyValueStore
from student_portal_client.session.models import (
    PRIMARY_ID_KEY,
    PROFILE_KEY,
    SESSION_KEYS,
    SHORT_ID_KEY,
    Session,
)

# Failures the local store can raise.
STORE_ERRORS: tuple[type[Exception], ...] = (sqlite3.Error, OSError)


class SessionStore:
    """Persists the three session fields.

    Every call is a single bulk operation on the underlying store, so a
    ``clear`` is never observed half-done by a later ``load``. Calls run in a
    worker thread and are the only points where session access suspends.
    """

    def __init__(self, kv: KeyValueStore):
        self._kv = kv

    async def load(self) -> Session:
        values = await asyncio.to_thread(self._kv.multi_get, SESSION_KEYS)
        profile = None
        raw_profile = values.get(PROFILE_KEY)
        if raw_profile:
            profile = self._parse_profile(raw_profile)
            if profile is None:
                logger.warning("Stored profile is not valid JSON; dropping it")
                try:
                    await asyncio.to_thread(self._kv.multi_remove, (PROFILE_KEY,))
                except STORE_ERRORS as ex:
                    logger.warning(f"Could not remove corrupt profile: {ex}")
        return Session(
            short_id=values.get(SHORT_ID_KEY) or None,
            primary_id=values.get(PRIMARY_ID_KEY) or None,
            profile=profile,
        )

    async def save(self, session: Session) -> None:
        items: list[tuple[str, str]] = []
        removed: list[str] = []
        for key, value in (
            (SHORT_ID_KEY, session.short_id),
            (PRIMARY_ID_KEY, session.primary_id),
            (PROFILE_KEY, json.dumps(session.profile) if session.profile is not None else None),
        ):
            if value:
                items.append((key, value))
            else:
                removed.append(key)
        await asyncio.to_thread(self._kv.replace, items, removed)

    async def clear(self) -> None:
        await asyncio.to_thread(self._kv.multi_remove, SESSION_KEYS)

    def _parse_profile(self, raw: str) -> dict | None:
        try:
            parsed = json.loads(raw)
        except ValueError:
            return None
        if isinstance(parsed, dict):
            return parsed
        return None
