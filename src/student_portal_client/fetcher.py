from __future__ import annotations

from datetime import tzinfo
from typing import Any, Protocol, runtime_checkable

import httpx
from loguru import logger

from student_portal_client.errors import AttendanceApiError
from student_portal_client.records import CanonicalRecord, normalize_payload
from student_portal_client.resolver import EndpointFamily, ResolutionPlan, ResolutionStep


@runtime_checkable
class AttendanceSource(Protocol):
    async def get_attendance(self, family: EndpointFamily, identifier: str) -> Any: ...


class AttendanceFetcher:
    """Executes a ResolutionPlan and returns canonical records.

    ``fetch`` never raises: every failed step falls through to the next one
    and an exhausted plan yields an empty list.
    """

    def __init__(self, source: AttendanceSource, tz: tzinfo):
        self._source = source
        self._tz = tz

    async def fetch(self, plan: ResolutionPlan) -> list[CanonicalRecord]:
        if not plan:
            logger.debug("Empty resolution plan; skipping attendance fetch")
            return []

        logger.debug(f"Resolution plan: {plan.describe()}")
        for index, step in enumerate(plan, 1):
            records = await self._run_step(step)
            if records:
                logger.info(f"Fetched {len(records)} attendance record(s) via {step.family.value} (step {index}/{len(plan)})")
                return records

        logger.warning("No resolution step produced attendance records")
        return []

    async def _run_step(self, step: ResolutionStep) -> list[CanonicalRecord] | None:
        try:
            payload = await self._source.get_attendance(step.family, step.identifier)
            records = normalize_payload(payload, self._tz)
        except (AttendanceApiError, httpx.HTTPError, ValueError) as ex:
            logger.warning(f"Attendance lookup via {step.family.value} failed: {type(ex).__name__}: {ex}")
            return None

        if not records:
            logger.debug(f"Attendance lookup via {step.family.value} returned no usable records")
        # Newest first; sort is stable for equal timestamps.
        records.sort(key=lambda record: record.timestamp, reverse=True)
        return records
