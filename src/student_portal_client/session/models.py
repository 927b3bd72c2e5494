from __future__ import annotations

from dataclasses import dataclass
from typing import Any

SHORT_ID_KEY = "studentId"
PRIMARY_ID_KEY = "studentObjectId"
PROFILE_KEY = "studentData"

SESSION_KEYS = (SHORT_ID_KEY, PRIMARY_ID_KEY, PROFILE_KEY)


@dataclass(frozen=True)
class Session:
    short_id: str | None = None
    primary_id: str | None = None
    profile: dict[str, Any] | None = None

    @property
    def has_identity(self) -> bool:
        return bool(self.short_id or self.primary_id)

    @classmethod
    def from_login_data(cls, data: dict[str, Any]) -> Session:
        return cls(
            short_id=_clean_id(data.get("studentId")),
            primary_id=_clean_id(data.get("id")),
            profile=dict(data),
        )


def _clean_id(value: object) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None
