from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from enum import Enum

from student_portal_client.session.models import Session


class EndpointFamily(str, Enum):
    # Short id resolved server-side; richer joined rows in one round trip.
    JOIN = "join"
    # Primary id addresses the records directly; always resolvable.
    OBJECT_ID = "object_id"


@dataclass(frozen=True)
class ResolutionStep:
    family: EndpointFamily
    identifier: str


@dataclass(frozen=True)
class ResolutionPlan:
    steps: tuple[ResolutionStep, ...] = ()

    def __bool__(self) -> bool:
        return bool(self.steps)

    def __iter__(self) -> Iterator[ResolutionStep]:
        return iter(self.steps)

    def __len__(self) -> int:
        return len(self.steps)

    def describe(self) -> str:
        if not self.steps:
            return "<empty>"
        return " -> ".join(f"{step.family.value}:{step.identifier}" for step in self.steps)


def build_plan(session: Session) -> ResolutionPlan:
    """Order the lookups to attempt for ``session``.

    An empty plan means there is no identity to query with; callers treat it
    as a re-authentication signal rather than a fetch failure.
    """
    steps: list[ResolutionStep] = []
    if session.short_id:
        steps.append(ResolutionStep(EndpointFamily.JOIN, session.short_id))
    if session.primary_id:
        steps.append(ResolutionStep(EndpointFamily.OBJECT_ID, session.primary_id))
    return ResolutionPlan(tuple(steps))
