"""
Typed assignment-history events.

Each event kind declares its own fields; ``to_metadata()`` produces the JSON
stored in the history table's ``metadata`` column. History rows are only
ever inserted.
"""
from __future__ import annotations

import enum
from dataclasses import asdict, dataclass
from typing import Any, Optional, Union
from uuid import UUID


class HistoryAction(str, enum.Enum):
    ASSIGNED = "assigned"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    EXPIRED = "expired"
    REASSIGNED = "reassigned"
    CANCELLED = "cancelled"


def _jsonable(value: Any) -> Any:
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, enum.Enum):
        return value.value
    return value


@dataclass(frozen=True)
class _Event:
    action = HistoryAction.ASSIGNED

    def to_metadata(self) -> dict[str, Any]:
        return {k: _jsonable(v) for k, v in asdict(self).items() if v is not None}


@dataclass(frozen=True)
class AssignedEvent(_Event):
    manual_assignment: bool
    restaurant_id: Optional[UUID] = None
    priority_score: Optional[float] = None
    assignment_attempt: int = 1

    action = HistoryAction.ASSIGNED


@dataclass(frozen=True)
class AcceptedEvent(_Event):
    # Seconds between assignment creation and acceptance.
    assignment_duration_seconds: Optional[float] = None
    cancelled_siblings: Optional[int] = None

    action = HistoryAction.ACCEPTED


@dataclass(frozen=True)
class RejectedEvent(_Event):
    reason: Optional[str] = None
    assignment_duration_seconds: Optional[float] = None

    action = HistoryAction.REJECTED


@dataclass(frozen=True)
class ExpiredEvent(_Event):
    expired_at: Optional[str] = None
    assignment_attempt: int = 1

    action = HistoryAction.EXPIRED


@dataclass(frozen=True)
class ReassignedEvent(_Event):
    previous_assignment_id: UUID
    previous_delivery_user_id: Optional[UUID] = None
    assignment_attempt: int = 2

    action = HistoryAction.REASSIGNED


@dataclass(frozen=True)
class CancelledEvent(_Event):
    accepted_assignment_id: UUID

    action = HistoryAction.CANCELLED


HistoryEvent = Union[
    AssignedEvent,
    AcceptedEvent,
    RejectedEvent,
    ExpiredEvent,
    ReassignedEvent,
    CancelledEvent,
]
