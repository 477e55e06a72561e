"""
Permit lifecycle state machine.

The transition table is the single source of truth for which status changes
are legal; services ask it for the next status instead of branching on
status strings themselves.
"""

import enum
from dataclasses import dataclass
from typing import Dict, FrozenSet, Tuple

from app.core.exceptions import InvalidStateError
from app.models.permit import PermitStatus


class PermitEvent(str, enum.Enum):
    """Events that move a permit through its lifecycle."""
    SUBMIT = "submit"
    CONSENSUS_APPROVED = "consensus_approved"
    CONSENSUS_REJECTED = "consensus_rejected"
    ACTIVATE = "activate"
    REQUEST_EXTENSION = "request_extension"
    RESOLVE_EXTENSION = "resolve_extension"
    CLOSE = "close"
    EXPIRE = "expire"


@dataclass(frozen=True)
class Transition:
    from_status: PermitStatus
    event: PermitEvent
    to_status: PermitStatus


TRANSITIONS: Tuple[Transition, ...] = (
    Transition(PermitStatus.DRAFT, PermitEvent.SUBMIT, PermitStatus.PENDING_APPROVAL),
    Transition(PermitStatus.PENDING_APPROVAL, PermitEvent.CONSENSUS_APPROVED, PermitStatus.APPROVED),
    Transition(PermitStatus.PENDING_APPROVAL, PermitEvent.CONSENSUS_REJECTED, PermitStatus.REJECTED),
    Transition(PermitStatus.APPROVED, PermitEvent.ACTIVATE, PermitStatus.ACTIVE),
    Transition(PermitStatus.ACTIVE, PermitEvent.REQUEST_EXTENSION, PermitStatus.EXTENSION_REQUESTED),
    Transition(PermitStatus.EXTENSION_REQUESTED, PermitEvent.RESOLVE_EXTENSION, PermitStatus.ACTIVE),
    Transition(PermitStatus.ACTIVE, PermitEvent.CLOSE, PermitStatus.CLOSED),
    Transition(PermitStatus.EXTENSION_REQUESTED, PermitEvent.CLOSE, PermitStatus.CLOSED),
    Transition(PermitStatus.ACTIVE, PermitEvent.EXPIRE, PermitStatus.CLOSED),
)

TERMINAL_STATUSES: FrozenSet[PermitStatus] = frozenset({PermitStatus.REJECTED, PermitStatus.CLOSED})


class PermitStateMachine:
    """Looks up legal transitions."""

    def __init__(self, transitions: Tuple[Transition, ...] = TRANSITIONS):
        self._table: Dict[Tuple[PermitStatus, PermitEvent], PermitStatus] = {
            (t.from_status, t.event): t.to_status for t in transitions
        }

    def can_fire(self, current: PermitStatus, event: PermitEvent) -> bool:
        return (current, event) in self._table

    def next_status(self, current: PermitStatus, event: PermitEvent) -> PermitStatus:
        """Return the status reached by firing event, or raise InvalidStateError."""
        try:
            return self._table[(current, event)]
        except KeyError:
            if current in TERMINAL_STATUSES:
                message = f"Permit is {current.value}; no further changes are accepted"
            else:
                message = f"Cannot {event.value.replace('_', ' ')} a permit in status {current.value}"
            raise InvalidStateError(
                message,
                details={"status": current.value, "event": event.value},
            ) from None

    def is_terminal(self, status: PermitStatus) -> bool:
        return status in TERMINAL_STATUSES


permit_state_machine = PermitStateMachine()
