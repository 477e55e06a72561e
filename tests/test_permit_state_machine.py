"""
Permit state machine tests.
"""

import pytest

from app.core.exceptions import InvalidStateError
from app.models.permit import PermitStatus
from app.services.permit_state_machine import (
    TERMINAL_STATUSES,
    TRANSITIONS,
    PermitEvent,
    permit_state_machine,
)


@pytest.mark.parametrize("transition", TRANSITIONS)
def test_listed_transitions_are_legal(transition):
    assert permit_state_machine.next_status(transition.from_status, transition.event) == transition.to_status


@pytest.mark.parametrize("status", sorted(TERMINAL_STATUSES, key=lambda s: s.value))
@pytest.mark.parametrize("event", list(PermitEvent))
def test_terminal_statuses_accept_nothing(status, event):
    assert not permit_state_machine.can_fire(status, event)
    with pytest.raises(InvalidStateError) as exc:
        permit_state_machine.next_status(status, event)
    assert "no further changes" in exc.value.message


def test_unlisted_pairs_are_rejected():
    legal = {(t.from_status, t.event) for t in TRANSITIONS}
    for status in PermitStatus:
        for event in PermitEvent:
            if (status, event) in legal:
                continue
            with pytest.raises(InvalidStateError):
                permit_state_machine.next_status(status, event)


def test_approved_is_not_directly_closable():
    assert not permit_state_machine.can_fire(PermitStatus.APPROVED, PermitEvent.CLOSE)
    assert permit_state_machine.can_fire(PermitStatus.EXTENSION_REQUESTED, PermitEvent.CLOSE)
    assert not permit_state_machine.can_fire(PermitStatus.EXTENSION_REQUESTED, PermitEvent.EXPIRE)
