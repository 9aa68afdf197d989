from __future__ import annotations

import pytest
from statemachine.exceptions import TransitionNotAllowed

from boop.api.models import BoopStatus
from boop.fsm import BoopFSM


def test_success_path() -> None:
    fsm = BoopFSM(initiator_id=1, target_id=2)
    assert fsm.current_state == fsm.requested
    fsm.begin()
    fsm.commit()
    assert fsm.current_state == fsm.committed
    assert fsm.status() == BoopStatus.success


def test_cooldown_rejection_is_terminal() -> None:
    fsm = BoopFSM(initiator_id=1, target_id=2)
    fsm.deny()
    assert fsm.status() == BoopStatus.cooldown_active
    with pytest.raises(TransitionNotAllowed):
        fsm.begin()


def test_abort_from_resolving() -> None:
    fsm = BoopFSM(initiator_id=1, target_id=2)
    fsm.begin()
    fsm.abort()
    assert fsm.status() == BoopStatus.failed


def test_cannot_commit_without_resolving() -> None:
    fsm = BoopFSM(initiator_id=1, target_id=2)
    with pytest.raises(TransitionNotAllowed):
        fsm.commit()
    assert fsm.current_state == fsm.requested
