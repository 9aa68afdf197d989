from __future__ import annotations

import logging

from statemachine import State, StateMachine

from boop.api.models import BoopStatus


logger = logging.getLogger(__name__)


class BoopFSM(StateMachine):
    """Lifecycle of a single boop resolution.

    requested -> resolving -> committed
    requested -> rejected              (cooldown still active)
    requested | resolving -> failed    (self-boop, unknown identity, busy, persistence error)

    The orchestrator drives the transitions; the FSM guards against mutating
    anything after a terminal verdict.
    """

    requested = State("requested", value="requested", initial=True)
    resolving = State("resolving", value="resolving")
    committed = State("committed", value="committed", final=True)
    rejected = State("rejected", value="rejected", final=True)
    failed = State("failed", value="failed", final=True)

    begin = requested.to(resolving)
    deny = requested.to(rejected)
    commit = resolving.to(committed)
    abort = requested.to(failed) | resolving.to(failed)

    def __init__(self, *, initiator_id: int, target_id: int):
        self.pair_label = f"{initiator_id}->{target_id}"
        super().__init__()

    def on_enter_state(self, event: str, state: State) -> None:
        logger.debug("boop %s: entered %s (%s)", self.pair_label, state.id, event)

    def status(self) -> BoopStatus:
        if self.current_state == self.committed:
            return BoopStatus.success
        if self.current_state == self.rejected:
            return BoopStatus.cooldown_active
        return BoopStatus.failed
