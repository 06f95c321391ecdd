"""Matching Application Stage Guard.

Uses python-statemachine to describe which named operations make sense from
each stage of the matching application. The stage itself is never stored:
it is inferred from the presence of global-state keys each time an operation
starts, and the guard rejects operations that cannot succeed from there.

The external program is the authority. This guard only saves a round trip
(and the fees of a doomed group) when the observed state already rules the
operation out.

Transition table:
    IDLE      -> VERIFIED   (verify)
    VERIFIED  -> LEADING    (bid)
    LEADING   -> LEADING    (bid)
    LEADING   -> SETTLING   (action)
    VERIFIED  -> SETTLING   (reset)
    LEADING   -> SETTLING   (reset)
    SETTLING  -> SETTLING   (reclaim)
    SETTLING  -> IDLE       (reclaim_last)
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from statemachine import State, StateMachine

from tallysticks.domain.enums import GlobalKey, ProtocolStage


class ProtocolStageMachine(StateMachine):
    """State machine over the observable stages of the matching application.

    Usage:
        sm = ProtocolStageMachine(current_stage="VERIFIED")
        sm.bid()           # transitions to LEADING
        sm.stage           # "LEADING"
    """

    # --- States ---
    IDLE = State("IDLE", initial=True)
    VERIFIED = State("VERIFIED")
    LEADING = State("LEADING")
    SETTLING = State("SETTLING")

    # --- Events / Transitions ---
    verify = IDLE.to(VERIFIED)
    bid = VERIFIED.to(LEADING) | LEADING.to(LEADING)
    action = LEADING.to(SETTLING)
    reset = VERIFIED.to(SETTLING) | LEADING.to(SETTLING)
    reclaim = SETTLING.to(SETTLING)
    reclaim_last = SETTLING.to(IDLE)

    def __init__(self, current_stage: str = "IDLE") -> None:
        valid_values = {s.value for s in self.states}
        if current_stage not in valid_values:
            valid = ", ".join(sorted(valid_values))
            raise ValueError(f"Unknown stage '{current_stage}'. Valid stages: {valid}")
        super().__init__(start_value=current_stage)

    @property
    def stage(self) -> str:
        """Return the current stage value as a string (matches ProtocolStage)."""
        return str(self.current_state.value)

    def get_allowed_events(self) -> list[str]:
        """Return the event names that can fire from the current stage."""
        # Newer releases keep the identifier in `id` and a display label in `name`
        return [getattr(event, "id", None) or event.name for event in self.allowed_events]

    def allows(self, event_name: str) -> bool:
        return event_name in self.get_allowed_events()


def stage_from_global_state(global_state: Mapping[str, Any]) -> ProtocolStage:
    """Infer the protocol stage from which global keys are present.

    Values are irrelevant; only presence matters.
    """
    if GlobalKey.OWNER_ADDRESS in global_state:
        if GlobalKey.ESCROW_ADDRESS in global_state:
            return ProtocolStage.LEADING
        return ProtocolStage.VERIFIED
    if GlobalKey.BIDDING_TIMEOUT in global_state:
        return ProtocolStage.SETTLING
    return ProtocolStage.IDLE
