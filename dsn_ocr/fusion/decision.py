"""Accept / confirm / manual-entry decisions and the scan state machine."""

from enum import Enum
from typing import Optional

import structlog
from pydantic import BaseModel, ConfigDict, Field

from dsn_ocr.core.models import EnhancedResult

logger = structlog.get_logger(__name__)


class DecisionState(str, Enum):
    """Where a scan session currently stands.

    - scanning: waiting for a plausible reading
    - candidate_detected: a reading is being scored
    - auto_accepted: accepted without human input
    - pending_confirmation: the user must confirm or edit
    - manual_entry_required: the user must type the DSN
    """

    SCANNING = "scanning"
    CANDIDATE_DETECTED = "candidate_detected"
    AUTO_ACCEPTED = "auto_accepted"
    PENDING_CONFIRMATION = "pending_confirmation"
    MANUAL_ENTRY_REQUIRED = "manual_entry_required"


OUTCOME_STATES = frozenset({
    DecisionState.AUTO_ACCEPTED,
    DecisionState.PENDING_CONFIRMATION,
    DecisionState.MANUAL_ENTRY_REQUIRED,
})

# Valid transitions for state machine validation
VALID_STATE_TRANSITIONS: dict[DecisionState, set[DecisionState]] = {
    DecisionState.SCANNING: {DecisionState.CANDIDATE_DETECTED},
    DecisionState.CANDIDATE_DETECTED: set(OUTCOME_STATES) | {DecisionState.SCANNING},
    DecisionState.AUTO_ACCEPTED: {DecisionState.SCANNING},
    DecisionState.PENDING_CONFIRMATION: {DecisionState.SCANNING, DecisionState.MANUAL_ENTRY_REQUIRED},
    DecisionState.MANUAL_ENTRY_REQUIRED: {DecisionState.SCANNING},
}


class DispositionAction(str, Enum):
    """How the user (or host) closed out an outcome."""

    ACCEPT = "accept"
    REJECT = "reject"
    EDIT = "edit"


class InvalidStateTransitionError(Exception):
    """Raised when an invalid scan state transition is attempted."""

    def __init__(self, current: str, target: str):
        self.message = f"Invalid scan state transition from {current} to {target}"
        self.code = "INVALID_STATE_TRANSITION"
        super().__init__(self.message)


# =============================================================================
# Decision Models
# =============================================================================

class ScanDecision(BaseModel):
    """A scored reading together with what to do about it."""
    model_config = ConfigDict(frozen=True)

    result: EnhancedResult
    state: DecisionState
    reason: str
    is_valid_dsn: bool = False
    group_size: int = Field(1, description="Frames that corroborated this reading")


class FrameOutcome(BaseModel):
    """Ranked decisions for one analysed frame."""
    model_config = ConfigDict(frozen=True)

    timestamp: float
    decisions: list[ScanDecision] = Field(default_factory=list)
    config_version: int

    @property
    def best(self) -> Optional[ScanDecision]:
        return self.decisions[0] if self.decisions else None


def decide(result: EnhancedResult, pattern_valid: bool) -> ScanDecision:
    """Map a scored reading onto an outcome state.

    Rules, first match wins:
    1. No DSN pattern match, or composite below the base threshold:
       manual entry.
    2. Composite at or above the manual-verification threshold and not
       flagged: auto-accept.
    3. Otherwise: ask the user to confirm.
    """
    threshold = result.threshold_used
    composite = result.composite_confidence

    if not pattern_valid:
        state, reason = DecisionState.MANUAL_ENTRY_REQUIRED, "no_dsn_pattern"
    elif composite < threshold.base_threshold:
        state, reason = DecisionState.MANUAL_ENTRY_REQUIRED, "below_base_threshold"
    elif composite >= threshold.manual_verification_threshold and not result.requires_manual_verification:
        state, reason = DecisionState.AUTO_ACCEPTED, "above_verification_threshold"
    elif result.requires_manual_verification and composite >= threshold.manual_verification_threshold:
        state, reason = DecisionState.PENDING_CONFIRMATION, "verification_forced"
    else:
        state, reason = DecisionState.PENDING_CONFIRMATION, "below_verification_threshold"

    return ScanDecision(result=result, state=state, reason=reason, is_valid_dsn=pattern_valid)


class ScanStateMachine:
    """Tracks one scan session through its decision states.

    SCANNING -> CANDIDATE_DETECTED -> outcome -> (dispose) -> SCANNING
    """

    def __init__(self) -> None:
        self.state = DecisionState.SCANNING
        self.decision: Optional[ScanDecision] = None

    def _transition(self, target: DecisionState, **context: object) -> None:
        if target not in VALID_STATE_TRANSITIONS.get(self.state, set()):
            raise InvalidStateTransitionError(self.state.value, target.value)
        logger.info(
            "scan_state_transition",
            from_state=self.state.value,
            to_state=target.value,
            **context,
        )
        self.state = target

    @property
    def is_resolved(self) -> bool:
        return self.state in OUTCOME_STATES

    def candidate_detected(self) -> None:
        """A plausible reading entered scoring."""
        self._transition(DecisionState.CANDIDATE_DETECTED)

    def candidate_lost(self) -> None:
        """The reading disappeared before an outcome was reached."""
        self._transition(DecisionState.SCANNING)
        self.decision = None

    def resolve(self, decision: ScanDecision) -> DecisionState:
        """Move to the outcome carried by `decision`.

        Passes through CANDIDATE_DETECTED when called while scanning.
        """
        if self.state is DecisionState.SCANNING:
            self.candidate_detected()
        self._transition(decision.state, text=decision.result.text, reason=decision.reason)
        self.decision = decision
        return self.state

    def require_manual_entry(self) -> None:
        """User chose to type the DSN instead of confirming a reading."""
        self._transition(DecisionState.MANUAL_ENTRY_REQUIRED, reason="user_requested")

    def dispose(self, action: DispositionAction = DispositionAction.ACCEPT) -> Optional[ScanDecision]:
        """Close out the current outcome and go back to scanning.

        Returns:
            The decision that was disposed of, if any.
        """
        decision = self.decision
        self._transition(DecisionState.SCANNING, action=DispositionAction(action).value)
        self.decision = None
        return decision

    def reset(self) -> None:
        """Force the machine back to scanning without validation."""
        self.state = DecisionState.SCANNING
        self.decision = None
