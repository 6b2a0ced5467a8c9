from enum import Enum


class IntakeStatus(str, Enum):
    STORED = "stored"
    CONFIRMING = "confirming"
    CONFIRMED = "confirmed"
    FAILED = "failed"


VALID_TRANSITIONS = {
    IntakeStatus.STORED: [IntakeStatus.CONFIRMING],
    IntakeStatus.CONFIRMING: [IntakeStatus.CONFIRMED, IntakeStatus.FAILED],
    IntakeStatus.CONFIRMED: [],
    IntakeStatus.FAILED: [],
}

TERMINAL_STATES = frozenset({IntakeStatus.CONFIRMED, IntakeStatus.FAILED})


class InvalidTransitionError(Exception):
    def __init__(self, from_state: IntakeStatus, to_state: IntakeStatus):
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(f"Invalid transition: {from_state.value} -> {to_state.value}")


def can_transition(from_state: IntakeStatus, to_state: IntakeStatus) -> bool:
    """Check if transition is valid."""
    allowed = VALID_TRANSITIONS.get(from_state, [])
    return to_state in allowed


def transition(from_state: IntakeStatus, to_state: IntakeStatus) -> IntakeStatus:
    """Perform state transition. Raises InvalidTransitionError if not allowed."""
    if not can_transition(from_state, to_state):
        raise InvalidTransitionError(from_state, to_state)
    return to_state


def is_terminal(state: IntakeStatus) -> bool:
    return state in TERMINAL_STATES

