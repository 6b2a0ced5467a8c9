from intake_bot.services.intake_store import (
    PendingIntake,
    PendingIntakeStore,
)
from intake_bot.services.state_machine import (
    IntakeStatus,
    InvalidTransitionError,
    can_transition,
    transition,
)
