"""
app/flow/states.py

Purpose: Defines the per-user conversation states

- Closed enums for the user state and the application status
- Single source of truth for flow stages
- State transition table and validation
"""

from enum import Enum
from typing import Dict, List


class UserState(str, Enum):
    """
    Where a user currently is in the conversation.
    The machine is cyclic: every flow ends back in NONE.
    """

    NONE = "none"
    MESSAGING_ADMIN = "messaging_admin"
    COLLECTING_APPLICATION = "collecting_application"


class ApplicationStatus(str, Enum):
    """Application status mirrored on the user record."""

    NONE = "none"
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class SubmissionStatus(str, Enum):
    """Status of a finalized Application document."""

    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"


class DecisionAction(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"


# Decision -> (Application.status, User.application_status)
DECISION_OUTCOMES: Dict[DecisionAction, tuple] = {
    DecisionAction.APPROVE: (SubmissionStatus.APPROVED, ApplicationStatus.APPROVED),
    DecisionAction.REJECT: (SubmissionStatus.REJECTED, ApplicationStatus.REJECTED),
}


# Valid state transitions
STATE_TRANSITIONS: Dict[UserState, List[UserState]] = {
    UserState.NONE: [
        UserState.NONE,  # cancel / back to menu / apply refused / /start
        UserState.MESSAGING_ADMIN,
        UserState.COLLECTING_APPLICATION,
    ],
    UserState.MESSAGING_ADMIN: [
        UserState.NONE,  # message relayed, cancel or back to menu
    ],
    UserState.COLLECTING_APPLICATION: [
        UserState.NONE,  # submitted, cancel or back to menu
        UserState.COLLECTING_APPLICATION,  # file added or rejected
    ],
}

# Applying is only possible from these statuses
APPLY_ALLOWED_STATUSES = (ApplicationStatus.NONE, ApplicationStatus.REJECTED)


def is_valid_transition(from_state: UserState, to_state: UserState) -> bool:
    """
    Checks if a state transition is valid.

    Args:
        from_state: Current state
        to_state: Target state

    Returns:
        True if transition is allowed, False otherwise
    """
    allowed_transitions = STATE_TRANSITIONS.get(from_state, [])
    return to_state in allowed_transitions


def parse_state(value) -> UserState:
    """
    Reads a stored state, falling back to NONE for unknown values so a
    stale document can never leave a user stuck outside the machine.
    """
    try:
        return UserState(value)
    except ValueError:
        return UserState.NONE


def parse_application_status(value) -> ApplicationStatus:
    try:
        return ApplicationStatus(value)
    except ValueError:
        return ApplicationStatus.NONE
