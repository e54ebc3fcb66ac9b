"""
Vehicle Funding State Machine

This module is the SINGLE SOURCE OF TRUTH for funding status transitions.
Status only moves when a repayment is appended to a vehicle's funding record;
funding itself is set once when the vehicle is stocked.

    NO_FUNDING        (terminal, nothing to repay)
    FUNDED         -> PARTIALLY_REPAID | FULLY_REPAID
    PARTIALLY_REPAID -> PARTIALLY_REPAID | FULLY_REPAID
    FULLY_REPAID   -> FULLY_REPAID
"""

from typing import Dict, List, Tuple

from dealer_backoffice.schemas.enums import FundingStatus


class FundingTransitionError(Exception):
    """Raised when a repayment would move funding status the wrong way."""
    pass


# =============================================================================
# TRANSITION RULES
# =============================================================================

# Format: current_status -> [list of allowed next statuses]
FUNDING_TRANSITIONS: Dict[FundingStatus, List[FundingStatus]] = {
    FundingStatus.NO_FUNDING: [],       # Terminal state - nothing to repay
    FundingStatus.FUNDED: [
        FundingStatus.PARTIALLY_REPAID,  # First part repayment
        FundingStatus.FULLY_REPAID,      # Repaid in one go
    ],
    FundingStatus.PARTIALLY_REPAID: [
        FundingStatus.PARTIALLY_REPAID,  # Further part repayment
        FundingStatus.FULLY_REPAID,      # Remaining debt cleared
    ],
    FundingStatus.FULLY_REPAID: [
        FundingStatus.FULLY_REPAID,      # Late repayments are recorded, status holds
    ],
}

TRANSITION_ACTIONS: Dict[Tuple[FundingStatus, FundingStatus], str] = {
    (FundingStatus.FUNDED, FundingStatus.PARTIALLY_REPAID): "Part Repayment",
    (FundingStatus.FUNDED, FundingStatus.FULLY_REPAID): "Repay in Full",
    (FundingStatus.PARTIALLY_REPAID, FundingStatus.PARTIALLY_REPAID): "Part Repayment",
    (FundingStatus.PARTIALLY_REPAID, FundingStatus.FULLY_REPAID): "Repay Remaining",
    (FundingStatus.FULLY_REPAID, FundingStatus.FULLY_REPAID): "Additional Repayment",
}

STATUS_LABELS: Dict[FundingStatus, str] = {
    FundingStatus.NO_FUNDING: "No Funding",
    FundingStatus.FUNDED: "Funded",
    FundingStatus.PARTIALLY_REPAID: "Partially Repaid",
    FundingStatus.FULLY_REPAID: "Fully Repaid",
}


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def can_transition(current_status: FundingStatus, new_status: FundingStatus) -> bool:
    """Check if a transition is allowed."""
    return new_status in FUNDING_TRANSITIONS.get(current_status, [])


def get_allowed_transitions(current_status: FundingStatus) -> List[FundingStatus]:
    """Get list of statuses that can be transitioned to from current status."""
    return FUNDING_TRANSITIONS.get(current_status, [])


def get_transition_action(current_status: FundingStatus, new_status: FundingStatus) -> str:
    """Get human-readable action name for a transition."""
    return TRANSITION_ACTIONS.get(
        (current_status, new_status),
        f"{current_status.value} -> {new_status.value}",
    )


def validate_transition(current_status: FundingStatus, new_status: FundingStatus) -> None:
    """
    Validate a status transition caused by a repayment.

    Raises:
        FundingTransitionError: If the transition is not allowed
    """
    if can_transition(current_status, new_status):
        return

    allowed = get_allowed_transitions(current_status)
    if not allowed:
        raise FundingTransitionError(
            f"Funding in '{current_status.value}' status cannot take repayments. "
            f"This is a terminal state."
        )
    raise FundingTransitionError(
        f"Cannot change funding from '{current_status.value}' to '{new_status.value}'. "
        f"Allowed transitions: {', '.join(s.value for s in allowed)}"
    )


def get_status_label(status: FundingStatus) -> str:
    return STATUS_LABELS[status]
