"""
Loan application state machine.

An application starts ``pending`` and may move once, to ``approved`` or
``rejected``, or be cancelled (deleted) by its borrower while still pending.
The fee status is independent: ``unpaid`` until a checkout session is
confirmed as paid.
"""
from enum import Enum
from typing import Any, Dict, Optional


class ApplicationStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class FeeStatus(str, Enum):
    UNPAID = "unpaid"
    PAID = "paid"


class ApplicationAction(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"
    CANCEL = "cancel"


# None means the document is removed
TRANSITIONS: Dict[tuple, Optional[ApplicationStatus]] = {
    (ApplicationStatus.PENDING, ApplicationAction.APPROVE): ApplicationStatus.APPROVED,
    (ApplicationStatus.PENDING, ApplicationAction.REJECT): ApplicationStatus.REJECTED,
    (ApplicationStatus.PENDING, ApplicationAction.CANCEL): None,
}


class InvalidTransition(Exception):
    def __init__(self, current: Any, action: ApplicationAction):
        self.current = current
        self.action = action
        super().__init__(f"Cannot {action.value} an application that is {current}")


def next_status(current: Any, action: ApplicationAction) -> Optional[ApplicationStatus]:
    """Return the status ``action`` leads to from ``current``.

    Raises InvalidTransition for any pair outside the table, including
    unknown stored values.
    """
    try:
        state = ApplicationStatus(current)
    except ValueError:
        raise InvalidTransition(current, action)
    key = (state, action)
    if key not in TRANSITIONS:
        raise InvalidTransition(state.value, action)
    return TRANSITIONS[key]


def action_for_status(status: str) -> ApplicationAction:
    if status == ApplicationStatus.APPROVED.value:
        return ApplicationAction.APPROVE
    if status == ApplicationStatus.REJECTED.value:
        return ApplicationAction.REJECT
    raise ValueError(f"No decision leads to {status!r}")


def decision_fields(
    action: ApplicationAction,
    handled_by: str,
    timestamp: str,
    reason: Optional[str] = None,
) -> Dict[str, Any]:
    """Fields written when a manager or admin decides an application."""
    target = TRANSITIONS[(ApplicationStatus.PENDING, action)]
    if target is None:
        raise ValueError("Cancellation removes the application")
    fields: Dict[str, Any] = {
        "status": target.value,
        "handledBy": handled_by,
        "updatedAt": timestamp,
    }
    if target is ApplicationStatus.APPROVED:
        fields["approvedAt"] = timestamp
    else:
        fields["rejectedAt"] = timestamp
        fields["rejectionReason"] = reason
    return fields
