"""Appointment status state machine.

The appointment service computes every new status through ``next_status``;
nothing else decides what ``appointments.status`` becomes.
"""

from enum import Enum

from medibook.core.exceptions import AlreadyTerminalException, InvalidTransitionException
from medibook.schemas.appointments import AppointmentStatus, PaymentStatus


class AppointmentEvent(str, Enum):
    """Lifecycle events that can move an appointment."""

    UPDATE_STATUS = "update_status"
    CANCEL = "cancel"
    RESCHEDULE = "reschedule"


# Statuses the clinician may set directly, keyed by the current status
STATUS_UPDATE_EDGES: dict[AppointmentStatus, frozenset[AppointmentStatus]] = {
    AppointmentStatus.PENDING: frozenset(
        {
            AppointmentStatus.CONFIRMED,
            AppointmentStatus.CANCELLED,
            AppointmentStatus.NO_SHOW,
            AppointmentStatus.COMPLETED,
        }
    ),
    AppointmentStatus.CONFIRMED: frozenset(
        {
            AppointmentStatus.COMPLETED,
            AppointmentStatus.NO_SHOW,
        }
    ),
    AppointmentStatus.RESCHEDULED: frozenset(
        {
            AppointmentStatus.CONFIRMED,
            AppointmentStatus.CANCELLED,
            AppointmentStatus.NO_SHOW,
            AppointmentStatus.COMPLETED,
        }
    ),
}

TERMINAL_STATUSES = frozenset(
    {
        AppointmentStatus.COMPLETED,
        AppointmentStatus.CANCELLED,
        AppointmentStatus.NO_SHOW,
    }
)

# Appointments in these statuses no longer hold their slot
SLOT_RELEASING_STATUSES = frozenset(
    {
        AppointmentStatus.CANCELLED,
        AppointmentStatus.NO_SHOW,
    }
)


def is_completion_retry(current: AppointmentStatus, requested: AppointmentStatus) -> bool:
    """Check whether a status update repeats an already applied completion."""
    return current == AppointmentStatus.COMPLETED and requested == AppointmentStatus.COMPLETED


def allowed_status_updates(current: AppointmentStatus) -> frozenset[AppointmentStatus]:
    """Statuses a clinician may move an appointment to from ``current``."""
    return STATUS_UPDATE_EDGES.get(current, frozenset())


def next_status(
    current: AppointmentStatus,
    event: AppointmentEvent,
    requested: AppointmentStatus | None = None,
) -> AppointmentStatus:
    """
    Resolve the status an event moves an appointment to.

    Args:
        current: Status the appointment is in now
        event: Lifecycle event being applied
        requested: Target status for ``UPDATE_STATUS`` events

    Returns:
        The new status

    Raises:
        AlreadyTerminalException: Cancel or reschedule on a closed appointment
        InvalidTransitionException: Status update that is not a defined edge
    """
    if event in (AppointmentEvent.CANCEL, AppointmentEvent.RESCHEDULE):
        if current in TERMINAL_STATUSES:
            action = "cancel" if event == AppointmentEvent.CANCEL else "reschedule"
            raise AlreadyTerminalException(
                f"Cannot {action} appointment that is already {current.value}",
                details={"status": current.value},
            )
        if event == AppointmentEvent.CANCEL:
            return AppointmentStatus.CANCELLED
        return AppointmentStatus.RESCHEDULED

    if requested is None:
        raise InvalidTransitionException(
            "A target status is required",
            details={"field": "status", "from": current.value},
        )

    if requested not in allowed_status_updates(current):
        raise InvalidTransitionException(
            f"Cannot change appointment status from {current.value} to {requested.value}",
            details={
                "field": "status",
                "from": current.value,
                "to": requested.value,
                "allowed": sorted(status.value for status in allowed_status_updates(current)),
            },
        )

    return requested


# Payment statuses the payment collaborator may record, keyed by the current one.
# ``refunded`` is only ever set by cancelling a paid appointment.
PAYMENT_EDGES: dict[PaymentStatus, frozenset[PaymentStatus]] = {
    PaymentStatus.PENDING: frozenset({PaymentStatus.PAID, PaymentStatus.FAILED}),
    PaymentStatus.FAILED: frozenset({PaymentStatus.PAID, PaymentStatus.PENDING}),
}


def next_payment_status(current: PaymentStatus, requested: PaymentStatus) -> PaymentStatus:
    """
    Resolve a payment status change recorded by the payment collaborator.

    Raises:
        InvalidTransitionException: If the change is not allowed
    """
    if requested not in PAYMENT_EDGES.get(current, frozenset()):
        raise InvalidTransitionException(
            f"Cannot change payment status from {current.value} to {requested.value}",
            details={"field": "payment.status", "from": current.value, "to": requested.value},
        )
    return requested
