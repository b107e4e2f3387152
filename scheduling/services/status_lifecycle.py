"""
status_lifecycle.py
-------------------
Legal appointment status transitions and their side effects.

    queue_reserved ──slot_assigned──▶ pending | confirmed
    pending ──staff/payment──▶ confirmed
    pending | queue_reserved ──client/staff──▶ cancelled   (terminal)
    pending | confirmed ──staff──▶ no_show                  (terminal)

Freeing a slot needs no extra work: cancelled and no_show simply stop
counting as calendar occupancy.

Payment confirmation is an event, not a staff decision. It always records
payment_status=paid, but only advances pending/queue_reserved to confirmed;
a late payment never revives a cancelled or no_show appointment.
"""

import logging

from django.db import models

from ..models import AppointmentStatus, PaymentStatus, TERMINAL_STATUSES
from .exceptions import AppointmentNotFoundError, IllegalTransitionError
from .stores import DjangoAppointmentStore

logger = logging.getLogger(__name__)


class TransitionCause(models.TextChoices):
    STAFF_ACTION = "staff_action", "Staff action"
    CLIENT_ACTION = "client_action", "Client action"
    PAYMENT_CONFIRMED = "payment_confirmed", "Payment confirmed"
    SLOT_ASSIGNED = "slot_assigned", "Slot assigned"


S = AppointmentStatus
C = TransitionCause

# (from, to) -> causes allowed to make that move
ALLOWED_TRANSITIONS = {
    (S.PENDING, S.CONFIRMED): {C.STAFF_ACTION, C.PAYMENT_CONFIRMED},
    (S.PENDING, S.CANCELLED): {C.STAFF_ACTION, C.CLIENT_ACTION},
    (S.PENDING, S.NO_SHOW): {C.STAFF_ACTION},
    (S.CONFIRMED, S.NO_SHOW): {C.STAFF_ACTION},
    (S.QUEUE_RESERVED, S.PENDING): {C.SLOT_ASSIGNED},
    (S.QUEUE_RESERVED, S.CONFIRMED): {C.SLOT_ASSIGNED, C.PAYMENT_CONFIRMED},
    (S.QUEUE_RESERVED, S.CANCELLED): {C.STAFF_ACTION, C.CLIENT_ACTION},
}

# Statuses a payment confirmation advances to confirmed.
PAYMENT_ADVANCES_FROM = (S.PENDING, S.QUEUE_RESERVED)


def is_transition_allowed(current, new_status, cause) -> bool:
    allowed = ALLOWED_TRANSITIONS.get((S(current), S(new_status)))
    return allowed is not None and C(cause) in allowed


class StatusLifecycle:
    def __init__(self, appointments=None):
        self.appointments = appointments or DjangoAppointmentStore()

    async def _load(self, appointment_id):
        appointment = await self.appointments.get_appointment(appointment_id)
        if appointment is None:
            raise AppointmentNotFoundError(f"Appointment #{appointment_id} not found.")
        return appointment

    async def transition_status(self, appointment_id, new_status, cause):
        """
        Move an appointment to 'new_status' for the given cause.

        A payment_confirmed cause is routed through record_payment() so the
        stale-event rule applies.

        Raises:
            AppointmentNotFoundError: unknown id
            IllegalTransitionError: move not permitted from the current status
        """
        new_status = S(new_status)
        cause = C(cause)

        if cause == C.PAYMENT_CONFIRMED:
            if new_status != S.CONFIRMED:
                raise IllegalTransitionError("A payment confirmation can only confirm an appointment.")
            return await self.record_payment(appointment_id, PaymentStatus.PAID)

        appointment = await self._load(appointment_id)
        current = S(appointment.status)

        if current in TERMINAL_STATUSES:
            raise IllegalTransitionError(
                f"Appointment #{appointment_id} is {current.value}; its status can no longer change."
            )
        if not is_transition_allowed(current, new_status, cause):
            raise IllegalTransitionError(
                f"Cannot move appointment #{appointment_id} from {current.value} "
                f"to {new_status.value} ({cause.value})."
            )

        updated = await self.appointments.update_status(
            appointment_id, new_status, expected_status=current
        )
        logger.info(
            "Appointment #%s: %s -> %s (%s)", appointment_id, current.value, new_status.value, cause.value
        )
        return updated

    async def record_payment(self, appointment_id, payment_status):
        """
        Apply a payment event.

        paid: payment_status=paid; pending/queue_reserved advance to confirmed,
        any other status is left untouched.
        failed: payment_status=failed; status untouched.
        """
        payment_status = PaymentStatus(payment_status)
        appointment = await self._load(appointment_id)
        current = S(appointment.status)

        new_status = current
        if payment_status == PaymentStatus.PAID and current in PAYMENT_ADVANCES_FROM:
            new_status = S.CONFIRMED
        elif payment_status == PaymentStatus.PAID:
            logger.warning(
                "Payment confirmed for appointment #%s in status %s; status left unchanged",
                appointment_id, current.value,
            )

        updated = await self.appointments.update_status(
            appointment_id,
            new_status,
            payment_status=payment_status,
            expected_status=current,
        )
        logger.info(
            "Appointment #%s payment=%s status %s -> %s",
            appointment_id, payment_status.value, current.value, new_status.value,
        )
        return updated
