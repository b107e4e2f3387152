"""
stores.py
---------
Interfaces the scheduling services consume, plus their Django ORM
implementations.

The services only ever see the Protocol shapes below, so tests can hand in
in-memory stubs. All methods are coroutines; the ORM implementations use
Django's async query API and run the transactional writes through
sync_to_async.

Storage-level guard:
- insert_appointment runs in one transaction that locks the staff row,
  re-checks overlap against live appointments and then inserts. The partial
  unique constraint on Appointment backs this up. Either rejection surfaces as
  SlotTakenError, the authoritative "slot taken" error.
"""

import logging
from typing import Protocol

from asgiref.sync import sync_to_async
from django.db import DatabaseError, IntegrityError, transaction

from ..models import OCCUPYING_STATUSES, Appointment, Service, Staff
from .exceptions import (
    AppointmentNotFoundError,
    IllegalTransitionError,
    PersistenceError,
    SlotTakenError,
)

logger = logging.getLogger(__name__)


# -------------------- Interfaces --------------------
class WorkingHoursStore(Protocol):
    async def get_active_schedule(self, staff_id, weekday): ...

    async def get_schedule_exception(self, staff_id, day): ...


class ServiceCatalog(Protocol):
    async def get_service(self, service_id): ...


class SubscriptionLookup(Protocol):
    async def has_active_subscription(
        self, client_phone, tenant_id, staff_id, service_id=None, on_date=None
    ) -> bool: ...

    async def get_active_subscription_id(
        self, client_phone, tenant_id, staff_id, service_id=None, on_date=None
    ): ...


class AppointmentStore(Protocol):
    async def list_appointments(self, staff_id, day): ...

    async def get_appointment(self, appointment_id): ...

    async def insert_appointment(self, appointment): ...

    async def update_status(self, appointment_id, status, payment_status=None, expected_status=None): ...


# -------------------- Django ORM implementations --------------------
class DjangoWorkingHoursStore:
    async def get_active_schedule(self, staff_id, weekday):
        from staff.models import WorkingHours

        return await WorkingHours.objects.filter(
            staff_id=staff_id, weekday=weekday, is_active=True
        ).afirst()

    async def get_schedule_exception(self, staff_id, day):
        from staff.models import ScheduleException

        return await ScheduleException.objects.filter(staff_id=staff_id, date=day).afirst()


class DjangoServiceCatalog:
    async def get_service(self, service_id):
        return await Service.objects.filter(pk=service_id).afirst()


class DjangoAppointmentStore:
    async def list_appointments(self, staff_id, day):
        """Live (calendar-occupying) appointments for one staff member and date."""
        qs = Appointment.objects.filter(
            staff_id=staff_id,
            date=day,
            status__in=OCCUPYING_STATUSES,
        ).order_by("start_time")
        return [appt async for appt in qs]

    async def get_appointment(self, appointment_id):
        return await Appointment.objects.filter(pk=appointment_id).afirst()

    async def insert_appointment(self, appointment):
        """Persist an unsaved Appointment and return its id. The row is not read back."""
        return await sync_to_async(self._insert)(appointment)

    async def update_status(self, appointment_id, status, payment_status=None, expected_status=None):
        """
        Set status (and optionally payment_status) on one appointment.

        expected_status makes this a compare-and-set: if the stored status no
        longer matches, nothing is written and IllegalTransitionError is raised.
        """
        return await sync_to_async(self._update_status)(
            appointment_id, status, payment_status, expected_status
        )

    def _insert(self, appointment):
        try:
            with transaction.atomic():
                # Row lock on the staff member serializes concurrent writers
                # for the same calendar. SQLite ignores it; there the IMMEDIATE
                # transaction mode already holds the database write lock.
                list(Staff.objects.select_for_update().filter(pk=appointment.staff_id).values_list("pk", flat=True))

                overlapping = Appointment.objects.filter(
                    staff_id=appointment.staff_id,
                    date=appointment.date,
                    status__in=OCCUPYING_STATUSES,
                    start_time__lt=appointment.end_time,
                    end_time__gt=appointment.start_time,
                ).exists()
                if overlapping:
                    logger.warning(
                        "Storage rejected appointment for staff=%s on %s at %s: interval occupied",
                        appointment.staff_id, appointment.date, appointment.start_time,
                    )
                    raise SlotTakenError("That time was just booked. Please pick another slot.")

                appointment.save(force_insert=True)
        except IntegrityError as exc:
            logger.warning(
                "Unique constraint rejected appointment for staff=%s on %s at %s",
                appointment.staff_id, appointment.date, appointment.start_time,
            )
            raise SlotTakenError("That time was just booked. Please pick another slot.") from exc
        except DatabaseError as exc:
            logger.error("Failed to insert appointment: %s", exc)
            raise PersistenceError(f"Could not save appointment: {exc}") from exc
        return appointment.pk

    def _update_status(self, appointment_id, status, payment_status, expected_status):
        try:
            with transaction.atomic():
                appt = Appointment.objects.select_for_update().filter(pk=appointment_id).first()
                if appt is None:
                    raise AppointmentNotFoundError(f"Appointment #{appointment_id} not found.")
                if expected_status is not None and appt.status != expected_status:
                    raise IllegalTransitionError(
                        f"Appointment #{appointment_id} changed to '{appt.status}' concurrently."
                    )

                update_fields = ["status", "updated_at"]
                appt.status = status
                if payment_status is not None:
                    appt.payment_status = payment_status
                    update_fields.append("payment_status")
                # save() (not queryset.update) so post_save feeds the change propagation.
                appt.save(update_fields=update_fields)
        except DatabaseError as exc:
            logger.error("Failed to update appointment #%s: %s", appointment_id, exc)
            raise PersistenceError(f"Could not update appointment: {exc}") from exc
        return appt
