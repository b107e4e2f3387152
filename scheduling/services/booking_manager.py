"""
booking_manager.py
------------------
Turns a booking request into a persisted Appointment.

Steps:
1. Re-check the requested start against current data (must be an offered,
   conflict-free slot). This is a best-effort pre-check.
2. Ask the subscription collaborator whether the client holds an active
   subscription with this business/staff member.
3. Build the appointment: subscription clients are stamped paid up front.
4. Persist. The store's own guard is the source of truth for double-booking:
   a storage rejection surfaces as SlotTakenError.

Notes:
- The returned Appointment is built from the request plus the id the insert
  returned. Public (anonymous) write paths cannot read the row back, so the
  row is never re-fetched here.
- No retries: storage failures propagate as PersistenceError.
- 'context' only supplies the tenant (business_id). Change events are not
  published from here: the post_save receivers deliver them to every
  attached TenantContext of that business, so the context handed to a
  BookingManager does not need to be attached itself.
"""

import logging

from ..models import Appointment, AppointmentStatus, PaymentStatus
from .availability_engine import AvailabilityEngine
from .conflict_detector import has_conflict
from .exceptions import SchedulingError, SlotConflictError, SlotNotOfferedError
from .stores import DjangoAppointmentStore
from .time_grid import format_minutes, minutes_to_time, parse_time_to_minutes

logger = logging.getLogger(__name__)

INITIAL_STATUSES = (AppointmentStatus.PENDING, AppointmentStatus.QUEUE_RESERVED)


class BookingManager:
    def __init__(
        self,
        context,
        subscriptions=None,
        catalog=None,
        schedules=None,
        appointments=None,
        clock=None,
    ):
        if subscriptions is None:
            from subscriptions.lookup import DjangoSubscriptionLookup

            subscriptions = DjangoSubscriptionLookup()

        self.context = context
        self.subscriptions = subscriptions
        self.appointments = appointments or DjangoAppointmentStore()
        self.availability = AvailabilityEngine(
            schedules=schedules,
            catalog=catalog,
            appointments=self.appointments,
            clock=clock,
        )

    async def create_appointment(
        self,
        staff_id,
        service_id,
        date,
        start_time,
        client_name,
        client_phone,
        notes="",
        initial_status=AppointmentStatus.PENDING,
    ):
        """
        Book 'start_time' on 'date' with staff member 'staff_id'.

        Args:
            start_time: "HH:MM" (seconds/fractions tolerated) or datetime.time
            initial_status: pending, or queue_reserved for walk-in/queue flows

        Raises:
            MalformedTimeError: unparseable start_time
            ServiceNotFoundError: unknown service, or one from another business
            InvalidDurationError: service duration <= 0
            SlotNotOfferedError: start is outside the window, off-grid or past
            SlotConflictError: start overlaps a live appointment (pre-check)
            SlotTakenError: storage rejected the write (slot taken meanwhile)
            PersistenceError: any other storage failure
        """
        if initial_status not in INITIAL_STATUSES:
            raise SchedulingError(f"Appointments cannot be created as '{initial_status}'.")

        start = parse_time_to_minutes(start_time)
        service = await self.availability.get_service(service_id, business_id=self.context.business_id)
        duration = service.duration_minutes

        # 1) Pre-check against current data.
        candidates = await self.availability.candidate_slots(staff_id, date, duration)
        if not any(slot.start == start for slot in candidates):
            raise SlotNotOfferedError(
                f"{format_minutes(start)} on {date} is not an available start for this staff member."
            )
        existing = await self.appointments.list_appointments(staff_id, date)
        if has_conflict(start, duration, existing):
            raise SlotConflictError(
                f"{format_minutes(start)} on {date} overlaps an existing appointment. "
                "Please refresh availability."
            )

        # 2) Subscription short-circuit. A subscription that lapses between the
        # two calls yields no id and the booking is billed normally.
        subscription_id = None
        if await self.subscriptions.has_active_subscription(
            client_phone, self.context.business_id, staff_id, service_id=service.pk, on_date=date
        ):
            subscription_id = await self.subscriptions.get_active_subscription_id(
                client_phone, self.context.business_id, staff_id, service_id=service.pk, on_date=date
            )

        # 3) Build.
        appointment = Appointment(
            business_id=self.context.business_id,
            staff_id=staff_id,
            service_id=service.pk,
            date=date,
            start_time=minutes_to_time(start),
            end_time=minutes_to_time(start + duration),
            status=initial_status,
            client_name=client_name,
            client_phone=client_phone,
            notes=notes or "",
        )
        if subscription_id is not None:
            appointment.payment_status = PaymentStatus.PAID
            appointment.is_subscription_appointment = True
            appointment.subscription_id = subscription_id
        else:
            appointment.payment_status = PaymentStatus.PENDING
            appointment.is_subscription_appointment = False

        # 4) Persist; the store's guard is authoritative.
        appointment.pk = await self.appointments.insert_appointment(appointment)

        logger.info(
            "Booked appointment #%s business=%s staff=%s %s %s-%s (subscription=%s)",
            appointment.pk, self.context.business_id, staff_id, date,
            format_minutes(start), format_minutes(start + duration), subscription_id,
        )
        return appointment
