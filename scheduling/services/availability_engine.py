"""
availability_engine.py
----------------------
Computes the bookable slots for one staff member, date and service:
1) the working window (weekly WorkingHours, or that date's ScheduleException),
2) candidate starts on the 10-minute grid (slot_generator), and
3) removal of candidates that overlap a live appointment (conflict_detector).

Dates before today have no slots. For today, candidates start no earlier than
the current wall-clock minute in the project time zone.
"""

import logging

from django.utils import timezone

from .conflict_detector import filter_conflict_free
from .exceptions import ServiceNotFoundError
from .slot_generator import generate_candidate_starts, minutes_not_before, resolve_window
from .stores import (
    DjangoAppointmentStore,
    DjangoServiceCatalog,
    DjangoWorkingHoursStore,
)
from .time_grid import weekday_index

logger = logging.getLogger(__name__)


class AvailabilityEngine:
    def __init__(self, schedules=None, catalog=None, appointments=None, clock=None):
        self.schedules = schedules or DjangoWorkingHoursStore()
        self.catalog = catalog or DjangoServiceCatalog()
        self.appointments = appointments or DjangoAppointmentStore()
        # Returns an aware (or naive local) datetime for "now".
        self.clock = clock or timezone.localtime

    async def get_service(self, service_id, business_id=None):
        service = await self.catalog.get_service(service_id)
        if service is None:
            raise ServiceNotFoundError(f"Service #{service_id} not found.")
        if business_id is not None and service.business_id != business_id:
            raise ServiceNotFoundError(f"Service #{service_id} is not offered by this business.")
        return service

    async def candidate_slots(self, staff_id, day, duration_minutes: int):
        """Grid-aligned candidates inside the working window, before conflict filtering."""
        now = self.clock()
        today = now.date()
        if day < today:
            # Still validates the duration so misconfigured services surface.
            generate_candidate_starts(None, duration_minutes)
            return []

        schedule = await self.schedules.get_active_schedule(staff_id, weekday_index(day))
        exception = await self.schedules.get_schedule_exception(staff_id, day)
        window = resolve_window(schedule, exception)

        not_before = minutes_not_before(now) if day == today else None
        return generate_candidate_starts(window, duration_minutes, not_before=not_before)

    async def slots_for_duration(self, staff_id, day, duration_minutes: int):
        candidates = await self.candidate_slots(staff_id, day, duration_minutes)
        if not candidates:
            return []
        existing = await self.appointments.list_appointments(staff_id, day)
        return filter_conflict_free(candidates, existing)

    async def get_available_slots(self, staff_id, day, service_id):
        """
        Ordered list of free Slot objects for (staff, date, service).

        Raises:
            ServiceNotFoundError: unknown service id
            InvalidDurationError: service duration <= 0
        """
        service = await self.get_service(service_id)
        slots = await self.slots_for_duration(staff_id, day, service.duration_minutes)
        logger.debug(
            "Availability staff=%s date=%s service=%s -> %d slot(s)",
            staff_id, day, service_id, len(slots),
        )
        return slots
