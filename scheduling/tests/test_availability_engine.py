from datetime import date, datetime, time, timedelta

from asgiref.sync import async_to_sync
from django.test import SimpleTestCase, TestCase
from django.utils import timezone

from scheduling.models import Appointment, Business, Service, Staff
from scheduling.services.availability_engine import AvailabilityEngine
from scheduling.services.exceptions import InvalidDurationError, ServiceNotFoundError
from scheduling.services.time_grid import format_minutes, weekday_index
from staff.models import ScheduleException, WorkingHours

from .stubs import (
    FixedClock,
    InMemoryAppointmentStore,
    InMemoryServiceCatalog,
    InMemoryWorkingHoursStore,
    hm,
)

TODAY = date(2026, 10, 19)        # Monday
NEXT_MONDAY = date(2026, 10, 26)
MONDAY = 1
STAFF = 7


def labels(slots):
    return [format_minutes(s.start) for s in slots]


class AvailabilityEngineTests(SimpleTestCase):
    def setUp(self):
        self.schedules = InMemoryWorkingHoursStore()
        self.schedules.add_schedule(STAFF, MONDAY, hm("09:00"), hm("12:00"))
        self.catalog = InMemoryServiceCatalog()
        self.catalog.add(1, duration_minutes=30)
        self.appointments = InMemoryAppointmentStore()
        self.clock = FixedClock(datetime(2026, 10, 19, 8, 0))
        self.engine = AvailabilityEngine(
            schedules=self.schedules,
            catalog=self.catalog,
            appointments=self.appointments,
            clock=self.clock,
        )

    async def test_future_date_without_appointments(self):
        slots = await self.engine.get_available_slots(STAFF, NEXT_MONDAY, 1)

        expected = [format_minutes(m) for m in range(540, 691, 10)]
        self.assertEqual(labels(slots), expected)
        self.assertEqual(expected[-1], "11:30")

    async def test_confirmed_appointment_excludes_overlapping_slots(self):
        self.appointments.seed(STAFF, NEXT_MONDAY, hm("10:00"), hm("10:30"), status="confirmed")

        starts = labels(await self.engine.get_available_slots(STAFF, NEXT_MONDAY, 1))

        for blocked in ["09:40", "09:50", "10:00", "10:10", "10:20"]:
            self.assertNotIn(blocked, starts)
        self.assertIn("09:30", starts)
        self.assertIn("10:30", starts)

    async def test_other_staff_and_other_days_do_not_block(self):
        self.appointments.seed(STAFF + 1, NEXT_MONDAY, hm("10:00"), hm("10:30"))
        self.appointments.seed(STAFF, NEXT_MONDAY + timedelta(days=7), hm("10:00"), hm("10:30"))

        slots = await self.engine.get_available_slots(STAFF, NEXT_MONDAY, 1)
        self.assertEqual(len(slots), 16)

    async def test_today_starts_from_the_snapped_current_time(self):
        self.schedules.add_schedule(STAFF, MONDAY, hm("09:00"), hm("18:00"))
        self.clock.now = datetime(2026, 10, 19, 10, 7)

        slots = await self.engine.get_available_slots(STAFF, TODAY, 1)
        self.assertEqual(labels(slots)[0], "10:10")

    async def test_past_dates_have_no_slots(self):
        slots = await self.engine.get_available_slots(STAFF, TODAY - timedelta(days=7), 1)
        self.assertEqual(slots, [])

    async def test_no_schedule_for_weekday_returns_empty(self):
        tuesday = NEXT_MONDAY + timedelta(days=1)
        self.assertEqual(await self.engine.get_available_slots(STAFF, tuesday, 1), [])

    async def test_inactive_schedule_returns_empty(self):
        self.schedules.add_schedule(STAFF, MONDAY, hm("09:00"), hm("12:00"), is_active=False)
        self.assertEqual(await self.engine.get_available_slots(STAFF, NEXT_MONDAY, 1), [])

    async def test_day_off_exception_returns_empty(self):
        self.schedules.add_exception(STAFF, NEXT_MONDAY)
        self.assertEqual(await self.engine.get_available_slots(STAFF, NEXT_MONDAY, 1), [])

    async def test_exception_window_replaces_weekly_hours(self):
        self.schedules.add_exception(STAFF, NEXT_MONDAY, hm("14:00"), hm("15:00"))
        slots = await self.engine.get_available_slots(STAFF, NEXT_MONDAY, 1)
        self.assertEqual(labels(slots), ["14:00", "14:10", "14:20", "14:30"])

    async def test_unknown_service(self):
        with self.assertRaises(ServiceNotFoundError):
            await self.engine.get_available_slots(STAFF, NEXT_MONDAY, 999)

    async def test_zero_duration_service_is_a_configuration_error(self):
        self.catalog.add(2, duration_minutes=0)
        with self.assertRaises(InvalidDurationError):
            await self.engine.get_available_slots(STAFF, NEXT_MONDAY, 2)


class AvailabilityEngineDatabaseTests(TestCase):
    """Same computation against the ORM stores."""

    def setUp(self):
        self.business = Business.objects.create(name="Barber One", slug="barber-one")
        self.staff = Staff.objects.create(business=self.business, name="Ana")
        self.service = Service.objects.create(
            business=self.business, name="Cut", duration_minutes=30, price="40.00"
        )
        self.day = timezone.localdate() + timedelta(days=7)
        WorkingHours.objects.create(
            staff=self.staff, weekday=weekday_index(self.day), start_time=time(9, 0), end_time=time(12, 0)
        )

    def get_slots(self):
        engine = AvailabilityEngine()
        return labels(async_to_sync(engine.get_available_slots)(self.staff.pk, self.day, self.service.pk))

    def test_live_appointments_block_and_history_does_not(self):
        for start, end, status in [
            (time(10, 0), time(10, 30), "confirmed"),
            (time(11, 0), time(11, 30), "cancelled"),
        ]:
            Appointment.objects.create(
                business=self.business, staff=self.staff, service=self.service, date=self.day,
                start_time=start, end_time=end, status=status,
                client_name="Client", client_phone="5551234567",
            )

        starts = self.get_slots()

        self.assertNotIn("10:00", starts)
        self.assertNotIn("09:50", starts)
        self.assertIn("09:30", starts)
        self.assertIn("11:00", starts)
        self.assertIn("11:30", starts)

    def test_schedule_exception_day_off(self):
        ScheduleException.objects.create(staff=self.staff, date=self.day, reason="Vacation")
        self.assertEqual(self.get_slots(), [])
