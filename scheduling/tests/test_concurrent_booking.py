import threading
from datetime import time, timedelta

from asgiref.sync import async_to_sync
from django.db import connection
from django.test import TransactionTestCase
from django.utils import timezone

from scheduling.models import Appointment, Business, Service, Staff
from scheduling.services.booking_manager import BookingManager
from scheduling.services.change_feed import TenantContext
from scheduling.services.exceptions import SlotConflictError
from scheduling.services.time_grid import weekday_index
from staff.models import WorkingHours


class ConcurrentBookingTests(TransactionTestCase):
    """Two clients booking one slot at the same moment, each on its own connection."""

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

    def race(self, start):
        barrier = threading.Barrier(2)
        results = []
        lock = threading.Lock()

        def book(phone):
            manager = BookingManager(TenantContext(self.business.pk))
            try:
                barrier.wait(timeout=10)
                outcome = async_to_sync(manager.create_appointment)(
                    self.staff.pk, self.service.pk, self.day, start, "Client", phone
                )
            except Exception as exc:
                outcome = exc
            finally:
                connection.close()
            with lock:
                results.append(outcome)

        threads = [
            threading.Thread(target=book, args=(phone,))
            for phone in ("5550000001", "5550000002")
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=60)
        return results

    def test_exactly_one_booking_wins(self):
        for start in ("09:00", "09:30", "10:00", "10:30", "11:00"):
            with self.subTest(start=start):
                results = self.race(start)

                booked = [r for r in results if isinstance(r, Appointment)]
                rejected = [r for r in results if not isinstance(r, Appointment)]
                self.assertEqual(len(booked), 1, results)
                self.assertEqual(len(rejected), 1, results)
                self.assertIsInstance(rejected[0], SlotConflictError)

                hour, minute = map(int, start.split(":"))
                self.assertEqual(
                    Appointment.objects.filter(
                        staff=self.staff, date=self.day, start_time=time(hour, minute)
                    ).count(),
                    1,
                )
