from datetime import time, timedelta

from asgiref.sync import async_to_sync
from django.test import SimpleTestCase, TestCase
from django.utils import timezone

from scheduling.models import Appointment, Business, Service, Staff
from scheduling.services.booking_manager import BookingManager
from scheduling.services.change_feed import CREATED, DELETED, UPDATED, ChangeEvent, ChangeFeed, TenantContext
from scheduling.services.status_lifecycle import StatusLifecycle
from scheduling.services.time_grid import weekday_index
from staff.models import WorkingHours


class ChangeFeedTests(SimpleTestCase):
    def test_subscribe_and_publish(self):
        feed = ChangeFeed()
        received = []
        feed.subscribe(received.append)

        event = ChangeEvent(business_id=1, action=CREATED, appointment_id=5)
        feed.publish(event)

        self.assertEqual(received, [event])

    def test_unsubscribe_stops_delivery(self):
        feed = ChangeFeed()
        received = []
        observer = feed.subscribe(received.append)
        feed.unsubscribe(observer)

        feed.publish(ChangeEvent(1, UPDATED, 5))

        self.assertEqual(received, [])
        self.assertEqual(feed.observers, ())

    def test_failing_observer_is_logged_and_others_still_run(self):
        feed = ChangeFeed()
        received = []

        def broken(event):
            raise RuntimeError("boom")

        feed.subscribe(broken)
        feed.subscribe(received.append)

        with self.assertLogs("scheduling.services.change_feed", level="ERROR"):
            feed.publish(ChangeEvent(1, DELETED, 5))

        self.assertEqual(len(received), 1)

    def test_observer_may_unsubscribe_itself(self):
        feed = ChangeFeed()
        calls = []

        def once(event):
            calls.append(event)
            feed.unsubscribe(once)

        feed.subscribe(once)
        feed.publish(ChangeEvent(1, CREATED, 1))
        feed.publish(ChangeEvent(1, CREATED, 2))

        self.assertEqual(len(calls), 1)


class TenantContextTests(TestCase):
    def setUp(self):
        self.business = Business.objects.create(name="Barber One", slug="barber-one")
        self.other = Business.objects.create(name="Barber Two", slug="barber-two")
        self.day = timezone.localdate() + timedelta(days=3)

    def make_appointment(self, business, start=time(10, 0)):
        staff = Staff.objects.create(business=business, name="Ana")
        service = Service.objects.create(business=business, name="Cut", duration_minutes=30, price="40.00")
        return Appointment.objects.create(
            business=business, staff=staff, service=service, date=self.day,
            start_time=start, end_time=time(start.hour, start.minute + 30),
            client_name="Maria", client_phone="5551234567",
        )

    def test_created_updated_deleted_events(self):
        received = []
        with TenantContext(self.business.pk) as context:
            context.feed.subscribe(received.append)

            with self.captureOnCommitCallbacks(execute=True):
                appointment = self.make_appointment(self.business)
            with self.captureOnCommitCallbacks(execute=True):
                async_to_sync(StatusLifecycle().transition_status)(appointment.pk, "confirmed", "staff_action")
            appointment_id = appointment.pk
            with self.captureOnCommitCallbacks(execute=True):
                appointment.delete()

        self.assertEqual(
            [(e.action, e.appointment_id) for e in received],
            [(CREATED, appointment_id), (UPDATED, appointment_id), (DELETED, appointment_id)],
        )
        self.assertTrue(all(e.business_id == self.business.pk for e in received))

    def test_events_wait_for_commit(self):
        received = []
        with TenantContext(self.business.pk) as context:
            context.feed.subscribe(received.append)
            with self.captureOnCommitCallbacks(execute=False) as callbacks:
                self.make_appointment(self.business)
            self.assertEqual(received, [])
            self.assertEqual(len(callbacks), 1)

    def test_other_tenants_are_not_notified(self):
        mine, theirs = [], []
        with TenantContext(self.business.pk) as a, TenantContext(self.other.pk) as b:
            a.feed.subscribe(mine.append)
            b.feed.subscribe(theirs.append)
            with self.captureOnCommitCallbacks(execute=True):
                self.make_appointment(self.other)

        self.assertEqual(mine, [])
        self.assertEqual(len(theirs), 1)

    def test_detached_context_receives_nothing(self):
        received = []
        context = TenantContext(self.business.pk).attach()
        context.feed.subscribe(received.append)
        context.detach()
        self.assertFalse(context.attached)

        with self.captureOnCommitCallbacks(execute=True):
            self.make_appointment(self.business)

        self.assertEqual(received, [])

    def test_booking_reaches_attached_context_of_same_business(self):
        """The manager's own context is never attached; the long-lived one still hears the booking."""
        staff = Staff.objects.create(business=self.business, name="Ana")
        service = Service.objects.create(business=self.business, name="Cut", duration_minutes=30, price="40.00")
        WorkingHours.objects.create(
            staff=staff, weekday=weekday_index(self.day), start_time=time(9, 0), end_time=time(12, 0)
        )
        received = []

        with TenantContext(self.business.pk) as listener:
            listener.feed.subscribe(received.append)
            manager = BookingManager(TenantContext(self.business.pk))
            self.assertFalse(manager.context.attached)

            with self.captureOnCommitCallbacks(execute=True):
                appointment = async_to_sync(manager.create_appointment)(
                    staff.pk, service.pk, self.day, "10:00", "Maria", "5551234567"
                )

        self.assertEqual(received, [ChangeEvent(self.business.pk, CREATED, appointment.pk)])

    def test_failing_observer_does_not_roll_back_the_write(self):
        def broken(event):
            raise RuntimeError("observer down")

        with TenantContext(self.business.pk) as context:
            context.feed.subscribe(broken)
            with self.assertLogs("scheduling.services.change_feed", level="ERROR"):
                with self.captureOnCommitCallbacks(execute=True):
                    appointment = self.make_appointment(self.business)

        self.assertTrue(Appointment.objects.filter(pk=appointment.pk).exists())
