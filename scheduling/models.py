# scheduling/models.py
#
# Purpose:
# - Core domain models for the scheduling core.
#
# Design highlights:
# - Business: the tenant. Staff, services and appointments all hang off one.
# - Service: duration and price; "active" controls bookability.
# - Staff: a person whose calendar can be booked. Working hours live in the
#   staff app. An optional auth User link ties a back-office login to one
#   business.
# - Appointment:
#   • Records staff, service, calendar date and a start/end time-of-day.
#   • status and payment_status are closed enumerations (TextChoices).
#   • Only pending, confirmed and queue_reserved occupy the calendar.
#   • Rows are never deleted by the core; cancelled/no_show are history.
#
# Notes for developers:
# - The partial unique constraint on (staff, date, start_time) is the storage
#   guard against two live appointments starting at the same moment. Overlaps
#   that do not share a start are rejected inside the insert transaction
#   (see scheduling/services/stores.py).
# - subscription_id references the external subscription system; it is a
#   plain integer so this app does not depend on the subscriptions app.
#

from django.contrib.auth.models import User
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models
from django.db.models import Q


# -------------------------
# Tenant
# -------------------------
class Business(models.Model):
    """A service business using the platform (one tenant)."""
    name = models.CharField(max_length=200)
    slug = models.SlugField(max_length=100, unique=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name_plural = "businesses"

    def __str__(self):
        return self.name


# -------------------------
# Service catalog item
# -------------------------
class Service(models.Model):
    """
    A service offered by a business.

    Rules:
    - duration_minutes must be >= 1
    - price must be >= 0 (free services are allowed)
    """
    business = models.ForeignKey(Business, on_delete=models.CASCADE, related_name="services")
    name = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    duration_minutes = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    price = models.DecimalField(
        max_digits=8,
        decimal_places=2,
        validators=[MinValueValidator(0)],
    )
    active = models.BooleanField(default=True)

    def __str__(self):
        return f"{self.name} ({self.duration_minutes} min)"


# -------------------------
# Staff member
# -------------------------
class Staff(models.Model):
    """
    A staff member whose calendar can be booked.
    - 'user' is the login that staff member uses for the back-office API;
      it scopes what that login can see and change to this business.
    """
    business = models.ForeignKey(Business, on_delete=models.CASCADE, related_name="staff")
    user = models.OneToOneField(
        User,
        on_delete=models.SET_NULL,
        related_name="staff_profile",
        null=True,
        blank=True,
    )
    name = models.CharField(max_length=200)
    email = models.EmailField(blank=True)
    role = models.CharField(max_length=100, blank=True)
    active = models.BooleanField(default=True)

    class Meta:
        verbose_name_plural = "staff"

    def __str__(self):
        return self.name


# -------------------------
# Appointment record
# -------------------------
class AppointmentStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    CONFIRMED = "confirmed", "Confirmed"
    CANCELLED = "cancelled", "Cancelled"
    NO_SHOW = "no_show", "No show"
    QUEUE_RESERVED = "queue_reserved", "Queue reserved"


class PaymentStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    PAID = "paid", "Paid"
    FAILED = "failed", "Failed"


# Statuses that hold calendar space. Everything else is history.
# Tuples, not sets: stored values are plain strings and compare equal to the
# enum members, but do not hash like them.
OCCUPYING_STATUSES = (
    AppointmentStatus.PENDING,
    AppointmentStatus.CONFIRMED,
    AppointmentStatus.QUEUE_RESERVED,
)
TERMINAL_STATUSES = (AppointmentStatus.CANCELLED, AppointmentStatus.NO_SHOW)


class Appointment(models.Model):
    """
    One booked interval on a staff member's calendar.

    end_time is always start_time + service.duration_minutes; it is stored so
    overlap checks never need the service row.
    """
    business = models.ForeignKey(Business, on_delete=models.CASCADE, related_name="appointments")
    staff = models.ForeignKey(Staff, on_delete=models.PROTECT, related_name="appointments")
    service = models.ForeignKey(Service, on_delete=models.PROTECT, related_name="appointments")
    date = models.DateField()
    start_time = models.TimeField()
    end_time = models.TimeField()
    status = models.CharField(
        max_length=20,
        choices=AppointmentStatus.choices,
        default=AppointmentStatus.PENDING,
    )
    payment_status = models.CharField(
        max_length=10,
        choices=PaymentStatus.choices,
        default=PaymentStatus.PENDING,
    )
    is_subscription_appointment = models.BooleanField(default=False)
    subscription_id = models.PositiveBigIntegerField(null=True, blank=True)
    client_name = models.CharField(max_length=200)
    client_phone = models.CharField(max_length=20)
    notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["date", "start_time"]
        indexes = [
            models.Index(fields=["staff", "date"], name="idx_appointment_staff_date"),
            models.Index(fields=["business", "date"], name="idx_appointment_business_date"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["staff", "date", "start_time"],
                condition=Q(status__in=["pending", "confirmed", "queue_reserved"]),
                name="uniq_live_appointment_start",
            ),
        ]

    def __str__(self):
        return f"{self.client_name} → {self.service_id} on {self.date} {self.start_time}"

    @property
    def occupies_calendar(self):
        return self.status in OCCUPYING_STATUSES

    def clean(self):
        if self.start_time and self.end_time and self.end_time <= self.start_time:
            raise ValidationError("end_time must be after start_time.")
