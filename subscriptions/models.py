# subscriptions/models.py
#
# Purpose:
# - Client subscriptions (pre-paid plans) held with a business.
#
# Design:
# - Keyed by client phone + business; optionally pinned to one staff member
#   and/or a set of services. An empty pin means "covers all".
# - The scheduling core never imports this module; it talks to
#   subscriptions.lookup through the SubscriptionLookup interface.
#
from django.db import models


class SubscriptionStatus(models.TextChoices):
    ACTIVE = "active", "Active"
    CANCELLED = "cancelled", "Cancelled"
    EXPIRED = "expired", "Expired"


class Subscription(models.Model):
    business = models.ForeignKey(
        "scheduling.Business",
        on_delete=models.CASCADE,
        related_name="subscriptions",
    )
    client_name = models.CharField(max_length=200, blank=True)
    client_phone = models.CharField(max_length=20, db_index=True)
    staff = models.ForeignKey(
        "scheduling.Staff",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="subscriptions",
        help_text="Leave empty to cover every staff member.",
    )
    services = models.ManyToManyField(
        "scheduling.Service",
        blank=True,
        related_name="subscriptions",
        help_text="Leave empty to cover every service.",
    )
    status = models.CharField(
        max_length=10,
        choices=SubscriptionStatus.choices,
        default=SubscriptionStatus.ACTIVE,
    )
    starts_on = models.DateField()
    ends_on = models.DateField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-starts_on", "-id"]

    def __str__(self):
        return f"Subscription #{self.pk} for {self.client_phone} ({self.status})"
