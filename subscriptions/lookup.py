"""
lookup.py
---------
Django ORM implementation of the SubscriptionLookup interface the booking
manager consumes.

A subscription applies when it belongs to the business, matches the client
phone, is active, covers the date, and either covers every staff member or
the requested one (likewise for services).
"""

from django.db.models import Q
from django.utils import timezone

from .models import Subscription, SubscriptionStatus


class DjangoSubscriptionLookup:
    def active_subscriptions(self, client_phone, tenant_id, staff_id=None, service_id=None, on_date=None):
        on_date = on_date or timezone.localdate()
        qs = Subscription.objects.filter(
            business_id=tenant_id,
            client_phone=(client_phone or "").strip(),
            status=SubscriptionStatus.ACTIVE,
            starts_on__lte=on_date,
        ).filter(Q(ends_on__isnull=True) | Q(ends_on__gte=on_date))

        if staff_id is not None:
            qs = qs.filter(Q(staff__isnull=True) | Q(staff_id=staff_id))
        if service_id is not None:
            qs = qs.filter(Q(services__isnull=True) | Q(services__id=service_id))

        return qs.distinct().order_by("-starts_on", "-id")

    async def has_active_subscription(self, client_phone, tenant_id, staff_id, service_id=None, on_date=None):
        return await self.active_subscriptions(
            client_phone, tenant_id, staff_id, service_id=service_id, on_date=on_date
        ).aexists()

    async def get_active_subscription_id(self, client_phone, tenant_id, staff_id, service_id=None, on_date=None):
        """Id of the most recently started applicable subscription, or None."""
        return await self.active_subscriptions(
            client_phone, tenant_id, staff_id, service_id=service_id, on_date=on_date
        ).values_list("pk", flat=True).afirst()
