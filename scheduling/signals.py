# scheduling/signals.py
#
# Purpose:
# - Forward Appointment saves/deletes to a TenantContext's change feed.
#   * post_save, created      -> "created"
#   * post_save, not created  -> "updated"
#   * post_delete             -> "deleted"
#
# Notes:
# - Receivers are connected per context (dispatch_uid is unique per context),
#   never at import time, so there is no process-wide observer list.
# - Events are published with transaction.on_commit so observers that re-fetch
#   see the committed row.
# - Saves from other businesses are ignored by each context's receiver.
#
from django.db import transaction
from django.db.models.signals import post_delete, post_save

from .models import Appointment
from .services.change_feed import CREATED, DELETED, UPDATED, ChangeEvent


def _dispatch_uid(context, signal_name):
    return f"scheduling.tenant_context.{id(context)}.{signal_name}"


def _publish_on_commit(context, action, instance):
    event = ChangeEvent(
        business_id=instance.business_id,
        action=action,
        appointment_id=instance.pk,
    )
    transaction.on_commit(lambda: context.feed.publish(event))


def connect_tenant_context(context):
    def on_save(sender, instance, created, **kwargs):
        if instance.business_id != context.business_id:
            return
        _publish_on_commit(context, CREATED if created else UPDATED, instance)

    def on_delete(sender, instance, **kwargs):
        if instance.business_id != context.business_id:
            return
        _publish_on_commit(context, DELETED, instance)

    post_save.connect(
        on_save, sender=Appointment, weak=False, dispatch_uid=_dispatch_uid(context, "post_save")
    )
    post_delete.connect(
        on_delete, sender=Appointment, weak=False, dispatch_uid=_dispatch_uid(context, "post_delete")
    )


def disconnect_tenant_context(context):
    post_save.disconnect(sender=Appointment, dispatch_uid=_dispatch_uid(context, "post_save"))
    post_delete.disconnect(sender=Appointment, dispatch_uid=_dispatch_uid(context, "post_delete"))
