"""
change_feed.py
--------------
Per-tenant change propagation for appointments.

A TenantContext owns one ChangeFeed. Observers (UI lists, dashboards)
subscribe to the feed and re-fetch their whole appointment collection when an
event arrives; the event only says what happened to which id.

Delivery:
- at-least-once; a duplicate refresh is harmless
- no ordering guarantee between events
- published after the write's transaction commits
- an observer that raises is logged and skipped; the write already succeeded
"""

import logging
from dataclasses import dataclass

logger = logging.getLogger(__name__)

CREATED = "created"
UPDATED = "updated"
DELETED = "deleted"


@dataclass(frozen=True)
class ChangeEvent:
    business_id: int
    action: str
    appointment_id: int


class ChangeFeed:
    def __init__(self):
        self._observers = []

    def subscribe(self, observer):
        """Register a callable taking a ChangeEvent. Returns the observer."""
        if observer not in self._observers:
            self._observers.append(observer)
        return observer

    def unsubscribe(self, observer):
        if observer in self._observers:
            self._observers.remove(observer)

    @property
    def observers(self):
        return tuple(self._observers)

    def publish(self, event):
        # Snapshot so observers may unsubscribe themselves mid-delivery.
        for observer in tuple(self._observers):
            try:
                observer(event)
            except Exception:
                logger.exception(
                    "Change observer %r failed for %s appointment #%s",
                    observer, event.action, event.appointment_id,
                )


class TenantContext:
    """
    Everything scoped to one business: its id and its change feed.

    attach() starts forwarding Appointment saves/deletes for this business to
    the feed; detach() stops it. Contexts are independent, so two tenants (or
    two test cases) never see each other's events.
    """

    def __init__(self, business_id):
        self.business_id = business_id
        self.feed = ChangeFeed()
        self._attached = False

    @property
    def attached(self):
        return self._attached

    def attach(self):
        from ..signals import connect_tenant_context

        if not self._attached:
            connect_tenant_context(self)
            self._attached = True
        return self

    def detach(self):
        from ..signals import disconnect_tenant_context

        if self._attached:
            disconnect_tenant_context(self)
            self._attached = False

    def __enter__(self):
        return self.attach()

    def __exit__(self, exc_type, exc, tb):
        self.detach()
        return False
