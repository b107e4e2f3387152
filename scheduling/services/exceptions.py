"""
exceptions.py
-------------
Errors raised by the scheduling services.

Every error derives from SchedulingError so views can translate the whole
family into HTTP responses in one place. None of them are retried inside the
core.
"""


class SchedulingError(Exception):
    """Base class for scheduling failures surfaced to the caller."""


class MalformedTimeError(SchedulingError):
    """A time-of-day value could not be parsed (non-numeric or out of range)."""


class InvalidDurationError(SchedulingError):
    """A service duration is zero or negative."""


class SlotNotOfferedError(SchedulingError):
    """The requested start is not one of the staff member's slots for that date."""


class SlotConflictError(SchedulingError):
    """
    The requested slot overlaps a live appointment.

    Raised by the pre-check against current data. Callers should re-fetch
    availability rather than retry the same slot.
    """


class SlotTakenError(SlotConflictError):
    """
    The storage layer rejected the write because the interval is occupied.

    This is the authoritative "slot taken" signal; it closes the race the
    pre-check cannot.
    """


class PersistenceError(SchedulingError):
    """The appointment store failed for a reason other than a slot conflict."""


class IllegalTransitionError(SchedulingError):
    """The requested status change is not permitted from the current status."""


class ServiceNotFoundError(SchedulingError):
    """The service does not exist or belongs to another business."""


class AppointmentNotFoundError(SchedulingError):
    """No appointment with the given id."""
