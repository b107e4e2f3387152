"""
conflict_detector.py
--------------------
Overlap checks between candidate slots and existing appointments.

Overlap rule (half-open intervals):
    candidate_start < existing_end AND candidate_end > existing_start
Back-to-back appointments (one ends exactly when the other starts) do not
conflict. Only appointments in an occupying status (pending, confirmed,
queue_reserved) are considered; cancelled and no_show never block.
"""

from ..models import OCCUPYING_STATUSES
from .time_grid import parse_time_to_minutes


def intervals_overlap(a_start: int, a_end: int, b_start: int, b_end: int) -> bool:
    return a_start < b_end and a_end > b_start


def occupied_intervals(appointments):
    """
    (start, end) minute pairs for the appointments that hold calendar space.
    Stored times may carry seconds; they are normalized first.
    """
    intervals = []
    for appt in appointments:
        if appt.status not in OCCUPYING_STATUSES:
            continue
        intervals.append(
            (parse_time_to_minutes(appt.start_time), parse_time_to_minutes(appt.end_time))
        )
    return intervals


def has_conflict(start: int, duration_minutes: int, appointments) -> bool:
    end = start + duration_minutes
    return any(
        intervals_overlap(start, end, existing_start, existing_end)
        for existing_start, existing_end in occupied_intervals(appointments)
    )


def filter_conflict_free(candidates, appointments):
    """Keep the slots that overlap no occupying appointment, in input order."""
    intervals = occupied_intervals(appointments)
    return [
        slot
        for slot in candidates
        if not any(
            intervals_overlap(slot.start, slot.end, existing_start, existing_end)
            for existing_start, existing_end in intervals
        )
    ]
