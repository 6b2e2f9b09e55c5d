"""
Overlap detection over half-open intervals.

Two intervals [a, b) and [c, d) intersect iff a < d and c < b, so a booking
ending at 11:00 and one starting at 11:00 do not conflict.
"""

import logging
from datetime import datetime
from typing import Iterable

from facility_booking.engine.repositories import ReservationStore
from facility_booking.utils.timeutil import as_utc

logger = logging.getLogger(__name__)


def intervals_overlap(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    return a_start < b_end and b_start < a_end


def _checked_query(resource_ids: Iterable[int], start: datetime, end: datetime):
    ids = set(resource_ids)
    if not ids:
        raise ValueError("resource_ids must not be empty")
    start, end = as_utc(start), as_utc(end)
    if start >= end:
        raise ValueError("start must be before end")
    return ids, start, end


def has_conflict(
    store: ReservationStore,
    resource_ids: Iterable[int],
    start: datetime,
    end: datetime,
    exclude_reservation_id: int | None = None,
) -> bool:
    """
    True if any blocking reservation on any of resource_ids intersects [start, end).

    exclude_reservation_id lets a reservation being edited in place be checked
    against all the others.
    """
    ids, start, end = _checked_query(resource_ids, start, end)
    conflict = store.exists_overlapping(ids, start, end, exclude_reservation_id)
    if conflict:
        logger.debug(f"Conflict on resources {sorted(ids)} for {start.isoformat()} - {end.isoformat()}")
    return conflict


def reserved_resource_ids(
    store: ReservationStore,
    resource_ids: Iterable[int],
    start: datetime,
    end: datetime,
) -> set[int]:
    """Members of resource_ids already held for some part of [start, end)."""
    ids, start, end = _checked_query(resource_ids, start, end)
    return store.reserved_resource_ids(ids, start, end) & ids
