"""
Read contracts the booking engine depends on, and their SQLAlchemy implementations.

The engine only ever sees `ResourceCatalog` and `ReservationStore`; tests hand it
in-memory fakes implementing the same methods.
"""

from datetime import datetime
from typing import Any, Iterable, Protocol

from sqlalchemy import update
from sqlalchemy.orm import Session

from facility_booking.models.reservation import (
    Reservation, NON_BLOCKING_STATUSES, reservation_resources,
)
from facility_booking.models.resource import Resource


class ResourceCatalog(Protocol):
    def get_many(self, resource_ids: Iterable[int]) -> list[Any]:
        """Resources with the given ids, in ascending id order. Unknown ids are skipped."""
        ...

    def bookable_pool(self, resource_type: Any) -> list[Any]:
        """Every active, non-maintenance resource of a type."""
        ...


class ReservationStore(Protocol):
    def exists_overlapping(
        self,
        resource_ids: Iterable[int],
        start: datetime,
        end: datetime,
        exclude_reservation_id: int | None = None,
    ) -> bool:
        ...

    def reserved_resource_ids(
        self, resource_ids: Iterable[int], start: datetime, end: datetime,
    ) -> set[int]:
        """Subset of resource_ids held by a blocking reservation intersecting [start, end)."""
        ...


_BLOCKING_EXCLUDED = sorted(NON_BLOCKING_STATUSES, key=lambda s: s.value)


class SqlResourceCatalog:

    def __init__(self, db: Session):
        self.db = db

    def get_many(self, resource_ids: Iterable[int]) -> list[Resource]:
        ids = list(set(resource_ids))
        if not ids:
            return []
        return self.db.query(Resource).filter(Resource.id.in_(ids)).order_by(Resource.id).all()

    def bookable_pool(self, resource_type) -> list[Resource]:
        return self.db.query(Resource).filter(
            Resource.type == resource_type,
            Resource.active.is_(True),
            Resource.maintenanceMode.is_(False),
        ).order_by(Resource.id).all()


class SqlReservationStore:

    def __init__(self, db: Session):
        self.db = db

    def _overlap_filters(self, resource_ids: list[int], start: datetime, end: datetime) -> list:
        return [
            reservation_resources.c.resourceId.in_(resource_ids),
            Reservation.status.notin_(_BLOCKING_EXCLUDED),
            Reservation.startTime < end,
            Reservation.endTime   > start,
        ]

    def exists_overlapping(self, resource_ids, start, end, exclude_reservation_id=None) -> bool:
        ids = list(set(resource_ids))
        q = self.db.query(Reservation.id)\
                   .join(reservation_resources, reservation_resources.c.reservationId == Reservation.id)\
                   .filter(*self._overlap_filters(ids, start, end))
        if exclude_reservation_id is not None:
            q = q.filter(Reservation.id != exclude_reservation_id)
        return q.first() is not None

    def reserved_resource_ids(self, resource_ids, start, end) -> set[int]:
        ids = list(set(resource_ids))
        rows = self.db.query(reservation_resources.c.resourceId)\
                      .join(Reservation, reservation_resources.c.reservationId == Reservation.id)\
                      .filter(*self._overlap_filters(ids, start, end))\
                      .distinct().all()
        return {row[0] for row in rows}

    def lock_resources(self, resource_ids: Iterable[int]) -> None:
        """
        Take the write lock on each resource row, ascending by id.
        Held until the surrounding transaction ends: a row lock on PostgreSQL,
        the database write lock on SQLite.
        """
        for resource_id in sorted(set(resource_ids)):
            self.db.execute(
                update(Resource)
                .where(Resource.id == resource_id)
                .values(lockVersion=Resource.lockVersion + 1)
                .execution_options(synchronize_session=False)
            )
