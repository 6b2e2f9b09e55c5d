"""In-memory stand-ins for the catalog and reservation store the engine reads through."""

from dataclasses import dataclass, field
from datetime import datetime

from facility_booking.engine.overlap import intervals_overlap
from facility_booking.models.reservation import NON_BLOCKING_STATUSES, ReservationStatus
from facility_booking.models.resource import ResourceType


@dataclass
class FakeResource:
    id: int
    type: ResourceType = ResourceType.CONFERENCE_ROOM
    isRestricted: bool = False
    active: bool = True
    maintenanceMode: bool = False
    bufferMinutesBetween: int = 15


@dataclass
class FakeReservation:
    id: int
    resource_ids: set[int]
    start: datetime
    end: datetime
    status: ReservationStatus = ReservationStatus.APPROVED


class InMemoryCatalog:

    def __init__(self, resources=()):
        self.resources = {r.id: r for r in resources}

    def add(self, resource: FakeResource) -> FakeResource:
        self.resources[resource.id] = resource
        return resource

    def get_many(self, resource_ids):
        return [self.resources[i] for i in sorted(set(resource_ids)) if i in self.resources]

    def bookable_pool(self, resource_type):
        return [r for r in self.resources.values()
                if r.type == resource_type and r.active and not r.maintenanceMode]


@dataclass
class InMemoryReservationStore:
    reservations: list[FakeReservation] = field(default_factory=list)

    def book(self, resource_ids, start, end, status=ReservationStatus.APPROVED) -> FakeReservation:
        r = FakeReservation(len(self.reservations) + 1, set(resource_ids), start, end, status)
        self.reservations.append(r)
        return r

    def _blocking(self, resource_ids, start, end, exclude_reservation_id=None):
        ids = set(resource_ids)
        for r in self.reservations:
            if r.id == exclude_reservation_id or r.status in NON_BLOCKING_STATUSES:
                continue
            if r.resource_ids & ids and intervals_overlap(r.start, r.end, start, end):
                yield r

    def exists_overlapping(self, resource_ids, start, end, exclude_reservation_id=None) -> bool:
        return next(self._blocking(resource_ids, start, end, exclude_reservation_id), None) is not None

    def reserved_resource_ids(self, resource_ids, start, end) -> set[int]:
        held = set()
        for r in self._blocking(resource_ids, start, end):
            held |= r.resource_ids
        return held & set(resource_ids)
