from facility_booking.engine.admission import AdmissionEngine, AdmissionPolicy, Decision, Verdict
from facility_booking.engine.overlap import has_conflict, intervals_overlap, reserved_resource_ids
from facility_booking.engine.repositories import (
    ResourceCatalog,
    ReservationStore,
    SqlResourceCatalog,
    SqlReservationStore,
)

__all__ = [
    "AdmissionEngine",
    "AdmissionPolicy",
    "Decision",
    "Verdict",
    "has_conflict",
    "intervals_overlap",
    "reserved_resource_ids",
    "ResourceCatalog",
    "ReservationStore",
    "SqlResourceCatalog",
    "SqlReservationStore",
]
