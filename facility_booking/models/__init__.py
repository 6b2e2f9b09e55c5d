"""
Import all models here so that:
1. Alembic can auto-detect them when generating migrations
2. Relationships between models resolve correctly

Parent tables are imported before child tables.
"""

from facility_booking.models.user import User, UserRole
from facility_booking.models.resource import Resource, ResourceType
from facility_booking.models.reservation import (
    Reservation, ReservationStatus, ApprovalType, reservation_resources,
)
from facility_booking.models.audit_log import AuditLog
from facility_booking.models.system_setting import SystemSetting

__all__ = [
    "User",
    "UserRole",
    "Resource",
    "ResourceType",
    "Reservation",
    "ReservationStatus",
    "ApprovalType",
    "reservation_resources",
    "AuditLog",
    "SystemSetting",
]
