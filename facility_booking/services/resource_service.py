import logging

from sqlalchemy.orm import Session
from sqlalchemy import or_

from facility_booking.models.resource import Resource, ResourceType
from facility_booking.schemas.resource import (
    ResourceCreateRequest, ResourceUpdateRequest, ResourceStatusRequest,
)
from facility_booking.utils.exceptions import NotFoundException, AppException, ErrorCode
from facility_booking.utils.timeutil import isoformat

logger = logging.getLogger(__name__)


def serialize_resource(r: Resource) -> dict:
    return {
        "id":                     r.id,
        "name":                   r.name,
        "type":                   r.type.value,
        "location":               r.location,
        "capacity":               r.capacity,
        "description":            r.description,
        "isRestricted":           r.isRestricted,
        "active":                 r.active,
        "maintenanceMode":        r.maintenanceMode,
        "maintenanceNotes":       r.maintenanceNotes,
        "isAvailable":            r.is_available,
        "minBookingMinutes":      r.minBookingMinutes,
        "maxBookingMinutes":      r.maxBookingMinutes,
        "bufferMinutesBetween":   r.bufferMinutesBetween,
        "externalBookingEnabled": r.externalBookingEnabled,
        "createdAt":              isoformat(r.createdAt),
        "updatedAt":              isoformat(r.updatedAt),
    }


class ResourceService:

    def list_resources(
        self, db: Session, page: int, limit: int,
        search: str | None, resource_type: str | None,
        available_only: bool, min_capacity: int | None,
    ) -> tuple[list[dict], int]:
        q = db.query(Resource).filter(Resource.active.is_(True))

        if search:
            kw = f"%{search}%"
            q = q.filter(or_(Resource.name.ilike(kw), Resource.location.ilike(kw)))
        if resource_type:
            q = q.filter(Resource.type == resource_type)
        if available_only:
            q = q.filter(Resource.maintenanceMode.is_(False))
        if min_capacity:
            q = q.filter(Resource.capacity >= min_capacity)

        total = q.count()
        items = q.order_by(Resource.name).offset((page - 1) * limit).limit(limit).all()
        return [serialize_resource(r) for r in items], total

    def list_types(self) -> list[str]:
        return [t.value for t in ResourceType]

    def get_resource(self, db: Session, resource_id: int) -> dict:
        return serialize_resource(self._get(db, resource_id))

    def create_resource(self, db: Session, data: ResourceCreateRequest, actor_id: int) -> dict:
        resource = Resource(**data.model_dump(), active=True, maintenanceMode=False, lockVersion=0)
        db.add(resource)
        db.commit()
        db.refresh(resource)
        logger.info(f"User #{actor_id} created resource #{resource.id} '{resource.name}' ({resource.type.value})")
        return serialize_resource(resource)

    def update_resource(self, db: Session, resource_id: int, data: ResourceUpdateRequest, actor_id: int) -> dict:
        r = self._get(db, resource_id)

        for key, value in data.model_dump(exclude_unset=True).items():
            if value is not None:
                setattr(r, key, value)
        if r.minBookingMinutes >= r.maxBookingMinutes:
            raise AppException(400, "minBookingMinutes must be less than maxBookingMinutes",
                               ErrorCode.VALIDATION_ERROR, field="minBookingMinutes")

        db.commit()
        db.refresh(r)
        logger.info(f"User #{actor_id} updated resource #{r.id}")
        return serialize_resource(r)

    def update_status(self, db: Session, resource_id: int, data: ResourceStatusRequest, actor_id: int) -> dict:
        r = self._get(db, resource_id)

        old = (r.active, r.maintenanceMode)
        if data.active is not None:
            r.active = data.active
        if data.maintenanceMode is not None:
            r.maintenanceMode = data.maintenanceMode
        if data.maintenanceNotes is not None:
            r.maintenanceNotes = data.maintenanceNotes
        logger.info(f"User #{actor_id} changed resource #{r.id} status "
                    f"(active, maintenance) {old} -> {(r.active, r.maintenanceMode)}")
        db.commit()
        db.refresh(r)
        return serialize_resource(r)

    def deactivate_resource(self, db: Session, resource_id: int, actor_id: int) -> dict:
        """Soft delete: reservations keep referencing the row."""
        r = self._get(db, resource_id)
        r.active = False
        db.commit()
        db.refresh(r)
        logger.info(f"User #{actor_id} deactivated resource #{r.id} '{r.name}'")
        return serialize_resource(r)

    @staticmethod
    def _get(db: Session, resource_id: int) -> Resource:
        r = db.query(Resource).filter(Resource.id == resource_id).first()
        if not r:
            raise NotFoundException("Resource")
        return r


resource_service = ResourceService()
