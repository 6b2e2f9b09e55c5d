from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import Optional

from facility_booking.database import get_db
from facility_booking.dependencies import get_current_user, get_admin_user
from facility_booking.models.resource import ResourceType
from facility_booking.models.user import User
from facility_booking.schemas.resource import (
    ResourceCreateRequest, ResourceUpdateRequest, ResourceStatusRequest,
)
from facility_booking.schemas.common import success_response, paginated_response
from facility_booking.services.resource_service import resource_service

router = APIRouter(prefix="/resources")


@router.get("", summary="List active resources (paginated)")
def list_resources(
    page:          int                    = Query(1, ge=1),
    limit:         int                    = Query(20, ge=1, le=100),
    search:        Optional[str]          = Query(None),
    type:          Optional[ResourceType] = Query(None),
    availableOnly: bool                   = Query(False, description="Hide resources under maintenance"),
    minCapacity:   Optional[int]          = Query(None, ge=1),
    db:            Session                = Depends(get_db),
    _:             User                   = Depends(get_current_user),
):
    data, total = resource_service.list_resources(db, page, limit, search, type, availableOnly, minCapacity)
    return paginated_response("Resources retrieved successfully", data, total, page, limit)


@router.get("/types", summary="List resource types")
def list_types():
    return success_response("Resource types retrieved", resource_service.list_types())


@router.get("/{resource_id}", summary="Get resource by ID")
def get_resource(resource_id: int, db: Session = Depends(get_db), _: User = Depends(get_current_user)):
    return success_response("Resource retrieved", resource_service.get_resource(db, resource_id))


@router.post("", status_code=status.HTTP_201_CREATED, summary="Create resource (Admin)")
def create_resource(
    body: ResourceCreateRequest,
    db:   Session = Depends(get_db),
    current_user: User = Depends(get_admin_user),
):
    data = resource_service.create_resource(db, body, current_user.id)
    return success_response("Resource created successfully", data)


@router.put("/{resource_id}", summary="Update resource (Admin)")
def update_resource(
    resource_id: int,
    body:        ResourceUpdateRequest,
    db:          Session = Depends(get_db),
    current_user: User = Depends(get_admin_user),
):
    data = resource_service.update_resource(db, resource_id, body, current_user.id)
    return success_response("Resource updated successfully", data)


@router.patch("/{resource_id}/status", summary="Toggle active / maintenance mode (Admin)")
def update_status(
    resource_id: int,
    body:        ResourceStatusRequest,
    db:          Session = Depends(get_db),
    current_user: User = Depends(get_admin_user),
):
    data = resource_service.update_status(db, resource_id, body, current_user.id)
    return success_response("Resource status updated", data)


@router.delete("/{resource_id}", summary="Deactivate resource (Admin)")
def delete_resource(
    resource_id: int,
    db:          Session = Depends(get_db),
    current_user: User = Depends(get_admin_user),
):
    data = resource_service.deactivate_resource(db, resource_id, current_user.id)
    return success_response("Resource deactivated successfully", data)
