from pydantic import BaseModel, field_validator, model_validator
from typing import Optional
from datetime import datetime

from facility_booking.utils.timeutil import as_utc


class ReservationCreateRequest(BaseModel):
    resourceIds: list[int]
    startTime:   datetime
    endTime:     datetime
    purpose:     Optional[str] = None
    isExternal:  bool = False
    externalOrg: Optional[str] = None

    @field_validator("resourceIds")
    @classmethod
    def check_resource_ids(cls, v):
        if not v: raise ValueError("At least one resource must be requested")
        # Order-preserving de-duplication
        return list(dict.fromkeys(v))

    @field_validator("startTime", "endTime")
    @classmethod
    def normalize_utc(cls, v):
        return as_utc(v)

    @model_validator(mode="after")
    def check_times(self) -> "ReservationCreateRequest":
        if self.endTime <= self.startTime:
            raise ValueError("endTime must be after startTime")
        if self.isExternal and not (self.externalOrg or "").strip():
            raise ValueError("externalOrg is required for external bookings")
        return self


class RescheduleRequest(BaseModel):
    startTime: datetime
    endTime:   datetime
    notes:     Optional[str] = None

    @field_validator("startTime", "endTime")
    @classmethod
    def normalize_utc(cls, v):
        return as_utc(v)

    @model_validator(mode="after")
    def check_times(self) -> "RescheduleRequest":
        if self.endTime <= self.startTime:
            raise ValueError("endTime must be after startTime")
        return self


class ApproveRequest(BaseModel):
    notes: Optional[str] = None


class RejectRequest(BaseModel):
    notes: str

    @field_validator("notes")
    @classmethod
    def check_notes(cls, v):
        if not v.strip(): raise ValueError("Rejection notes are required")
        return v.strip()


class CancelRequest(BaseModel):
    notes: Optional[str] = None
