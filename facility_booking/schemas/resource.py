from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Optional
from facility_booking.models.resource import ResourceType


class ResourceCreateRequest(BaseModel):
    name:                   str
    type:                   ResourceType
    location:               str
    capacity:               int = Field(ge=1, le=1000)
    description:            Optional[str] = None
    isRestricted:           bool = False
    minBookingMinutes:      int = Field(30, ge=15)
    maxBookingMinutes:      int = Field(480, ge=30)
    bufferMinutesBetween:   int = Field(15, ge=0, le=120)
    externalBookingEnabled: bool = False

    @field_validator("name", "location")
    @classmethod
    def check_not_empty(cls, v):
        if not v.strip(): raise ValueError("Field cannot be empty")
        return v.strip()

    @model_validator(mode="after")
    def check_duration_bounds(self) -> "ResourceCreateRequest":
        if self.minBookingMinutes >= self.maxBookingMinutes:
            raise ValueError("minBookingMinutes must be less than maxBookingMinutes")
        return self


class ResourceUpdateRequest(BaseModel):
    name:                   Optional[str] = None
    type:                   Optional[ResourceType] = None
    location:               Optional[str] = None
    capacity:               Optional[int] = Field(None, ge=1, le=1000)
    description:            Optional[str] = None
    isRestricted:           Optional[bool] = None
    minBookingMinutes:      Optional[int] = Field(None, ge=15)
    maxBookingMinutes:      Optional[int] = Field(None, ge=30)
    bufferMinutesBetween:   Optional[int] = Field(None, ge=0, le=120)
    externalBookingEnabled: Optional[bool] = None


class ResourceStatusRequest(BaseModel):
    active:           Optional[bool] = None
    maintenanceMode:  Optional[bool] = None
    maintenanceNotes: Optional[str] = None

    @model_validator(mode="after")
    def check_any(self) -> "ResourceStatusRequest":
        if self.active is None and self.maintenanceMode is None:
            raise ValueError("Provide active and/or maintenanceMode")
        return self
