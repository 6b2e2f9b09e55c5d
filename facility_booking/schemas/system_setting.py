from pydantic import BaseModel, Field
from typing import Optional
from facility_booking.models.resource import ResourceType


class SystemSettingUpdate(BaseModel):
    autoApprovalEnabled:       Optional[bool] = None
    externalBookingsEnabled:   Optional[bool] = None
    restrictedTypes:           Optional[list[ResourceType]] = None
    dailyBookingLimitPerUser:  Optional[int] = Field(None, ge=1, le=20)
    allowedExternalWindowDays: Optional[int] = Field(None, ge=7, le=365)
    overdueGraceMinutes:       Optional[int] = Field(None, ge=0, le=60)
