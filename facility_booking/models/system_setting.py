from sqlalchemy import Column, Integer, Boolean, JSON, ForeignKey, TIMESTAMP
from sqlalchemy.sql import func
from facility_booking.database import Base


class SystemSetting(Base):
    """Single row of admin-managed booking policy."""
    __tablename__ = "system_settings"

    id                        = Column(Integer, primary_key=True, index=True)
    autoApprovalEnabled       = Column(Boolean, default=True, nullable=False)
    externalBookingsEnabled   = Column(Boolean, default=True, nullable=False)
    restrictedTypes           = Column(JSON, default=list, nullable=False)   # list of ResourceType values
    dailyBookingLimitPerUser  = Column(Integer, nullable=True)               # NULL = unlimited
    allowedExternalWindowDays = Column(Integer, default=180, nullable=False)
    overdueGraceMinutes       = Column(Integer, default=5, nullable=False)
    updatedById               = Column(Integer, ForeignKey("users.id"), nullable=True)
    updatedAt                 = Column(TIMESTAMP(timezone=True), server_default=func.now(),
                                       onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<SystemSetting autoApproval={self.autoApprovalEnabled} restricted={self.restrictedTypes}>"
