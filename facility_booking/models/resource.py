import enum
from sqlalchemy import Column, Integer, String, Text, Boolean, Enum, TIMESTAMP, CheckConstraint, Index
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from facility_booking.database import Base


class ResourceType(str, enum.Enum):
    PROJECTOR       = "PROJECTOR"
    LAB             = "LAB"
    BUS             = "BUS"
    HOSTEL          = "HOSTEL"
    HALL            = "HALL"
    CLASSROOM       = "CLASSROOM"
    CONFERENCE_ROOM = "CONFERENCE_ROOM"
    EQUIPMENT       = "EQUIPMENT"
    VEHICLE         = "VEHICLE"


class Resource(Base):
    __tablename__ = "resources"

    id                     = Column(Integer, primary_key=True, index=True)
    name                   = Column(String(100), nullable=False)
    type                   = Column(Enum(ResourceType), nullable=False)
    location               = Column(String(200), nullable=False)
    capacity               = Column(Integer, nullable=False)
    description            = Column(Text, nullable=True)
    isRestricted           = Column(Boolean, default=False, nullable=False)
    active                 = Column(Boolean, default=True, nullable=False)
    maintenanceMode        = Column(Boolean, default=False, nullable=False)
    maintenanceNotes       = Column(Text, nullable=True)
    minBookingMinutes      = Column(Integer, default=30, nullable=False)
    maxBookingMinutes      = Column(Integer, default=480, nullable=False)
    bufferMinutesBetween   = Column(Integer, default=15, nullable=False)
    externalBookingEnabled = Column(Boolean, default=False, nullable=False)
    # Bumped inside every reservation write so concurrent writers on the same row serialize
    lockVersion            = Column(Integer, default=0, nullable=False)
    createdAt              = Column(TIMESTAMP(timezone=True), server_default=func.now(), nullable=False)
    updatedAt              = Column(TIMESTAMP(timezone=True), server_default=func.now(),
                                    onupdate=func.now(), nullable=False)

    # ─── Relationships ─────────────────────────────────────────────────────────
    reservations = relationship("Reservation", secondary="reservation_resources",
                                back_populates="resources")

    __table_args__ = (
        CheckConstraint("capacity >= 1 AND capacity <= 1000", name="check_resource_capacity"),
        CheckConstraint('"minBookingMinutes" < "maxBookingMinutes"', name="check_resource_duration_bounds"),
        Index("ix_resources_type_active", "type", "active"),
    )

    @property
    def is_available(self) -> bool:
        return bool(self.active) and not self.maintenanceMode

    def __repr__(self):
        return f"<Resource id={self.id} name={self.name} type={self.type} active={self.active}>"
