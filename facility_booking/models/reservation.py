import enum
from sqlalchemy import (
    Column, Integer, String, Text, Boolean, ForeignKey, TIMESTAMP, Enum, Table,
    CheckConstraint, Index,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from facility_booking.database import Base


class ReservationStatus(str, enum.Enum):
    PENDING       = "PENDING"
    PENDING_ADMIN = "PENDING_ADMIN"
    APPROVED      = "APPROVED"
    REJECTED      = "REJECTED"
    CANCELLED     = "CANCELLED"
    CHECKED_IN    = "CHECKED_IN"
    CHECKED_OUT   = "CHECKED_OUT"
    EXPIRED       = "EXPIRED"


class ApprovalType(str, enum.Enum):
    AUTO   = "AUTO"
    MANUAL = "MANUAL"


# Statuses that no longer hold their resources
NON_BLOCKING_STATUSES = frozenset({
    ReservationStatus.REJECTED,
    ReservationStatus.CANCELLED,
    ReservationStatus.EXPIRED,
})

TERMINAL_STATUSES = frozenset({
    ReservationStatus.REJECTED,
    ReservationStatus.CANCELLED,
    ReservationStatus.EXPIRED,
    ReservationStatus.CHECKED_OUT,
})

PENDING_STATUSES = frozenset({
    ReservationStatus.PENDING,
    ReservationStatus.PENDING_ADMIN,
})


reservation_resources = Table(
    "reservation_resources",
    Base.metadata,
    Column("reservationId", Integer, ForeignKey("reservations.id", ondelete="CASCADE"), primary_key=True),
    Column("resourceId",    Integer, ForeignKey("resources.id"), primary_key=True, index=True),
)


class Reservation(Base):
    __tablename__ = "reservations"

    id            = Column(Integer, primary_key=True, index=True)
    userId        = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    startTime     = Column(TIMESTAMP(timezone=True), nullable=False)
    endTime       = Column(TIMESTAMP(timezone=True), nullable=False)
    purpose       = Column(Text, nullable=True)
    status        = Column(Enum(ReservationStatus), default=ReservationStatus.PENDING,
                           nullable=False, index=True)
    isExternal    = Column(Boolean, default=False, nullable=False)
    externalOrg   = Column(String(200), nullable=True)
    # Approval metadata
    approvalType  = Column(Enum(ApprovalType), nullable=True)
    approvedById  = Column(Integer, ForeignKey("users.id"), nullable=True)
    approvedAt    = Column(TIMESTAMP(timezone=True), nullable=True)
    approvalNotes = Column(Text, nullable=True)
    # Check-in credential, minted at creation whatever the approval outcome
    checkInCode   = Column(String(16), unique=True, nullable=False, index=True)
    checkInAt     = Column(TIMESTAMP(timezone=True), nullable=True)
    checkOutAt    = Column(TIMESTAMP(timezone=True), nullable=True)
    createdAt     = Column(TIMESTAMP(timezone=True), server_default=func.now(), nullable=False)
    updatedAt     = Column(TIMESTAMP(timezone=True), server_default=func.now(),
                           onupdate=func.now(), nullable=False)

    # ─── Relationships ─────────────────────────────────────────────────────────
    user        = relationship("User", foreign_keys=[userId], back_populates="reservations")
    approved_by = relationship("User", foreign_keys=[approvedById])
    resources   = relationship("Resource", secondary=reservation_resources,
                               back_populates="reservations", order_by="Resource.id")
    audit_logs  = relationship("AuditLog", back_populates="reservation",
                               cascade="all, delete-orphan", order_by="AuditLog.id")

    __table_args__ = (
        CheckConstraint('"startTime" < "endTime"', name="check_reservation_interval"),
        Index("ix_reservations_interval", "startTime", "endTime"),
    )

    @property
    def resource_ids(self) -> list[int]:
        return [r.id for r in self.resources]

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def __repr__(self):
        return f"<Reservation id={self.id} status={self.status} userId={self.userId}>"
