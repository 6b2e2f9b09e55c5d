from sqlalchemy import Column, Integer, String, ForeignKey, TIMESTAMP
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from facility_booking.database import Base


class AuditLog(Base):
    """Append-only trail of actions taken on a reservation."""
    __tablename__ = "audit_logs"

    id            = Column(Integer, primary_key=True, index=True)
    reservationId = Column(Integer, ForeignKey("reservations.id", ondelete="CASCADE"),
                           nullable=False, index=True)
    actorId       = Column(Integer, ForeignKey("users.id"), nullable=True)  # NULL = system action
    action        = Column(String(100), nullable=False)       # e.g. BOOKING_CREATED, QR_CHECKIN
    createdAt     = Column(TIMESTAMP(timezone=True), server_default=func.now(), nullable=False)

    # ─── Relationships ─────────────────────────────────────────────────────────
    reservation = relationship("Reservation", back_populates="audit_logs")
    actor       = relationship("User")

    def __repr__(self):
        return f"<AuditLog id={self.id} action={self.action} reservation={self.reservationId}>"
