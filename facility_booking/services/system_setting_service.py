from sqlalchemy.orm import Session

from facility_booking.config import settings as app_settings
from facility_booking.engine.admission import AdmissionPolicy
from facility_booking.models.system_setting import SystemSetting
from facility_booking.models.user import User
from facility_booking.schemas.system_setting import SystemSettingUpdate
from facility_booking.utils.timeutil import isoformat


DEFAULT_SETTINGS = {
    "autoApprovalEnabled":       True,
    "externalBookingsEnabled":   True,
    "restrictedTypes":           [],
    "dailyBookingLimitPerUser":  None,
    "allowedExternalWindowDays": 180,
    "overdueGraceMinutes":       5,
}


def _serialize(s: SystemSetting) -> dict:
    data = {key: getattr(s, key) for key in DEFAULT_SETTINGS}
    data["restrictedTypes"] = list(s.restrictedTypes or [])
    data["updatedAt"] = isoformat(s.updatedAt)
    return data


class SystemSettingService:

    def current(self, db: Session) -> SystemSetting:
        """The stored settings row, or an unsaved row holding the defaults."""
        s = db.query(SystemSetting).order_by(SystemSetting.id).first()
        return s or SystemSetting(**DEFAULT_SETTINGS)

    def get_settings(self, db: Session) -> dict:
        return _serialize(self.current(db))

    def update_settings(self, db: Session, data: SystemSettingUpdate, current_user: User) -> dict:
        s = db.query(SystemSetting).order_by(SystemSetting.id).first()
        if not s:
            s = SystemSetting(**DEFAULT_SETTINGS)
            db.add(s)

        changes = data.model_dump(exclude_unset=True)
        if "restrictedTypes" in changes and changes["restrictedTypes"] is not None:
            changes["restrictedTypes"] = [t.value for t in data.restrictedTypes]
        for key, value in changes.items():
            if value is None and key != "dailyBookingLimitPerUser":
                continue
            setattr(s, key, value)
        s.updatedById = current_user.id

        db.commit()
        db.refresh(s)
        return _serialize(s)

    def seed_defaults(self, db: Session) -> None:
        """Insert the settings row if not already present."""
        if not db.query(SystemSetting).first():
            db.add(SystemSetting(**DEFAULT_SETTINGS))
            db.commit()

    def admission_policy(self, db: Session) -> AdmissionPolicy:
        s = self.current(db)
        return AdmissionPolicy(
            auto_approval_enabled=s.autoApprovalEnabled,
            restricted_types=frozenset(s.restrictedTypes or []),
            enforce_buffer=app_settings.ENFORCE_BOOKING_BUFFER,
        )


system_setting_service = SystemSettingService()
