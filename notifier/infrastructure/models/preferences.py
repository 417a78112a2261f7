"""SQLAlchemy model for recipient delivery preferences."""

from sqlalchemy import JSON, Boolean, Column, DateTime, Integer, String

from notifier.infrastructure.database import Base


class UserPreferencesModel(Base):
    """One row per recipient; channel flags are stored as a JSON mapping."""

    __tablename__ = "user_preferences"

    id = Column(Integer, primary_key=True, index=True)
    recipient_id = Column(String(64), nullable=False, unique=True, index=True)
    channels = Column(JSON, nullable=False, default=dict)
    quiet_hours_enabled = Column(Boolean, nullable=False, default=False)
    quiet_hours_start = Column(String(5), nullable=False, default="22:00")
    quiet_hours_end = Column(String(5), nullable=False, default="08:00")
    quiet_hours_timezone = Column(String(64), nullable=False)
    language = Column(String(10), nullable=False, default="es")
    sound_enabled = Column(Boolean, nullable=False, default=True)
    vibration_enabled = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(), nullable=False)
    updated_at = Column(DateTime(), nullable=False)


__all__ = ["UserPreferencesModel"]
