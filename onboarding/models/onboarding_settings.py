from sqlalchemy import Column, Integer, DateTime, Enum as SQLEnum
from sqlalchemy.sql import func
import enum

from onboarding.core.database import Base

class RegistrationMode(enum.Enum):
    OPEN = "all"
    WAITLIST_ONLY = "waitlist"

class OnboardingSettings(Base):
    """Single-row table holding the current onboarding policy."""
    __tablename__ = "onboarding_settings"

    id = Column(Integer, primary_key=True)
    waitlist_limit = Column(Integer, nullable=False, default=0)
    signed_up_users = Column(Integer, nullable=False, default=0)
    signed_up_user_limit = Column(Integer, nullable=False, default=0)  # 0 => unlimited
    signup_cutoff = Column(Integer, nullable=False, default=-1)  # negative => closed
    allowed_registrations = Column(
        SQLEnum(
            RegistrationMode,
            name="registrationmode",
            values_callable=lambda e: [m.value for m in e],
        ),
        default=RegistrationMode.WAITLIST_ONLY,
        nullable=False,
    )

    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
