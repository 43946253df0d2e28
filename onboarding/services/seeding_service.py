from sqlalchemy.orm import Session

from onboarding.core.config import settings
from onboarding.models.onboarding_settings import OnboardingSettings, RegistrationMode

class SeedingService:
    """
    Idempotent seeding of the onboarding policy row.
    Safe to call on startup; re-runnable without duplicates.
    """

    @staticmethod
    def seed_onboarding_settings(db: Session) -> bool:
        """Insert the default policy row if the table is empty. Returns True if inserted."""
        if db.query(OnboardingSettings.id).first() is not None:
            return False
        db.add(OnboardingSettings(
            waitlist_limit=settings.DEFAULT_WAITLIST_LIMIT,
            signed_up_users=0,
            signed_up_user_limit=settings.DEFAULT_SIGNED_UP_USER_LIMIT,
            signup_cutoff=settings.DEFAULT_SIGNUP_CUTOFF,
            allowed_registrations=RegistrationMode(settings.DEFAULT_REGISTRATION_MODE),
        ))
        db.commit()
        return True
