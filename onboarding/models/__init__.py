# Import all models here so Base.metadata knows every table
from onboarding.models.onboarding_settings import OnboardingSettings, RegistrationMode
from onboarding.models.registered_user import RegisteredUser

__all__ = [
    "OnboardingSettings",
    "RegistrationMode",
    "RegisteredUser",
]
