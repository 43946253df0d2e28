from pydantic import AliasChoices, BaseModel, Field, validator
from typing import Any, Dict, Optional

from onboarding.models.onboarding_settings import RegistrationMode


class PolicySnapshot(BaseModel):
    """Point-in-time view of the onboarding policy.

    Field aliases accept the registry's column names so a settings row or a
    remote settings payload validates directly.
    """
    capacity: int = Field(ge=0, validation_alias=AliasChoices("capacity", "waitlist_limit"))
    registered_count: int = Field(ge=0, validation_alias=AliasChoices("registered_count", "signed_up_users"))
    registration_cap: int = Field(
        default=0, ge=0, validation_alias=AliasChoices("registration_cap", "signed_up_user_limit")
    )
    signup_cutoff: int
    registration_mode: RegistrationMode = Field(
        validation_alias=AliasChoices("registration_mode", "allowed_registrations")
    )

    @validator("registration_mode", pre=True)
    def accept_mode_names(cls, v):
        # Both "waitlist" and "WAITLIST_ONLY" name the same mode, in any case
        if isinstance(v, str):
            name = v.strip().upper()
            if name in RegistrationMode.__members__:
                return RegistrationMode[name]
            return v.strip().lower()
        return v

    class Config:
        frozen = True
        populate_by_name = True


class RequestMetadata(BaseModel):
    request_id: str
    duration_ms: int
    message: Optional[str] = None


class WaitlistJoinRequest(BaseModel):
    username: str
    metadata: Optional[Dict[str, Any]] = None


class WaitlistJoinResponse(BaseModel):
    success: bool
    position: int
    already_existed: bool
    metadata: RequestMetadata


class WaitlistStatusResponse(BaseModel):
    already_registered: bool
    on_waitlist: bool
    can_sign_up: bool
    position: int
    metadata: RequestMetadata


class WaitlistMembershipResponse(BaseModel):
    on_waitlist: bool
    metadata: RequestMetadata


class RegisterRequest(BaseModel):
    username: str
    metadata: Optional[Dict[str, Any]] = None


class RegisterResponse(BaseModel):
    registered_signup: bool
    on_waitlist: bool
    waitlist_position: int
    status: str
    outcome: Optional[str] = None
    already_existed_on_waitlist: Optional[bool] = None
    metadata: RequestMetadata
