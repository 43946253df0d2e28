from fastapi import APIRouter, Depends, Query

from onboarding.schemas.onboarding import (
    WaitlistJoinRequest,
    WaitlistJoinResponse,
    WaitlistMembershipResponse,
    WaitlistStatusResponse,
)
from onboarding.core.deps import get_registration_service
from onboarding.services.registration_service import RegistrationService
from onboarding.utils.request_context import RequestContext, new_request_context

router = APIRouter(prefix="/waitlist", tags=["waitlist"])

@router.post("/add", response_model=WaitlistJoinResponse)
async def add_to_waitlist(
    payload: WaitlistJoinRequest,
    service: RegistrationService = Depends(get_registration_service),
    ctx: RequestContext = Depends(new_request_context),
):
    """Add a username (email or phone) to the waitlist, or return its existing position."""
    admission = await service.join_waitlist(payload.username, payload.metadata, request_id=ctx.request_id)
    return WaitlistJoinResponse(
        success=True,
        position=admission.position,
        already_existed=admission.already_existed,
        metadata=ctx.metadata(),
    )

@router.get("/can-sign-up", response_model=WaitlistStatusResponse)
async def waitlist_user_can_sign_up(
    username: str = Query(...),
    service: RegistrationService = Depends(get_registration_service),
    ctx: RequestContext = Depends(new_request_context),
):
    status = await service.check_eligibility(username)
    message = "User is already registered." if status.already_registered else None
    return WaitlistStatusResponse(
        already_registered=status.already_registered,
        on_waitlist=status.on_waitlist,
        can_sign_up=status.can_sign_up,
        position=status.position,
        metadata=ctx.metadata(message),
    )

@router.get("/exists", response_model=WaitlistMembershipResponse)
async def is_on_waitlist(
    username: str = Query(...),
    service: RegistrationService = Depends(get_registration_service),
    ctx: RequestContext = Depends(new_request_context),
):
    on_waitlist = await service.is_on_waitlist(username)
    return WaitlistMembershipResponse(on_waitlist=on_waitlist, metadata=ctx.metadata())
