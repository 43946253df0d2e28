from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from onboarding.schemas.onboarding import RegisterRequest, RegisterResponse
from onboarding.core.deps import get_registration_service
from onboarding.services.registration_service import RegistrationService, RegistrationStatus
from onboarding.utils.request_context import RequestContext, new_request_context

router = APIRouter(tags=["registration"])

@router.post("/register", response_model=RegisterResponse)
async def register_user(
    payload: RegisterRequest,
    service: RegistrationService = Depends(get_registration_service),
    ctx: RequestContext = Depends(new_request_context),
):
    """Register a username, or admit it to the waitlist when policy does not allow signup yet."""
    result = await service.process(payload.username, payload.metadata, request_id=ctx.request_id)
    body = RegisterResponse(
        registered_signup=result.registered,
        on_waitlist=result.on_waitlist,
        waitlist_position=result.position,
        status=result.status.value,
        outcome=result.decision.outcome.value,
        already_existed_on_waitlist=(
            not result.newly_admitted if result.status is RegistrationStatus.WAITLISTED else None
        ),
        metadata=ctx.metadata(result.message),
    )
    if result.status is RegistrationStatus.REGISTRY_ERROR:
        return JSONResponse(status_code=502, content=body.model_dump())
    if result.status is RegistrationStatus.WAITLIST_FULL:
        return JSONResponse(status_code=409, content=body.model_dump())
    return body
