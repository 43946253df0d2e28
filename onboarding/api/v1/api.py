from fastapi import APIRouter, Depends
from onboarding.api.v1.endpoints import registration, waitlist
from onboarding.core.deps import enforce_ip_rate_limit, verify_api_token

api_router = APIRouter(dependencies=[Depends(verify_api_token), Depends(enforce_ip_rate_limit)])

api_router.include_router(waitlist.router)
api_router.include_router(registration.router)
