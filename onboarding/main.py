from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from dotenv import load_dotenv
import logging

from onboarding.core.config import settings
from onboarding.api.v1.api import api_router
from onboarding.core.database import Base, SessionLocal, engine
from onboarding.core.deps import close_registry
from onboarding.core.exceptions import InvalidIdentityError, RegistryUnavailableError, WaitlistFullError
from onboarding import models  # noqa: F401  registers tables on Base.metadata
from onboarding.services.seeding_service import SeedingService

# Load environment variables
load_dotenv()

logging.basicConfig(level=logging.DEBUG if settings.DEBUG else logging.INFO)
logger = logging.getLogger(__name__)

# Configure audit logger (JSON lines)
audit_logger = logging.getLogger("audit")
if not audit_logger.handlers:
    handler = logging.StreamHandler()
    # Keep raw JSON line without extra prefixes
    handler.setFormatter(logging.Formatter("%(message)s"))
    audit_logger.addHandler(handler)
audit_logger.setLevel(logging.INFO)
# Do not propagate to root to avoid duplication
audit_logger.propagate = False

api_description = """
## Waitlist Gate

Admits emails and phone numbers to an ordered, capacity-limited waitlist and
decides, from the current onboarding policy, whether a username may complete
registration.

- `POST /api/v1/waitlist/add` - join the waitlist (idempotent)
- `GET /api/v1/waitlist/can-sign-up` - registration eligibility for a username
- `GET /api/v1/waitlist/exists` - waitlist membership
- `POST /api/v1/register` - register, or fall back to the waitlist
"""

app = FastAPI(
    title="Waitlist Gate API",
    description=api_description,
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

# Set up CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type", "Authorization"],
)

# Include API router
app.include_router(api_router, prefix="/api/v1")


@app.exception_handler(InvalidIdentityError)
async def invalid_identity_handler(request: Request, exc: InvalidIdentityError):
    return JSONResponse(status_code=400, content={"detail": exc.message, "error_code": exc.error_code})


@app.exception_handler(WaitlistFullError)
async def waitlist_full_handler(request: Request, exc: WaitlistFullError):
    return JSONResponse(status_code=409, content={"detail": exc.message, "limit": exc.capacity})


@app.exception_handler(RegistryUnavailableError)
async def registry_unavailable_handler(request: Request, exc: RegistryUnavailableError):
    logger.error(f"Registry unavailable on {request.url.path}: {exc.message} ({exc.details})")
    return JSONResponse(status_code=503, content={"detail": "Onboarding registry unavailable"})


# --- Idempotent table creation and policy seeding on startup ---
@app.on_event("startup")
def seed_on_startup():
    if settings.REGISTRY_BACKEND != "database":
        return
    db = SessionLocal()
    try:
        Base.metadata.create_all(bind=engine)
        if SeedingService.seed_onboarding_settings(db):
            logger.info("Seeded default onboarding settings")
    except Exception as e:
        # Do not block startup if seeding fails; just log
        logger.warning(f"Seeding error: {e}")
    finally:
        db.close()


@app.on_event("shutdown")
async def close_clients():
    await close_registry()


@app.get("/health")
async def health_check():
    return {"status": "healthy"}
