from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple
import asyncio
import enum
import logging

from fastapi.concurrency import run_in_threadpool

from onboarding.core.exceptions import RegistryUnavailableError, WaitlistFullError
from onboarding.services.eligibility import (
    EligibilityDecision,
    EligibilityOutcome,
    can_sign_up,
    evaluate,
)
from onboarding.services.identity import Identity, normalize_identity
from onboarding.schemas.onboarding import PolicySnapshot
from onboarding.services.registry import Registry
from onboarding.services.waitlist_store import AdmissionResult, WaitlistStore
from onboarding.utils.audit import audit

logger = logging.getLogger(__name__)


class RegistrationStatus(str, enum.Enum):
    REGISTERED = "registered"
    ALREADY_REGISTERED = "already_registered"
    WAITLISTED = "waitlisted"
    WAITLIST_FULL = "waitlist_full"
    REGISTRY_ERROR = "registry_error"


@dataclass(frozen=True)
class RegistrationResult:
    status: RegistrationStatus
    identity: Identity
    position: int
    decision: EligibilityDecision
    newly_admitted: bool = False
    message: Optional[str] = None

    @property
    def registered(self) -> bool:
        return self.status in (RegistrationStatus.REGISTERED, RegistrationStatus.ALREADY_REGISTERED)

    @property
    def on_waitlist(self) -> bool:
        return self.position > 0


@dataclass(frozen=True)
class WaitlistStatus:
    already_registered: bool
    on_waitlist: bool
    can_sign_up: bool
    position: int


class RegistrationService:
    """Sequences normalization, the parallel state fetch, the eligibility
    decision and the single side effect a registration attempt may cause.

    A call either commits a registration or touches the waitlist, never both.
    The decision is taken on a policy snapshot that may be a moment stale by
    the time the side effect runs; the waitlist mutation itself stays atomic.
    """

    def __init__(self, store: WaitlistStore, registry: Registry, default_region: Optional[str] = None):
        self.store = store
        self.registry = registry
        self.default_region = default_region

    def normalize(self, raw) -> Identity:
        return normalize_identity(raw, self.default_region)

    async def _fetch_state(self, identity: Identity) -> Tuple[bool, int, PolicySnapshot]:
        """Registered flag, waitlist position and policy, fetched concurrently."""
        results = await asyncio.gather(
            self.registry.identity_is_registered(identity),
            run_in_threadpool(self.store.position_of, identity),
            self.registry.get_policy(),
            return_exceptions=True,
        )
        # Raise the first failure only after all three have settled
        for result in results:
            if isinstance(result, BaseException):
                raise result
        return results[0], results[1], results[2]

    async def _admit(self, identity: Identity, metadata: Optional[Dict[str, Any]], capacity: int) -> AdmissionResult:
        return await run_in_threadpool(self.store.enqueue_or_lookup, identity, metadata, capacity)

    async def process(
        self, raw, metadata: Optional[Dict[str, Any]] = None, request_id: Optional[str] = None
    ) -> RegistrationResult:
        identity = self.normalize(raw)

        already_registered, position, policy = await self._fetch_state(identity)
        decision = evaluate(identity, already_registered, position, policy)
        logger.info(
            f"[{request_id}] {identity.kind.value} decision={decision.outcome.value} position={position} "
            f"mode={policy.registration_mode.value} cutoff={policy.signup_cutoff}"
        )

        if decision.outcome is EligibilityOutcome.ALREADY_REGISTERED:
            return RegistrationResult(
                RegistrationStatus.ALREADY_REGISTERED, identity, position, decision, message=decision.message
            )

        if decision.may_register:
            try:
                committed = await self.registry.commit_registration(identity)
            except RegistryUnavailableError as e:
                logger.error(f"[{request_id}] Registration commit failed: {e.message}")
                committed = False
            if not committed:
                audit("REGISTRATION_FAILED", identity=identity, request_id=request_id, position=position)
                return RegistrationResult(
                    RegistrationStatus.REGISTRY_ERROR, identity, position, decision,
                    message="Registration failed due to a registry issue.",
                )
            audit("REGISTERED", identity=identity, request_id=request_id, position=position)
            message = "User successfully registered" + (" (was on waitlist)" if position > 0 else "")
            return RegistrationResult(RegistrationStatus.REGISTERED, identity, position, decision, message=message)

        try:
            admission = await self._admit(identity, metadata, policy.capacity)
        except WaitlistFullError as e:
            audit("WAITLIST_FULL", identity=identity, request_id=request_id, capacity=e.capacity)
            return RegistrationResult(
                RegistrationStatus.WAITLIST_FULL, identity, 0, decision, message=e.message
            )
        audit(
            "WAITLISTED", identity=identity, request_id=request_id, outcome=decision.outcome.value,
            position=admission.position, already_existed=admission.already_existed,
        )
        return RegistrationResult(
            RegistrationStatus.WAITLISTED, identity, admission.position, decision,
            newly_admitted=not admission.already_existed, message=decision.message,
        )

    async def join_waitlist(
        self, raw, metadata: Optional[Dict[str, Any]] = None, request_id: Optional[str] = None
    ) -> AdmissionResult:
        """Admit raw to the waitlist under the current capacity. Raises WaitlistFullError."""
        identity = self.normalize(raw)
        policy = await self.registry.get_policy()
        try:
            admission = await self._admit(identity, metadata, policy.capacity)
        except WaitlistFullError as e:
            audit("WAITLIST_FULL", identity=identity, request_id=request_id, capacity=e.capacity)
            raise
        audit(
            "WAITLIST_JOIN", identity=identity, request_id=request_id,
            position=admission.position, already_existed=admission.already_existed,
        )
        return admission

    async def check_eligibility(self, raw) -> WaitlistStatus:
        identity = self.normalize(raw)
        already_registered, position, policy = await self._fetch_state(identity)
        return WaitlistStatus(
            already_registered=already_registered,
            on_waitlist=position > 0,
            can_sign_up=can_sign_up(already_registered, position, policy),
            position=position,
        )

    async def is_on_waitlist(self, raw) -> bool:
        identity = self.normalize(raw)
        return await run_in_threadpool(self.store.exists, identity)
