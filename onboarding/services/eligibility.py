"""Eligibility rules for turning a waitlist position into a signup decision.

The checks run in a fixed order and the first match wins:

1. already registered (external registry says so)
2. registration cap reached: new signups are deferred to the waitlist even
   for identities that are inside the cutoff
3. waitlist-only mode and not cutoff-eligible: the identity has never been
   offered registration
4. on the waitlist but outside the cutoff: offered, but not yet its turn
5. eligible

An identity is cutoff-eligible when it holds a position and the cutoff is
non-negative and at or above that position. A negative cutoff closes
registration for every waitlisted identity. Identities that never joined
the waitlist (position 0) are governed only by the mode and the cap.
"""
from dataclasses import dataclass
from typing import Optional
import enum

from onboarding.models.onboarding_settings import RegistrationMode
from onboarding.schemas.onboarding import PolicySnapshot
from onboarding.services.identity import Identity


class EligibilityOutcome(str, enum.Enum):
    ALREADY_REGISTERED = "already_registered"
    CAPACITY_EXHAUSTED = "capacity_exhausted"
    WAITLIST_ONLY_INELIGIBLE = "waitlist_only_ineligible"
    BLOCKED_BY_CUTOFF = "blocked_by_cutoff"
    ELIGIBLE_TO_REGISTER = "eligible_to_register"


class CutoffBlockReason(str, enum.Enum):
    NEGATIVE_CUTOFF = "negative_cutoff"
    POSITION_BEYOND_CUTOFF = "position_beyond_cutoff"


OUTCOME_MESSAGES = {
    EligibilityOutcome.ALREADY_REGISTERED: "User is already registered",
    EligibilityOutcome.CAPACITY_EXHAUSTED: "User limit reached, added/found on waitlist",
    EligibilityOutcome.WAITLIST_ONLY_INELIGIBLE: "Registration is waitlist only; not yet eligible for signup",
    EligibilityOutcome.ELIGIBLE_TO_REGISTER: "Eligible for signup",
}

BLOCK_MESSAGES = {
    CutoffBlockReason.NEGATIVE_CUTOFF: "Signup currently closed for waitlist users (negative cutoff)",
    CutoffBlockReason.POSITION_BEYOND_CUTOFF: "On waitlist, but not yet eligible for signup based on cutoff",
}


@dataclass(frozen=True)
class EligibilityDecision:
    identity: Identity
    outcome: EligibilityOutcome
    position: int
    block_reason: Optional[CutoffBlockReason] = None

    @property
    def may_register(self) -> bool:
        return self.outcome is EligibilityOutcome.ELIGIBLE_TO_REGISTER

    @property
    def message(self) -> str:
        if self.block_reason is not None:
            return BLOCK_MESSAGES[self.block_reason]
        return OUTCOME_MESSAGES[self.outcome]


def is_cutoff_eligible(position: int, policy: PolicySnapshot) -> bool:
    return position > 0 and policy.signup_cutoff >= 0 and position <= policy.signup_cutoff


def registration_cap_reached(policy: PolicySnapshot) -> bool:
    return policy.registration_cap > 0 and policy.registered_count >= policy.registration_cap


def evaluate(
    identity: Identity,
    already_registered: bool,
    position: int,
    policy: PolicySnapshot,
) -> EligibilityDecision:
    if already_registered:
        return EligibilityDecision(identity, EligibilityOutcome.ALREADY_REGISTERED, position)

    if registration_cap_reached(policy):
        return EligibilityDecision(identity, EligibilityOutcome.CAPACITY_EXHAUSTED, position)

    cutoff_eligible = is_cutoff_eligible(position, policy)

    if policy.registration_mode is RegistrationMode.WAITLIST_ONLY and not cutoff_eligible:
        return EligibilityDecision(identity, EligibilityOutcome.WAITLIST_ONLY_INELIGIBLE, position)

    if position > 0 and not cutoff_eligible:
        reason = (
            CutoffBlockReason.NEGATIVE_CUTOFF
            if policy.signup_cutoff < 0
            else CutoffBlockReason.POSITION_BEYOND_CUTOFF
        )
        return EligibilityDecision(identity, EligibilityOutcome.BLOCKED_BY_CUTOFF, position, reason)

    return EligibilityDecision(identity, EligibilityOutcome.ELIGIBLE_TO_REGISTER, position)


def can_sign_up(already_registered: bool, position: int, policy: PolicySnapshot) -> bool:
    """Status-check variant: only unregistered, waitlisted, cutoff-eligible identities may sign up."""
    if already_registered or position <= 0:
        return False
    return is_cutoff_eligible(position, policy)
