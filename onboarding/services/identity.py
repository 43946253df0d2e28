from dataclasses import dataclass
from typing import Optional
import enum

import phonenumbers
from email_validator import EmailNotValidError, validate_email

from onboarding.core.exceptions import InvalidIdentityError


class IdentityKind(enum.Enum):
    EMAIL = "email"
    PHONE = "phone"


@dataclass(frozen=True)
class Identity:
    """A normalized username: lower-cased email or E.164 phone number."""
    kind: IdentityKind
    value: str

    def __str__(self) -> str:
        return self.value


def _normalize_email(candidate: str) -> Optional[str]:
    try:
        result = validate_email(candidate, check_deliverability=False)
    except EmailNotValidError:
        return None
    return result.normalized.lower()


def _normalize_phone(candidate: str, default_region: Optional[str]) -> Optional[str]:
    try:
        number = phonenumbers.parse(candidate, default_region)
    except phonenumbers.NumberParseException:
        return None
    if not phonenumbers.is_valid_number(number):
        return None
    return phonenumbers.format_number(number, phonenumbers.PhoneNumberFormat.E164)


def normalize_identity(raw, default_region: Optional[str] = None) -> Identity:
    """Classify and canonicalize a raw username.

    Emails are checked first; anything that is not an email must parse as a
    valid phone number. Raises InvalidIdentityError otherwise.
    """
    if not raw or not isinstance(raw, str):
        raise InvalidIdentityError("Username required", error_code="missing_username")

    candidate = raw.strip()
    if not candidate:
        raise InvalidIdentityError("Username required", error_code="missing_username")

    email = _normalize_email(candidate)
    if email is not None:
        return Identity(IdentityKind.EMAIL, email)

    phone = _normalize_phone(candidate, default_region)
    if phone is not None:
        return Identity(IdentityKind.PHONE, phone)

    if "@" in candidate:
        raise InvalidIdentityError("Invalid email address", details=candidate)
    if any(ch.isdigit() for ch in candidate):
        raise InvalidIdentityError(
            "Invalid phone number format or number is not valid", details=candidate
        )
    raise InvalidIdentityError("Invalid username format (must be email or phone)", details=candidate)
