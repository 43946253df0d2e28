"""
Custom exceptions for the onboarding service
"""

class BaseAppException(Exception):
    """Base application exception"""
    def __init__(self, message: str, details: str = None):
        self.message = message
        self.details = details
        super().__init__(self.message)


class InvalidIdentityError(BaseAppException):
    """Raised when a username is neither a valid email nor a valid phone number"""
    def __init__(self, message: str, details: str = None, error_code: str = "invalid_identity"):
        super().__init__(message, details)
        self.error_code = error_code


class WaitlistFullError(BaseAppException):
    """Raised when a new identity cannot be admitted because the waitlist is at capacity"""
    def __init__(self, capacity: int):
        super().__init__(f"Waitlist is full (limit: {capacity})")
        self.capacity = capacity


class RegistryUnavailableError(BaseAppException):
    """Raised when the onboarding registry fails or times out"""
    pass
