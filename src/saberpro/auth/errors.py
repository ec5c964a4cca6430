"""
Authentication error taxonomy.

Every error carries a ``public_message`` that is safe to show to end users.
The underlying store exception, when there is one, is only kept as the
``__cause__``.
"""

from typing import Dict, List, Optional


class AuthenticationError(Exception):
    """Base class for all credential and session failures."""

    code = "auth_error"
    public_message = "Authentication failed"

    def __init__(self, message: Optional[str] = None):
        self.public_message = message or self.public_message
        super().__init__(self.public_message)


class ValidationError(AuthenticationError):
    """
    Raised when a credential payload is malformed.

    Attributes:
        errors: Field name to list of messages
    """

    code = "validation_error"
    public_message = "Invalid credentials payload"

    def __init__(self, errors: Dict[str, List[str]]):
        self.errors = errors
        super().__init__()

    def __str__(self) -> str:
        return f"{self.public_message}: {', '.join(sorted(self.errors))}"


class AuthError(AuthenticationError):
    """Wrong password or unknown identity. Deliberately non-specific."""

    code = "invalid_credentials"
    public_message = "Invalid credentials"


class IncorrectPasswordError(AuthError):
    """The current password given for a password change does not match."""

    code = "incorrect_password"
    public_message = "Current password is incorrect"


class NotFoundError(AuthenticationError):
    code = "not_found"
    public_message = "Student not found"


class InactiveAccountError(AuthenticationError):
    """The student exists but has to go through activation first."""

    code = "inactive_account"
    public_message = "This account is not activated. Please create a password."


class AlreadyActivatedError(AuthenticationError):
    code = "already_activated"
    public_message = "This account is already activated"


class ConflictError(AuthenticationError):
    code = "conflict"
    public_message = "User already exists"


class StoreError(AuthenticationError):
    code = "store_error"
    public_message = "Something went wrong, please try again"
