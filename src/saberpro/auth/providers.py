"""
Credential providers.

One provider per sign-in path. The session layer picks the provider by ID
and calls ``authorize`` with the raw form payload.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Mapping, Optional

from loguru import logger

from .errors import ValidationError
from .models import SessionClaims
from .schemas import (
    validate_activation_credentials,
    validate_email_credentials,
    validate_student_id_credentials,
)
from .user_manager import UserManager

# Sign-up funnels whose posts always register a new account
REGISTRATION_SOURCES = frozenset({"clickfunnels"})


class CredentialProvider(ABC):
    """
    Base class for credential sign-in paths.

    ``authorize`` returns None when no credentials were sent and raises for
    invalid payloads, rejected credentials and store failures.
    """

    provider_id: str = ""
    name: str = ""

    def __init__(self, users: UserManager):
        self.users = users

    def authorize(self, credentials: Optional[Mapping[str, Any]]) -> Optional[SessionClaims]:
        if not credentials:
            return None
        try:
            return self._authorize(credentials)
        except Exception as e:
            logger.warning(f"{self.provider_id} sign-in rejected: {type(e).__name__}: {e}")
            raise

    @abstractmethod
    def _authorize(self, credentials: Mapping[str, Any]) -> SessionClaims:
        ...


class EmailCredentialsProvider(CredentialProvider):
    """Email and password login, or registration when requested."""

    provider_id = "credentials-email"
    name = "Credentials"

    def _authorize(self, credentials: Mapping[str, Any]) -> SessionClaims:
        data = validate_email_credentials(credentials)

        if data.source in REGISTRATION_SOURCES or data.action == "register":
            if not data.name:
                raise ValidationError({"name": ["Name is required for registration"]})
            return self.users.register(data.email, data.password, data.name)
        return self.users.login(data.email, data.password)


class StudentIdCredentialsProvider(CredentialProvider):
    provider_id = "credentials-student"
    name = "Student ID"

    def _authorize(self, credentials: Mapping[str, Any]) -> SessionClaims:
        data = validate_student_id_credentials(credentials)
        return self.users.student_login(data.student_id, data.password)


class StudentActivationProvider(CredentialProvider):
    provider_id = "student-activation"
    name = "Student activation"

    def _authorize(self, credentials: Mapping[str, Any]) -> SessionClaims:
        data = validate_activation_credentials(credentials)
        return self.users.activate_student(data.student_id, data.password)


def build_providers(users: UserManager) -> Dict[str, CredentialProvider]:
    """
    Create every provider, keyed by provider ID.
    """
    providers = (
        EmailCredentialsProvider(users),
        StudentIdCredentialsProvider(users),
        StudentActivationProvider(users),
    )
    return {provider.provider_id: provider for provider in providers}
