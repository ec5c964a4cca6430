"""
Authentication module for SaberPro.

Provides credential sign-in for email users and students, session claims,
JWT session tokens and role-based route authorization.
"""

from .models import (
    Role,
    Identity,
    StudentProfile,
    HashedCredential,
    PlaintextCredential,
    Credential,
    SessionClaims,
    StudentStatus,
)
from .errors import (
    AuthenticationError,
    ValidationError,
    AuthError,
    IncorrectPasswordError,
    NotFoundError,
    InactiveAccountError,
    AlreadyActivatedError,
    ConflictError,
    StoreError,
)
from .schemas import (
    validate_email_credentials,
    validate_student_id_credentials,
    validate_activation_credentials,
    validate_password_change,
)
from .passwords import PasswordHasher
from .database import IdentityDatabase
from .user_manager import UserManager
from .claims import build_claims, build_token, project_session
from .jwt_handler import JWTHandler
from .providers import (
    CredentialProvider,
    EmailCredentialsProvider,
    StudentIdCredentialsProvider,
    StudentActivationProvider,
    build_providers,
)
from .permissions import (
    RouteGate,
    is_route_allowed,
    redirect_for,
    home_path_for,
    can_manage_user,
)

__all__ = [
    # Models
    "Role",
    "Identity",
    "StudentProfile",
    "HashedCredential",
    "PlaintextCredential",
    "Credential",
    "SessionClaims",
    "StudentStatus",
    # Errors
    "AuthenticationError",
    "ValidationError",
    "AuthError",
    "IncorrectPasswordError",
    "NotFoundError",
    "InactiveAccountError",
    "AlreadyActivatedError",
    "ConflictError",
    "StoreError",
    # Validation
    "validate_email_credentials",
    "validate_student_id_credentials",
    "validate_activation_credentials",
    "validate_password_change",
    # Store and resolution
    "PasswordHasher",
    "IdentityDatabase",
    "UserManager",
    # Session
    "build_claims",
    "build_token",
    "project_session",
    "JWTHandler",
    "CredentialProvider",
    "EmailCredentialsProvider",
    "StudentIdCredentialsProvider",
    "StudentActivationProvider",
    "build_providers",
    # Route authorization
    "RouteGate",
    "is_route_allowed",
    "redirect_for",
    "home_path_for",
    "can_manage_user",
]
