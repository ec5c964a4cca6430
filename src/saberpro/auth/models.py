"""
Authentication data models.

Data classes for identities, student profiles, stored credentials and
session claims.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Union


class Role(str, Enum):
    """
    Roles an identity can hold. Assigned at creation, STUDENT by default.
    """
    STUDENT = "STUDENT"
    TEACHER = "TEACHER"
    ADMIN = "ADMIN"
    SUPERADMIN = "SUPERADMIN"


@dataclass(frozen=True)
class HashedCredential:
    """
    Salted PBKDF2 password hash.

    Attributes:
        salt: Hex-encoded random salt
        hash: Hex-encoded derived key
    """
    salt: str
    hash: str


@dataclass(frozen=True)
class PlaintextCredential:
    """Legacy password stored as-is."""
    value: str = field(repr=False)


Credential = Union[HashedCredential, PlaintextCredential]


@dataclass
class Identity:
    """
    Login-capable user record.

    Attributes:
        user_id: Unique identifier (UUID)
        name: Display name, may be missing on old records
        email: Unique email address
        role: Assigned role
        credential: Exactly one stored password representation
        is_onboarded: Whether the user completed onboarding
        created_at: Creation timestamp
    """
    user_id: str
    name: Optional[str]
    email: str
    role: Role
    credential: Credential = field(repr=False)
    is_onboarded: bool = False
    created_at: datetime = field(default_factory=datetime.now)


@dataclass
class StudentProfile:
    """
    Student extension of an Identity.

    Attributes:
        profile_id: Unique profile identifier
        user_id: Owning identity
        student_id: Six-character student number
        is_activated: Set once the student chose a password
        joined_at: Enrollment timestamp
    """
    profile_id: str
    user_id: str
    student_id: str
    is_activated: bool = False
    joined_at: datetime = field(default_factory=datetime.now)


@dataclass
class SessionClaims:
    """Minimal projection of an Identity carried in the session token."""
    id: str
    name: str
    email: str
    role: Role
    is_onboarded: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role.value,
            "isOnboarded": self.is_onboarded,
        }


@dataclass(frozen=True)
class StudentStatus:
    """Result of looking up a student ID before login or activation."""
    exists: bool
    activated: bool = False
