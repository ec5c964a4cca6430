"""
Identity resolution.

Turns validated credentials into session claims or a definitive rejection.
Unknown emails and wrong passwords are reported with the same AuthError so
callers cannot enumerate users.
"""

from typing import Optional

from loguru import logger

from .claims import build_claims
from .database import IdentityDatabase
from .errors import (
    AlreadyActivatedError,
    AuthError,
    ConflictError,
    InactiveAccountError,
    IncorrectPasswordError,
    NotFoundError,
)
from .models import PlaintextCredential, Role, SessionClaims, StudentStatus
from .passwords import PasswordHasher


class UserManager:
    """
    Identity resolver.

    Combines the identity store and the password hasher to provide:
    - Email login and registration
    - Student ID login and first-time activation
    - Password change and student provisioning
    """

    def __init__(self, db: IdentityDatabase, hasher: Optional[PasswordHasher] = None):
        """
        Initialize manager.

        Args:
            db: Identity store
            hasher: Password hasher (default parameters from settings)
        """
        self.db = db
        self.hasher = hasher or PasswordHasher()

    def login(self, email: str, password: str) -> SessionClaims:
        """
        Authenticate with email and password.

        Students provisioned but not yet activated are refused even with the
        right password; they have to go through activation.

        Raises:
            AuthError: Unknown email or wrong password
            InactiveAccountError: Identity is a student that is not activated
            StoreError: Store failure
        """
        identity = self.db.get_identity_by_email(email)
        if identity is None:
            logger.warning(f"Login failed: unknown email '{email}'")
            raise AuthError()

        if not self.hasher.verify_credential(password, identity.credential):
            logger.warning(f"Login failed: invalid password for '{email}'")
            raise AuthError()

        profile = self.db.get_student_by_user_id(identity.user_id)
        if profile is not None and not profile.is_activated:
            logger.info(f"Login refused: student '{profile.student_id}' is not activated")
            raise InactiveAccountError()

        logger.info(f"User logged in: {email}")
        return build_claims(identity)

    def register(self, email: str, password: str, name: Optional[str]) -> SessionClaims:
        """
        Register a new STUDENT identity with a hashed password.

        Args:
            email: Unique email
            password: Plain text password (already validated)
            name: Display name, required on this path

        Raises:
            ValueError: If name is missing
            ConflictError: If the email already exists
            StoreError: Store failure
        """
        if not name:
            raise ValueError("Name is required for registration")

        if self.db.get_identity_by_email(email) is not None:
            logger.warning(f"Registration failed: email '{email}' already exists")
            raise ConflictError()

        # The unique constraint is the final arbiter for concurrent registrations
        identity = self.db.create_identity(
            name=name,
            email=email,
            credential=self.hasher.hash(password),
            role=Role.STUDENT,
            is_onboarded=False,
        )

        logger.info(f"User registered: {email}")
        return build_claims(identity)

    def student_login(self, student_id: str, password: str) -> SessionClaims:
        """
        Authenticate an activated student by student ID.

        Raises:
            NotFoundError: Unknown student ID
            InactiveAccountError: Student has not been activated yet
            AuthError: Wrong password
            StoreError: Store failure
        """
        found = self.db.get_student(student_id)
        if found is None:
            logger.warning(f"Student login failed: unknown student ID '{student_id}'")
            raise NotFoundError()

        profile, identity = found
        if not profile.is_activated:
            logger.info(f"Student login refused: '{student_id}' is not activated")
            raise InactiveAccountError()

        if not self.hasher.verify_credential(password, identity.credential):
            logger.warning(f"Student login failed: invalid password for '{student_id}'")
            raise AuthError()

        logger.info(f"Student logged in: {student_id}")
        return build_claims(identity)

    def activate_student(self, student_id: str, password: str) -> SessionClaims:
        """
        Set the first password of a provisioned student and activate it.

        The new password is stored with the same scheme the record already
        uses. Credential update and activation are one transaction.

        Raises:
            NotFoundError: Unknown student ID
            AlreadyActivatedError: Student is already activated
            StoreError: Store failure
        """
        found = self.db.get_student(student_id)
        if found is None:
            logger.warning(f"Activation failed: unknown student ID '{student_id}'")
            raise NotFoundError()

        profile, identity = found
        if profile.is_activated:
            logger.warning(f"Activation refused: '{student_id}' is already activated")
            raise AlreadyActivatedError()

        credential = self.hasher.rehash_like(password, identity.credential)
        self.db.activate_student(profile, credential)

        identity.credential = credential
        return build_claims(identity)

    def check_student(self, student_id: str) -> StudentStatus:
        """
        Report whether a student ID exists and is activated.

        Raises:
            StoreError: Store failure
        """
        found = self.db.get_student(student_id)
        if found is None:
            return StudentStatus(exists=False)
        profile, _ = found
        return StudentStatus(exists=True, activated=profile.is_activated)

    def change_password(self, user_id: str, current_password: str, new_password: str) -> None:
        """
        Change a password after verifying the current one.

        The new password is always stored hashed, so legacy plaintext
        records are migrated here.

        Raises:
            NotFoundError: Unknown user
            IncorrectPasswordError: Current password does not match
            StoreError: Store failure
        """
        identity = self.db.get_identity_by_id(user_id)
        if identity is None:
            raise NotFoundError("User not found")

        if not self.hasher.verify_credential(current_password, identity.credential):
            logger.warning(f"Password change failed: invalid current password for {user_id}")
            raise IncorrectPasswordError()

        if isinstance(identity.credential, PlaintextCredential):
            logger.info(f"Migrating plaintext password to hash for {user_id}")

        if not self.db.update_credential(user_id, self.hasher.hash(new_password)):
            raise NotFoundError("User not found")

    def provision_student(
        self,
        name: str,
        email: str,
        student_id: str,
        password: Optional[str] = None,
        is_activated: bool = False
    ) -> SessionClaims:
        """
        Create a student account ahead of its first login.

        Without a password the record holds a hashed placeholder that never
        verifies, and the student has to activate the account.

        Raises:
            ConflictError: Email or student ID already in use
            StoreError: Store failure
        """
        credential = self.hasher.hash(password) if password else self.hasher.unusable()
        _, identity = self.db.create_student(
            name=name,
            email=email,
            student_id=student_id,
            credential=credential,
            is_activated=is_activated,
        )
        return build_claims(identity)

    def update_profile(
        self,
        user_id: str,
        name: Optional[str] = None,
        is_onboarded: Optional[bool] = None
    ) -> SessionClaims:
        """
        Persist name/onboarding changes and return refreshed claims.

        Raises:
            NotFoundError: Unknown user
            StoreError: Store failure
        """
        self.db.update_profile(user_id, name=name, is_onboarded=is_onboarded)
        identity = self.db.get_identity_by_id(user_id)
        if identity is None:
            raise NotFoundError("User not found")
        return build_claims(identity)
