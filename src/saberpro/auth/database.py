"""
SQLite store for identities and student profiles.

Thread-safe store used by the identity resolver. Store failures surface as
ConflictError (unique key violations) or StoreError (everything else).
"""

import sqlite3
import threading
import uuid
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterator, Optional, Tuple

from loguru import logger

from .errors import AlreadyActivatedError, ConflictError, StoreError
from .models import Credential, HashedCredential, Identity, PlaintextCredential, Role, StudentProfile

# Extended result codes for duplicate keys
UNIQUE_VIOLATION_CODES = frozenset({
    getattr(sqlite3, "SQLITE_CONSTRAINT_UNIQUE", 2067),
    getattr(sqlite3, "SQLITE_CONSTRAINT_PRIMARYKEY", 1555),
})


def _is_unique_violation(error: sqlite3.IntegrityError) -> bool:
    """Check if an integrity error is a duplicate unique or primary key."""
    code = getattr(error, "sqlite_errorcode", None)
    if code is not None:
        return code in UNIQUE_VIOLATION_CODES
    # sqlite_errorcode is only set on Python 3.11+
    return "UNIQUE constraint failed" in str(error)


class IdentityDatabase:
    """
    Thread-safe identity store.

    Manages users and their student profiles using SQLite.
    All operations are protected by threading.RLock for thread safety.
    """

    def __init__(self, db_path: Path):
        """
        Initialize database.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = Path(db_path)
        self._lock = threading.RLock()
        self._init_db()

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        """Open a connection, translating sqlite errors into store errors."""
        conn = None
        try:
            conn = sqlite3.connect(str(self.db_path))
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA foreign_keys = ON")
            yield conn
        except sqlite3.IntegrityError as e:
            if conn is not None:
                conn.rollback()
            if _is_unique_violation(e):
                logger.warning(f"Unique key violation: {e}")
                raise ConflictError() from e
            logger.error(f"Integrity violation: {e}")
            raise StoreError() from e
        except sqlite3.Error as e:
            if conn is not None:
                conn.rollback()
            logger.error(f"Identity store error: {e}")
            raise StoreError() from e
        finally:
            if conn is not None:
                conn.close()

    def _init_db(self):
        """Create tables if they don't exist."""
        with self._lock:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)

            with self._connect() as conn:
                # Exactly one credential representation per user
                conn.execute("""
                    CREATE TABLE IF NOT EXISTS users (
                        user_id TEXT PRIMARY KEY,
                        name TEXT,
                        email TEXT UNIQUE NOT NULL,
                        role TEXT NOT NULL DEFAULT 'STUDENT',
                        is_onboarded INTEGER NOT NULL DEFAULT 0,
                        salt TEXT,
                        hash TEXT,
                        password TEXT,
                        created_at TEXT NOT NULL,
                        CHECK (
                            (salt IS NOT NULL AND hash IS NOT NULL AND password IS NULL)
                            OR (salt IS NULL AND hash IS NULL AND password IS NOT NULL)
                        )
                    )
                """)

                conn.execute("""
                    CREATE TABLE IF NOT EXISTS students (
                        profile_id TEXT PRIMARY KEY,
                        user_id TEXT UNIQUE NOT NULL,
                        student_id TEXT UNIQUE NOT NULL,
                        is_activated INTEGER NOT NULL DEFAULT 0,
                        joined_at TEXT NOT NULL,
                        FOREIGN KEY (user_id) REFERENCES users(user_id)
                    )
                """)

                conn.commit()

            logger.info(f"Identity database initialized: {self.db_path}")

    @staticmethod
    def _credential_columns(credential: Credential) -> Tuple[Optional[str], Optional[str], Optional[str]]:
        if isinstance(credential, HashedCredential):
            return credential.salt, credential.hash, None
        if isinstance(credential, PlaintextCredential):
            return None, None, credential.value
        raise TypeError(f"Unknown credential type: {type(credential).__name__}")

    @staticmethod
    def _row_to_identity(row: sqlite3.Row) -> Identity:
        if row["salt"] is not None and row["hash"] is not None:
            credential: Credential = HashedCredential(salt=row["salt"], hash=row["hash"])
        else:
            credential = PlaintextCredential(row["password"] or "")

        return Identity(
            user_id=row["user_id"],
            name=row["name"],
            email=row["email"],
            role=Role(row["role"]),
            credential=credential,
            is_onboarded=bool(row["is_onboarded"]),
            created_at=datetime.fromisoformat(row["created_at"]),
        )

    @staticmethod
    def _row_to_profile(row: sqlite3.Row) -> StudentProfile:
        return StudentProfile(
            profile_id=row["profile_id"],
            user_id=row["user_id"],
            student_id=row["student_id"],
            is_activated=bool(row["is_activated"]),
            joined_at=datetime.fromisoformat(row["joined_at"]),
        )

    @staticmethod
    def _insert_identity(conn: sqlite3.Connection, identity: Identity) -> None:
        salt, hash_, password = IdentityDatabase._credential_columns(identity.credential)
        conn.execute("""
            INSERT INTO users (user_id, name, email, role, is_onboarded, salt, hash, password, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        """, (
            identity.user_id,
            identity.name,
            identity.email,
            identity.role.value,
            1 if identity.is_onboarded else 0,
            salt,
            hash_,
            password,
            identity.created_at.isoformat(),
        ))

    # ========================================================================
    # Identity Operations
    # ========================================================================

    def create_identity(
        self,
        name: Optional[str],
        email: str,
        credential: Credential,
        role: Role = Role.STUDENT,
        is_onboarded: bool = False
    ) -> Identity:
        """
        Create a new identity.

        Args:
            name: Display name
            email: Unique email address
            credential: Stored password representation
            role: Role to assign (STUDENT by default)
            is_onboarded: Initial onboarding flag

        Returns:
            Created Identity

        Raises:
            ConflictError: If the email already exists
            StoreError: On any other store failure
        """
        identity = Identity(
            user_id=str(uuid.uuid4()),
            name=name,
            email=email,
            role=role,
            credential=credential,
            is_onboarded=is_onboarded,
            created_at=datetime.now(),
        )

        with self._lock, self._connect() as conn:
            self._insert_identity(conn, identity)
            conn.commit()

        logger.info(f"Identity created: {email} ({identity.user_id}) with role: {role.value}")
        return identity

    def get_identity_by_email(self, email: str) -> Optional[Identity]:
        """
        Get identity by email.

        Returns:
            Identity if found, None otherwise
        """
        with self._lock, self._connect() as conn:
            row = conn.execute("SELECT * FROM users WHERE email = ?", (email,)).fetchone()
        return self._row_to_identity(row) if row else None

    def get_identity_by_id(self, user_id: str) -> Optional[Identity]:
        """
        Get identity by ID.

        Returns:
            Identity if found, None otherwise
        """
        with self._lock, self._connect() as conn:
            row = conn.execute("SELECT * FROM users WHERE user_id = ?", (user_id,)).fetchone()
        return self._row_to_identity(row) if row else None

    def update_credential(self, user_id: str, credential: Credential) -> bool:
        """
        Replace the stored credential of an identity.

        Returns:
            True if a row was updated
        """
        salt, hash_, password = self._credential_columns(credential)
        with self._lock, self._connect() as conn:
            cursor = conn.execute("""
                UPDATE users SET salt = ?, hash = ?, password = ?
                WHERE user_id = ?
            """, (salt, hash_, password, user_id))
            conn.commit()
            success = cursor.rowcount > 0

        if success:
            logger.info(f"Credential updated for user {user_id}")
        return success

    def update_profile(
        self,
        user_id: str,
        name: Optional[str] = None,
        is_onboarded: Optional[bool] = None
    ) -> bool:
        """
        Update display name and/or onboarding flag.

        Args:
            user_id: Identity to update
            name: New display name, unchanged if None
            is_onboarded: New onboarding flag, unchanged if None

        Returns:
            True if a row was updated
        """
        assignments = []
        params: list = []
        if name is not None:
            assignments.append("name = ?")
            params.append(name)
        if is_onboarded is not None:
            assignments.append("is_onboarded = ?")
            params.append(1 if is_onboarded else 0)
        if not assignments:
            return False

        params.append(user_id)
        with self._lock, self._connect() as conn:
            cursor = conn.execute(
                f"UPDATE users SET {', '.join(assignments)} WHERE user_id = ?",
                params,
            )
            conn.commit()
            return cursor.rowcount > 0

    # ========================================================================
    # Student Operations
    # ========================================================================

    def get_student(self, student_id: str) -> Optional[Tuple[StudentProfile, Identity]]:
        """
        Get a student profile with its identity by student ID.

        Returns:
            (StudentProfile, Identity) tuple if found, None otherwise
        """
        with self._lock, self._connect() as conn:
            row = conn.execute("""
                SELECT s.profile_id, s.student_id, s.is_activated, s.joined_at, u.*
                FROM students s
                JOIN users u ON u.user_id = s.user_id
                WHERE s.student_id = ?
            """, (student_id,)).fetchone()

        if not row:
            return None
        return self._row_to_profile(row), self._row_to_identity(row)

    def get_student_by_user_id(self, user_id: str) -> Optional[StudentProfile]:
        """
        Get the student profile of an identity.

        Returns:
            StudentProfile if the identity is a provisioned student, None otherwise
        """
        with self._lock, self._connect() as conn:
            row = conn.execute("SELECT * FROM students WHERE user_id = ?", (user_id,)).fetchone()
        return self._row_to_profile(row) if row else None

    def create_student(
        self,
        name: str,
        email: str,
        student_id: str,
        credential: Credential,
        is_activated: bool = False
    ) -> Tuple[StudentProfile, Identity]:
        """
        Create a STUDENT identity and its profile in one transaction.

        Raises:
            ConflictError: If the email or student ID already exists
            StoreError: On any other store failure
        """
        now = datetime.now()
        identity = Identity(
            user_id=str(uuid.uuid4()),
            name=name,
            email=email,
            role=Role.STUDENT,
            credential=credential,
            is_onboarded=False,
            created_at=now,
        )
        profile = StudentProfile(
            profile_id=str(uuid.uuid4()),
            user_id=identity.user_id,
            student_id=student_id,
            is_activated=is_activated,
            joined_at=now,
        )

        with self._lock, self._connect() as conn:
            self._insert_identity(conn, identity)
            conn.execute("""
                INSERT INTO students (profile_id, user_id, student_id, is_activated, joined_at)
                VALUES (?, ?, ?, ?, ?)
            """, (
                profile.profile_id,
                profile.user_id,
                profile.student_id,
                1 if profile.is_activated else 0,
                profile.joined_at.isoformat(),
            ))
            conn.commit()

        logger.info(f"Student created: {student_id} ({identity.user_id})")
        return profile, identity

    def activate_student(self, profile: StudentProfile, credential: Credential) -> None:
        """
        Store the chosen credential and activate the profile atomically.

        Both writes happen in one transaction; nothing changes if either fails.

        Raises:
            AlreadyActivatedError: If the profile was activated concurrently
            StoreError: On store failure
        """
        salt, hash_, password = self._credential_columns(credential)
        with self._lock, self._connect() as conn:
            conn.execute("""
                UPDATE users SET salt = ?, hash = ?, password = ?
                WHERE user_id = ?
            """, (salt, hash_, password, profile.user_id))

            cursor = conn.execute("""
                UPDATE students SET is_activated = 1
                WHERE profile_id = ? AND is_activated = 0
            """, (profile.profile_id,))

            if cursor.rowcount != 1:
                conn.rollback()
                raise AlreadyActivatedError()

            conn.commit()

        logger.info(f"Student activated: {profile.student_id}")
