"""
Shared fixtures: a temporary identity store and a resolver over it.
"""

import pytest

from saberpro.auth.database import IdentityDatabase
from saberpro.auth.models import PlaintextCredential
from saberpro.auth.passwords import PasswordHasher
from saberpro.auth.user_manager import UserManager


@pytest.fixture
def db(tmp_path):
    return IdentityDatabase(tmp_path / "users.db")


@pytest.fixture
def hasher():
    return PasswordHasher(iterations=1000)


@pytest.fixture
def users(db, hasher):
    return UserManager(db, hasher)


@pytest.fixture
def inactive_student(users):
    """Provisioned student 123456 with a hashed password, not yet activated."""
    users.provision_student(
        name="Ana Torres",
        email="ana@saberpro.com",
        student_id="123456",
        password="initial1",
    )
    return "123456"


@pytest.fixture
def legacy_student(db):
    """Activated student 654321 whose password is stored as plaintext."""
    db.create_student(
        name="Luis Rojas",
        email="luis@saberpro.com",
        student_id="654321",
        credential=PlaintextCredential("password123"),
        is_activated=True,
    )
    return "654321"
