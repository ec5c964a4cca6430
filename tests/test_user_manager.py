"""
Tests for identity resolution against a temporary SQLite store.
"""

import sqlite3

import pytest

from saberpro.auth.errors import (
    AlreadyActivatedError,
    AuthError,
    ConflictError,
    InactiveAccountError,
    IncorrectPasswordError,
    NotFoundError,
    StoreError,
)
from saberpro.auth.models import HashedCredential, PlaintextCredential, Role


class TestEmailLogin:
    """Test email and password login."""

    def test_login_after_registration(self, users):
        users.register("a@b.com", "secret1", "A")
        claims = users.login("a@b.com", "secret1")

        assert claims.email == "a@b.com"
        assert claims.role == Role.STUDENT

    def test_wrong_password_and_unknown_email_look_the_same(self, users):
        users.register("a@b.com", "secret1", "A")

        with pytest.raises(AuthError) as wrong_password:
            users.login("a@b.com", "secret2")
        with pytest.raises(AuthError) as unknown_email:
            users.login("nobody@b.com", "secret1")

        assert wrong_password.value.public_message == unknown_email.value.public_message

    def test_plaintext_record(self, db, users):
        db.create_identity("Admin", "admin@saberpro.com", PlaintextCredential("password123"), role=Role.ADMIN)

        claims = users.login("admin@saberpro.com", "password123")
        assert claims.role == Role.ADMIN

        with pytest.raises(AuthError):
            users.login("admin@saberpro.com", "password124")

    def test_inactive_student_is_refused(self, users, inactive_student):
        with pytest.raises(InactiveAccountError):
            users.login("ana@saberpro.com", "initial1")

    def test_inactive_student_with_wrong_password_gets_auth_error(self, users, inactive_student):
        with pytest.raises(AuthError):
            users.login("ana@saberpro.com", "wrongpass")

    def test_activated_student_can_use_email(self, users, inactive_student):
        claims = users.activate_student(inactive_student, "newpass1")

        assert users.login("ana@saberpro.com", "newpass1").id == claims.id

    def test_missing_name_becomes_empty_string(self, db, users, hasher):
        db.create_identity(None, "noname@b.com", hasher.hash("secret1"))

        assert users.login("noname@b.com", "secret1").name == ""


class TestRegistration:
    """Test registration of new identities."""

    def test_register_returns_student_claims(self, users):
        claims = users.register("a@b.com", "secret1", "A")

        assert claims.name == "A"
        assert claims.role == Role.STUDENT
        assert claims.is_onboarded is False

    def test_password_is_stored_hashed(self, db, users):
        users.register("a@b.com", "secret1", "A")
        identity = db.get_identity_by_email("a@b.com")

        assert isinstance(identity.credential, HashedCredential)
        assert identity.credential.hash != "secret1"

    def test_duplicate_email_conflicts(self, users):
        users.register("a@b.com", "secret1", "A")

        with pytest.raises(ConflictError):
            users.register("a@b.com", "secret1", "A")
        with pytest.raises(ConflictError):
            users.register("a@b.com", "different9", "B")

    def test_store_unique_constraint_is_translated(self, db, hasher):
        """A duplicate that slips past the lookup still surfaces as ConflictError."""
        db.create_identity("A", "a@b.com", hasher.hash("secret1"))

        with pytest.raises(ConflictError):
            db.create_identity("B", "a@b.com", hasher.hash("secret2"))

    def test_name_is_required(self, users):
        with pytest.raises(ValueError):
            users.register("a@b.com", "secret1", None)


class TestStudentLogin:
    """Test student ID login."""

    def test_unknown_student(self, users):
        with pytest.raises(NotFoundError):
            users.student_login("999999", "secret1")

    def test_inactive_student_rejected_even_with_correct_password(self, users, inactive_student):
        with pytest.raises(InactiveAccountError):
            users.student_login(inactive_student, "initial1")

    def test_wrong_password(self, users, legacy_student):
        with pytest.raises(AuthError):
            users.student_login(legacy_student, "wrongpass")

    def test_plaintext_fallback(self, users, legacy_student):
        claims = users.student_login(legacy_student, "password123")

        assert claims.email == "luis@saberpro.com"
        assert claims.role == Role.STUDENT


class TestActivation:
    """Test first-time student activation."""

    def test_activation_flow(self, users, db, inactive_student):
        with pytest.raises(InactiveAccountError):
            users.student_login(inactive_student, "initial1")

        claims = users.activate_student(inactive_student, "newpass1")
        assert claims.email == "ana@saberpro.com"

        profile, _ = db.get_student(inactive_student)
        assert profile.is_activated

        assert users.student_login(inactive_student, "newpass1").id == claims.id
        with pytest.raises(AuthError):
            users.student_login(inactive_student, "initial1")

    def test_activation_keeps_hashed_scheme(self, users, db, inactive_student):
        users.activate_student(inactive_student, "newpass1")
        _, identity = db.get_student(inactive_student)

        assert isinstance(identity.credential, HashedCredential)

    def test_activation_keeps_plaintext_scheme(self, users, db):
        db.create_student("Sin Clave", "sin@saberpro.com", "111111", PlaintextCredential(""))

        users.activate_student("111111", "newpass1")
        _, identity = db.get_student("111111")

        assert identity.credential == PlaintextCredential("newpass1")

    def test_provisioned_without_password_activates_hashed(self, users, db):
        users.provision_student("Sin Clave", "sin@saberpro.com", "111111")

        _, identity = db.get_student("111111")
        assert isinstance(identity.credential, HashedCredential)
        assert not users.hasher.verify_credential("", identity.credential)

        users.activate_student("111111", "newpass1")
        _, identity = db.get_student("111111")

        assert isinstance(identity.credential, HashedCredential)
        assert users.student_login("111111", "newpass1").email == "sin@saberpro.com"

    def test_already_activated_leaves_credentials_unchanged(self, users, db, legacy_student):
        _, before = db.get_student(legacy_student)

        with pytest.raises(AlreadyActivatedError):
            users.activate_student(legacy_student, "newpass1")

        _, after = db.get_student(legacy_student)
        assert after.credential == before.credential

    def test_unknown_student(self, users):
        with pytest.raises(NotFoundError):
            users.activate_student("999999", "newpass1")

    def test_failed_activation_is_rolled_back(self, users, db, inactive_student):
        """If the activation write fails the new credential is not kept either."""
        _, before = db.get_student(inactive_student)

        conn = sqlite3.connect(str(db.db_path))
        conn.execute("""
            CREATE TRIGGER fail_activation BEFORE UPDATE OF is_activated ON students
            BEGIN SELECT RAISE(ABORT, 'activation disabled'); END
        """)
        conn.commit()
        conn.close()

        with pytest.raises(StoreError):
            users.activate_student(inactive_student, "newpass1")

        profile, after = db.get_student(inactive_student)
        assert not profile.is_activated
        assert after.credential == before.credential


class TestSupportOperations:
    """Test student check, password change, provisioning and profile updates."""

    def test_check_student(self, users, inactive_student, legacy_student):
        assert not users.check_student("999999").exists

        inactive = users.check_student(inactive_student)
        assert inactive.exists and not inactive.activated

        assert users.check_student(legacy_student).activated

    def test_change_password(self, users):
        claims = users.register("a@b.com", "secret1", "A")

        users.change_password(claims.id, "secret1", "secret2")

        assert users.login("a@b.com", "secret2").id == claims.id
        with pytest.raises(AuthError):
            users.login("a@b.com", "secret1")

    def test_change_password_requires_current(self, users):
        claims = users.register("a@b.com", "secret1", "A")

        with pytest.raises(IncorrectPasswordError):
            users.change_password(claims.id, "wrongpass", "secret2")

    def test_change_password_migrates_plaintext(self, users, db, legacy_student):
        _, identity = db.get_student(legacy_student)

        users.change_password(identity.user_id, "password123", "newpass1")

        _, identity = db.get_student(legacy_student)
        assert isinstance(identity.credential, HashedCredential)
        assert users.student_login(legacy_student, "newpass1").id == identity.user_id

    def test_change_password_unknown_user(self, users):
        with pytest.raises(NotFoundError):
            users.change_password("missing", "secret1", "secret2")

    def test_provision_duplicate_student_id(self, users, inactive_student):
        with pytest.raises(ConflictError):
            users.provision_student("Otra", "otra@saberpro.com", inactive_student)

    def test_provision_duplicate_email_creates_nothing(self, users, db, inactive_student):
        with pytest.raises(ConflictError):
            users.provision_student("Otra", "ana@saberpro.com", "222222")

        assert db.get_student("222222") is None

    def test_update_profile(self, users):
        claims = users.register("a@b.com", "secret1", "A")

        refreshed = users.update_profile(claims.id, name="Alicia", is_onboarded=True)

        assert refreshed.name == "Alicia"
        assert refreshed.is_onboarded
        assert refreshed.role == Role.STUDENT


class TestStoreFailures:
    """Test that infrastructure failures surface as StoreError."""

    def test_unreadable_store(self, users, db):
        conn = sqlite3.connect(str(db.db_path))
        conn.execute("DROP TABLE students")
        conn.commit()
        conn.close()

        with pytest.raises(StoreError) as exc_info:
            users.student_login("123456", "secret1")

        assert "students" not in exc_info.value.public_message

    def test_check_constraint_is_not_a_conflict(self, db):
        """Only duplicate keys are conflicts; other integrity failures are store errors."""
        with pytest.raises(StoreError):
            db.create_identity("A", "a@b.com", HashedCredential(salt="abcd", hash=None))

        assert db.get_identity_by_email("a@b.com") is None

    def test_trigger_abort_is_a_store_error(self, users, db):
        conn = sqlite3.connect(str(db.db_path))
        conn.execute("""
            CREATE TRIGGER no_signups BEFORE INSERT ON users
            BEGIN SELECT RAISE(ABORT, 'signups closed'); END
        """)
        conn.commit()
        conn.close()

        with pytest.raises(StoreError) as exc_info:
            users.register("a@b.com", "secret1", "A")

        assert not isinstance(exc_info.value, ConflictError)
