"""
Test suite for users, roles and the session permission gate
"""

import pytest

from bank_ledger.exceptions import ValidationError
from bank_ledger.storage import InMemoryStorage
from bank_ledger.users import (
    Permission, Role, ROLE_PERMISSIONS, SessionContext, User, UserManager
)


@pytest.fixture
def users():
    return UserManager(InMemoryStorage())


@pytest.fixture
def teller(users):
    return users.create_user("teller1", "Tebogo", "secret1", "TELLER")


class TestRoles:
    """Permissions are additive up the role hierarchy"""

    def test_hierarchy_is_additive(self):
        assert ROLE_PERMISSIONS[Role.TELLER] < ROLE_PERMISSIONS[Role.MANAGER]
        assert ROLE_PERMISSIONS[Role.MANAGER] < ROLE_PERMISSIONS[Role.ADMIN]
        assert ROLE_PERMISSIONS[Role.ADMIN] == frozenset(Permission)

    @pytest.mark.parametrize("role,permission,expected", [
        (Role.TELLER, "DEPOSIT", True),
        (Role.TELLER, "WITHDRAW", True),
        (Role.TELLER, "CLOSE_ACCOUNT", False),
        (Role.TELLER, "OVERRIDE_LIMIT", False),
        (Role.MANAGER, "CLOSE_ACCOUNT", True),
        (Role.MANAGER, "OVERRIDE_LIMIT", True),
        (Role.MANAGER, "CREATE_USER", False),
        (Role.ADMIN, "CREATE_USER", True),
        (Role.ADMIN, "VIEW_ALL_ACCOUNTS", True),
    ])
    def test_role_permissions(self, role, permission, expected):
        user = User(user_id="u1", username="User", role=role)
        assert user.has_permission(permission) is expected
        assert user.has_permission(Permission(permission)) is expected

    def test_unknown_operation_is_denied(self):
        user = User(user_id="u1", username="User", role=Role.ADMIN)
        assert not user.has_permission("LAUNDER_MONEY")

    def test_inactive_user_has_no_permissions(self):
        user = User(user_id="u1", username="User", role=Role.ADMIN, is_active=False)
        assert not user.has_permission(Permission.DEPOSIT)


class TestUserManager:

    def test_passwords_are_hashed(self, users, teller):
        stored = users.storage.load("users", "teller1")

        assert "secret1" not in stored.values()
        assert stored["password_hash"] and stored["password_salt"]
        assert stored["role"] == "TELLER"

    def test_same_password_gets_different_salts(self, users, teller):
        other = users.create_user("teller2", "Neo", "secret1", Role.TELLER)
        assert other.password_salt != teller.password_salt
        assert other.password_hash != teller.password_hash

    def test_authenticate(self, users, teller):
        user = users.authenticate("teller1", "secret1")

        assert user is not None
        assert user.role == Role.TELLER
        assert users.get_user("teller1").last_login is not None

    @pytest.mark.parametrize("user_id,password", [
        ("teller1", "wrong"), ("teller1", ""), ("nobody", "secret1"),
    ])
    def test_authenticate_rejects(self, users, teller, user_id, password):
        assert users.authenticate(user_id, password) is None

    def test_duplicate_user_id(self, users, teller):
        with pytest.raises(ValidationError, match="User ID already exists"):
            users.create_user("teller1", "Other", "secret2", "MANAGER")

    def test_change_password(self, users, teller):
        assert not users.change_password("teller1", "wrong", "newpass")
        assert users.change_password("teller1", "secret1", "newpass")

        assert users.authenticate("teller1", "secret1") is None
        assert users.authenticate("teller1", "newpass") is not None

    def test_delete_and_list(self, users, teller):
        users.create_user("admin2", "Admin", "secret2", "ADMIN")

        assert [u.user_id for u in users.list_users()] == ["admin2", "teller1"]
        assert users.delete_user("teller1")
        assert not users.delete_user("teller1")
        assert not users.exists("teller1")

    def test_ensure_default_admin(self, users):
        assert users.ensure_default_admin("admin", "Administrator", "admin123")
        assert not users.ensure_default_admin("admin", "Administrator", "other")

        admin = users.authenticate("admin", "admin123")
        assert admin.role == Role.ADMIN

    def test_record_round_trip(self, users, teller):
        assert users.get_user("teller1") == teller


class TestSessionContext:

    def test_signed_out_session_denies_everything(self):
        session = SessionContext()

        assert not session.is_signed_in()
        assert session.user_id is None
        assert not session.has_permission(Permission.DEPOSIT)

    def test_sign_in_and_out(self, teller):
        session = SessionContext()
        session.sign_in(teller)

        assert session.is_signed_in()
        assert session.current_user is teller
        assert session.user_id == "teller1"
        assert session.has_permission("DEPOSIT")
        assert not session.has_permission("CLOSE_ACCOUNT")

        session.sign_out()
        assert not session.has_permission("DEPOSIT")
