"""
Users, Roles and Permission Gate

Bank staff users with one of three roles. Permissions are additive up the
hierarchy TELLER < MANAGER < ADMIN. The session context holds the single
identity behind a call and answers ``has_permission(operation)`` for the
services.
"""

import hashlib
import hmac
import secrets
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, FrozenSet, List, Optional, Protocol, Union

from .exceptions import ValidationError
from .logging_config import get_logger
from .storage import StorageInterface, storage_errors


class Permission(Enum):
    """Operation names checked by the permission gate"""
    # Teller
    CREATE_CUSTOMER = "CREATE_CUSTOMER"
    OPEN_ACCOUNT = "OPEN_ACCOUNT"
    DEPOSIT = "DEPOSIT"
    WITHDRAW = "WITHDRAW"
    VIEW_BALANCE = "VIEW_BALANCE"
    VIEW_TRANSACTIONS = "VIEW_TRANSACTIONS"

    # Manager
    CLOSE_ACCOUNT = "CLOSE_ACCOUNT"
    OVERRIDE_LIMIT = "OVERRIDE_LIMIT"

    # Admin
    CREATE_USER = "CREATE_USER"
    DELETE_USER = "DELETE_USER"
    VIEW_ALL_ACCOUNTS = "VIEW_ALL_ACCOUNTS"


class Role(Enum):
    TELLER = "TELLER"
    MANAGER = "MANAGER"
    ADMIN = "ADMIN"


_TELLER_PERMISSIONS = frozenset({
    Permission.CREATE_CUSTOMER, Permission.OPEN_ACCOUNT,
    Permission.DEPOSIT, Permission.WITHDRAW,
    Permission.VIEW_BALANCE, Permission.VIEW_TRANSACTIONS,
})
_MANAGER_PERMISSIONS = _TELLER_PERMISSIONS | {Permission.CLOSE_ACCOUNT, Permission.OVERRIDE_LIMIT}
_ADMIN_PERMISSIONS = _MANAGER_PERMISSIONS | {
    Permission.CREATE_USER, Permission.DELETE_USER, Permission.VIEW_ALL_ACCOUNTS,
}

ROLE_PERMISSIONS: Dict[Role, FrozenSet[Permission]] = {
    Role.TELLER: _TELLER_PERMISSIONS,
    Role.MANAGER: frozenset(_MANAGER_PERMISSIONS),
    Role.ADMIN: frozenset(_ADMIN_PERMISSIONS),
}


@dataclass
class User:
    """Bank staff member"""
    user_id: str
    username: str
    role: Role
    password_hash: str = ""
    password_salt: str = ""
    is_active: bool = True
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    last_login: Optional[datetime] = None

    @property
    def permissions(self) -> FrozenSet[Permission]:
        return ROLE_PERMISSIONS[self.role]

    def has_permission(self, permission: Union[str, Permission]) -> bool:
        try:
            permission = Permission(permission) if isinstance(permission, str) else permission
        except ValueError:
            return False
        return self.is_active and permission in self.permissions

    def to_record(self) -> Dict:
        data = asdict(self)
        data['role'] = self.role.value
        data['created_at'] = self.created_at.isoformat()
        data['last_login'] = self.last_login.isoformat() if self.last_login else None
        return data

    @classmethod
    def from_record(cls, data: Dict) -> 'User':
        data = dict(data)
        data['role'] = Role(data['role'])
        data['created_at'] = datetime.fromisoformat(data['created_at'])
        if data.get('last_login'):
            data['last_login'] = datetime.fromisoformat(data['last_login'])
        return cls(**data)


class PermissionGate(Protocol):
    """Anything that can say whether the caller may run an operation"""

    def has_permission(self, operation: Union[str, Permission]) -> bool:
        ...


class SessionContext:
    """The identity behind the current call; login flows live outside the ledger"""

    def __init__(self, user: Optional[User] = None):
        self._user = user

    @property
    def current_user(self) -> Optional[User]:
        return self._user

    @property
    def user_id(self) -> Optional[str]:
        return self._user.user_id if self._user else None

    def is_signed_in(self) -> bool:
        return self._user is not None

    def sign_in(self, user: User) -> None:
        self._user = user

    def sign_out(self) -> None:
        self._user = None

    def has_permission(self, operation: Union[str, Permission]) -> bool:
        if self._user is None:
            return False
        return self._user.has_permission(operation)


class UserManager:
    """Stores staff users and verifies their passwords"""

    table_name = "users"

    def __init__(self, storage: StorageInterface):
        self.storage = storage
        self.logger = get_logger("bank_ledger.users")

    def create_user(self, user_id: str, username: str, password: str,
                    role: Union[str, Role]) -> User:
        """Create a user; raises ValidationError if the ID is taken"""
        if self.exists(user_id):
            raise ValidationError("User ID already exists")

        user = User(user_id=user_id, username=username, role=Role(role))
        self._set_password(user, password)
        self._save(user)
        self.logger.info("User created", extra={"resource": user_id, "action": "CREATE_USER"})
        return user

    def get_user(self, user_id: str) -> Optional[User]:
        with storage_errors(self.logger, "load user", user_id):
            data = self.storage.load(self.table_name, user_id)
        if data:
            return User.from_record(data)
        return None

    def exists(self, user_id: str) -> bool:
        with storage_errors(self.logger, "look up user", user_id):
            return self.storage.exists(self.table_name, user_id)

    def list_users(self) -> List[User]:
        with storage_errors(self.logger, "load users"):
            users = [User.from_record(data) for data in self.storage.load_all(self.table_name)]
        return sorted(users, key=lambda u: u.user_id)

    def authenticate(self, user_id: str, password: str) -> Optional[User]:
        """Return the user if the password matches, else None"""
        user = self.get_user(user_id)
        if not user or not user.is_active or not self._verify_password(user, password):
            self.logger.warning("Authentication failed", extra={"resource": user_id})
            return None

        user.last_login = datetime.now(timezone.utc)
        self._save(user)
        return user

    def change_password(self, user_id: str, old_password: str, new_password: str) -> bool:
        user = self.get_user(user_id)
        if not user or not self._verify_password(user, old_password):
            return False
        self._set_password(user, new_password)
        self._save(user)
        return True

    def delete_user(self, user_id: str) -> bool:
        with storage_errors(self.logger, "delete user", user_id):
            deleted = self.storage.delete(self.table_name, user_id)
        if deleted:
            self.logger.info("User deleted", extra={"resource": user_id, "action": "DELETE_USER"})
        return deleted

    def ensure_default_admin(self, user_id: str, username: str, password: str) -> bool:
        """Seed the administrator on first run; returns True if it was created"""
        if self.exists(user_id):
            return False
        self.create_user(user_id, username, password, Role.ADMIN)
        self.logger.info("Default admin user created", extra={"resource": user_id})
        return True

    # Private helper methods

    def _save(self, user: User) -> None:
        with storage_errors(self.logger, "save user", user.user_id):
            self.storage.save(self.table_name, user.user_id, user.to_record())

    def _set_password(self, user: User, password: str) -> None:
        user.password_salt = secrets.token_hex(16)
        user.password_hash = self._hash_password(password, user.password_salt)

    def _hash_password(self, password: str, salt: str) -> str:
        """Hash password with salt using scrypt"""
        return hashlib.scrypt(
            password.encode(),
            salt=salt.encode(),
            n=16384, r=8, p=1
        ).hex()

    def _verify_password(self, user: User, password: str) -> bool:
        if not user.password_hash or not user.password_salt:
            return False
        candidate = self._hash_password(password, user.password_salt)
        return hmac.compare_digest(candidate, user.password_hash)
