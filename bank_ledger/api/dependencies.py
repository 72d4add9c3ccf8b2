"""
System wiring and request dependencies: the ledger container, bearer-token
authentication and the mapping from service failures to HTTP errors.
"""

from datetime import datetime, timezone, timedelta
from typing import Optional

import jwt
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ..bank import Bank
from ..config import LedgerConfig, get_config
from ..exceptions import PersistenceError
from ..ledger_store import LedgerStore
from ..logging_config import get_logger
from ..services import AccountService, CustomerService, ErrorKind, ServiceResult, UserService
from ..storage import SQLiteStorage, StorageInterface
from ..users import SessionContext, User, UserManager


logger = get_logger("bank_ledger.api")

security = HTTPBearer(auto_error=False)


class LedgerSystem:
    """Ledger components built once per process and shared by every request"""

    def __init__(self, config: Optional[LedgerConfig] = None,
                 storage: Optional[StorageInterface] = None):
        self.config = config or get_config()
        self.storage = storage or SQLiteStorage(self.config.database_path)

        self.store = LedgerStore(self.storage)
        self.store.initialize_schema(
            admin_user_id=self.config.default_admin_user_id,
            admin_username=self.config.default_admin_username,
            admin_password=self.config.default_admin_password,
        )
        self.bank = Bank(
            self.store,
            bank_name=self.config.bank_name,
            bank_code=self.config.bank_code,
            customer_id_start=self.config.customer_id_start,
            account_number_start=self.config.account_number_start,
        )
        self.users = UserManager(self.storage)

    # Per-request services bound to the caller's session

    def account_service(self, session: SessionContext) -> AccountService:
        return AccountService(self.bank, self.store, session)

    def customer_service(self, session: SessionContext) -> CustomerService:
        return CustomerService(self.bank, session)

    def user_service(self, session: SessionContext) -> UserService:
        return UserService(
            self.users, session,
            password_min_length=self.config.password_min_length,
            protected_user_id=self.config.default_admin_user_id,
        )

    def create_access_token(self, user: User) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            "sub": user.user_id,
            "role": user.role.value,
            "iat": now,
            "exp": now + timedelta(hours=self.config.jwt_expiry_hours),
        }
        return jwt.encode(payload, self.config.jwt_secret, algorithm=self.config.jwt_algorithm)

    def close(self) -> None:
        self.storage.close()


def get_system(request: Request) -> LedgerSystem:
    return request.app.state.system


def get_session(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    system: LedgerSystem = Depends(get_system),
) -> SessionContext:
    """Validate the bearer token and build the caller's session"""
    if not credentials:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    try:
        payload = jwt.decode(
            credentials.credentials,
            system.config.jwt_secret,
            algorithms=[system.config.jwt_algorithm],
        )
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    try:
        user = system.users.get_user(payload.get("sub", ""))
    except PersistenceError:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                            detail="Failed to retrieve user from database")
    if user is None or not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    return SessionContext(user)


_STATUS_FOR_ERROR = {
    ErrorKind.PERMISSION: status.HTTP_403_FORBIDDEN,
    ErrorKind.VALIDATION: status.HTTP_400_BAD_REQUEST,
    ErrorKind.BUSINESS_RULE: status.HTTP_400_BAD_REQUEST,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.PERSISTENCE: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def raise_for_result(result: ServiceResult) -> None:
    if not result.success:
        raise HTTPException(status_code=_STATUS_FOR_ERROR[result.error], detail=result.message)
