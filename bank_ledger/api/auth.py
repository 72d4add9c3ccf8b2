"""
Authentication and staff user endpoints
"""

from fastapi import APIRouter, Depends, HTTPException, status

from .dependencies import LedgerSystem, get_session, get_system, logger, raise_for_result
from .schemas import CreateUserRequest, TokenRequest, user_to_dict
from ..logging_config import log_action
from ..services import ErrorKind
from ..users import SessionContext


router = APIRouter()


@router.post("/token")
async def issue_token(
    request: TokenRequest,
    system: LedgerSystem = Depends(get_system)
):
    """Exchange user ID and password for a bearer token"""
    session = SessionContext()
    result = system.user_service(session).login(session, request.user_id, request.password)
    if result.error == ErrorKind.PERSISTENCE:
        raise_for_result(result)
    if not result.success:
        log_action(logger, "warning", "Token request rejected",
                   action="login_failed", resource="auth", extra={"user_id": request.user_id})
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=result.message)

    return {
        "access_token": system.create_access_token(result.user),
        "token_type": "bearer",
        "user": user_to_dict(result.user),
    }


@router.get("/me")
async def who_am_i(session: SessionContext = Depends(get_session)):
    return user_to_dict(session.current_user)


@router.post("/users", status_code=status.HTTP_201_CREATED)
async def create_user(
    request: CreateUserRequest,
    session: SessionContext = Depends(get_session),
    system: LedgerSystem = Depends(get_system)
):
    """Register a staff user (ADMIN only)"""
    result = system.user_service(session).register_user(
        request.user_id, request.username, request.password, request.role
    )
    raise_for_result(result)
    return {"message": result.message, "user": user_to_dict(result.user)}


@router.delete("/users/{user_id}")
async def delete_user(
    user_id: str,
    session: SessionContext = Depends(get_session),
    system: LedgerSystem = Depends(get_system)
):
    result = system.user_service(session).delete_user(user_id)
    raise_for_result(result)
    return {"message": result.message}
