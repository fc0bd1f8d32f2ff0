import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from helpdesk.dependencies import (
    check_ip_ban,
    client_ip,
    get_bearer_token,
    get_db,
    get_session_codec,
)
from helpdesk.permissions import parse_permissions
from helpdesk.schemas.user import LoginRequest, LoginResponse, TokenData
from helpdesk.services import ip_bans
from helpdesk.services import users as user_service
from helpdesk.utils.security import InvalidTokenError, SessionCodec, verify_password

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


async def _note_failed_login(db: AsyncSession, ip: str) -> None:
    try:
        await ip_bans.record_failed_login(db, ip)
    except ip_bans.STORE_ERRORS:
        await ip_bans.rollback_quietly(db)
        logger.warning("Could not record failed login for %s", ip, exc_info=True)


@router.post("/login", response_model=LoginResponse, dependencies=[Depends(check_ip_ban)])
async def login(
    request: Request,
    credentials: LoginRequest,
    db: AsyncSession = Depends(get_db),
    codec: SessionCodec = Depends(get_session_codec),
):
    ip = client_ip(request)
    user = await user_service.get_user_by_username(db, credentials.username)

    if not user or not verify_password(credentials.password, user.password_hash):
        await _note_failed_login(db, ip)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    identity = TokenData(id=user.id, username=user.username)
    try:
        await ip_bans.clear_failed_logins(db, ip)
    except ip_bans.STORE_ERRORS:
        await ip_bans.rollback_quietly(db)
        logger.warning("Could not clear failed logins for %s", ip, exc_info=True)

    return LoginResponse(
        token=codec.issue(identity),
        user=identity,
        permissions=sorted(p.value for p in parse_permissions(user.permissions)),
    )


@router.post("/refresh", response_model=LoginResponse)
async def refresh_token(
    token: str = Depends(get_bearer_token),
    db: AsyncSession = Depends(get_db),
    codec: SessionCodec = Depends(get_session_codec),
):
    unauthorized = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid or expired token",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        identity = codec.verify(token)
    except InvalidTokenError:
        raise unauthorized

    # Deleted accounts cannot extend their session
    user = await user_service.find_user(db, identity.id)
    if user is None:
        raise unauthorized

    return LoginResponse(
        token=codec.issue(identity),
        user=identity,
        permissions=sorted(p.value for p in parse_permissions(user.permissions)),
    )
