import logging

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from helpdesk.config import settings
from helpdesk.database import get_db as db_session
from helpdesk.permissions import Permission, is_admin, has_any_permission
from helpdesk.schemas.user import TokenData
from helpdesk.services import ip_bans
from helpdesk.services import users as user_service
from helpdesk.utils.security import InvalidTokenError, SessionCodec, session_codec

logger = logging.getLogger(__name__)


def get_db(db: AsyncSession = Depends(db_session)):
    return db


def get_session_codec() -> SessionCodec:
    return session_codec


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_bearer_token(authorization: str | None = Header(None)) -> str:
    if not authorization:
        raise _unauthorized("Missing Authorization header")

    parts = authorization.split(" ")
    if len(parts) != 2 or parts[0] != "Bearer" or not parts[1]:
        raise _unauthorized("Invalid Authorization format")
    return parts[1]


async def get_current_identity(
    token: str = Depends(get_bearer_token),
    codec: SessionCodec = Depends(get_session_codec),
) -> TokenData:
    try:
        return codec.verify(token)
    except InvalidTokenError:
        raise _unauthorized("Invalid or expired token")


def require_permission(*required: Permission):
    """
    Build a dependency that admits the caller if any of ``required`` is held.

    The admin passes every check. User management stays with the admin even
    when another account holds the ``users`` tag. Everyone else has their
    permissions re-read from the database on each request.
    """
    required_set = frozenset(required)

    async def checker(
        identity: TokenData = Depends(get_current_identity),
        db: AsyncSession = Depends(get_db),
    ) -> TokenData:
        if is_admin(identity.id):
            return identity

        if Permission.USERS in required_set:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only the admin can manage users.")

        granted = await user_service.get_permissions(db, identity.id)
        if not has_any_permission(granted, required_set):
            logger.debug(
                "Denied user %s: holds %s, needs any of %s",
                identity.id, sorted(granted), sorted(required_set),
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Forbidden - insufficient permissions",
            )
        return identity

    return checker


def client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"


async def check_ip_ban(request: Request, db: AsyncSession = Depends(get_db)) -> None:
    ip = client_ip(request)
    try:
        banned = await ip_bans.is_banned(db, ip)
    except ip_bans.STORE_ERRORS:
        await ip_bans.rollback_quietly(db)
        if not settings.IP_BAN_FAIL_OPEN:
            logger.exception("IP ban check failed for %s; rejecting request", ip)
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Login is temporarily unavailable",
            )
        logger.warning("IP ban check failed for %s; allowing request", ip, exc_info=True)
        return

    if banned:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=ip_bans.BANNED_MESSAGE)
