from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt
from passlib.context import CryptContext

from helpdesk.config import settings
from helpdesk.schemas.user import TokenData

pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


class InvalidTokenError(Exception):
    """Raised when a bearer token is expired, tampered with or malformed."""


class SessionCodec:
    """
    Signs and verifies session tokens.

    Tokens carry only the user's id and username. Permissions are looked up
    on every request so that revoking one takes effect immediately.
    """

    def __init__(self, secret_key: str, algorithm: str = "HS256", lifetime: timedelta = timedelta(hours=9)):
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.lifetime = lifetime

    def issue(self, identity: TokenData, issued_at: datetime | None = None) -> str:
        issued_at = issued_at or datetime.now(timezone.utc)
        payload = {
            "sub": str(identity.id),
            "username": identity.username,
            "iat": int(issued_at.timestamp()),
            "exp": int((issued_at + self.lifetime).timestamp()),
        }
        return jwt.encode(payload, self.secret_key, algorithm=self.algorithm)

    def verify(self, token: str) -> TokenData:
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except JWTError as exc:
            raise InvalidTokenError(str(exc)) from exc

        subject = payload.get("sub")
        username = payload.get("username")
        if subject is None or username is None:
            raise InvalidTokenError("Token is missing identity claims")
        try:
            return TokenData(id=int(subject), username=username)
        except ValueError as exc:
            raise InvalidTokenError("Token subject is not a user id") from exc


session_codec = SessionCodec(
    settings.SECRET_KEY,
    algorithm=settings.ALGORITHM,
    lifetime=timedelta(hours=settings.ACCESS_TOKEN_EXPIRE_HOURS),
)
