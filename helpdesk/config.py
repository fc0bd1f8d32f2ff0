import secrets

from pydantic import model_validator
from pydantic_settings import BaseSettings
from dotenv import load_dotenv

load_dotenv()

class Settings(BaseSettings):
    database_url: str

    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: list[str] = ["*"]

    # Security
    SECRET_KEY: str | None = None
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_HOURS: int = 9

    # Login protection
    IP_BAN_FAIL_OPEN: bool = True
    LOGIN_MAX_ATTEMPTS: int = 5
    LOGIN_BAN_MINUTES: int = 15
    LOGIN_ATTEMPT_WINDOW_MINUTES: int = 15
    BAN_PURGE_ENABLED: bool = True

    class Config:
        env_file = ".env"

    @model_validator(mode="after")
    def ensure_secret_key(self):
        if self.SECRET_KEY:
            return self
        if self.ENVIRONMENT.lower() == "production":
            raise ValueError("SECRET_KEY must be set when ENVIRONMENT=production")
        # Tokens signed with a per-process secret stop validating on restart.
        self.SECRET_KEY = secrets.token_urlsafe(32)
        return self

settings = Settings()
