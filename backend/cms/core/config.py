import logging
import secrets
from dataclasses import dataclass
from datetime import timedelta
from functools import lru_cache

from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)

# Values that must never sign tokens outside local development
PLACEHOLDER_SECRETS = {
    "",
    "fallback-secret-key",
    "change-me",
    "changeme",
    "secret",
}

DEVELOPMENT_ENVS = {"development", "test"}


class ConfigurationError(RuntimeError):
    """Raised at startup when the configuration is unsafe to run with."""


class Settings(BaseSettings):
    APP_NAME: str = "MeinCMS"
    APP_VERSION: str = "0.1.0"
    APP_ENV: str = "production"
    DEBUG: bool = False

    DATABASE_URL: str = "sqlite:///./cms.db"

    # Auth
    SECRET_KEY: str = ""
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 10080  # 7 days
    VERIFICATION_TOKEN_EXPIRE_HOURS: int = 24
    RESET_TOKEN_EXPIRE_HOURS: int = 1

    # Used to build links in outgoing emails
    FRONTEND_URL: str = "http://localhost:5173"

    # SMTP
    SMTP_SERVER: str = ""
    SMTP_PORT: int = 587
    SMTP_USERNAME: str = ""
    SMTP_PASSWORD: str = ""
    EMAIL_FROM: str = "noreply@meincms.local"

    class Config:
        env_file = ".env"


settings = Settings()


@dataclass(frozen=True)
class AuthConfig:
    """Immutable auth configuration, built once at startup."""

    secret_key: str
    algorithm: str = "HS256"
    access_token_ttl: timedelta = timedelta(days=7)
    verification_token_ttl: timedelta = timedelta(hours=24)
    reset_token_ttl: timedelta = timedelta(hours=1)


def build_auth_config(s: Settings) -> AuthConfig:
    """
    Validate the signing secret and snapshot the auth settings.

    An unset or placeholder SECRET_KEY is fatal outside development/test.
    In development a random per-process secret is used instead, so tokens
    do not survive a restart.
    """
    secret = s.SECRET_KEY.strip()
    if secret.lower() in PLACEHOLDER_SECRETS:
        env = s.APP_ENV.strip().lower()
        if env not in DEVELOPMENT_ENVS:
            raise ConfigurationError(
                f"SECRET_KEY is not set (APP_ENV={s.APP_ENV}). "
                "Refusing to start with a default signing secret."
            )
        logger.warning(
            "SECRET_KEY is not set — using a random secret for this process (APP_ENV=%s). "
            "Issued tokens will be invalid after restart.",
            s.APP_ENV,
        )
        secret = secrets.token_urlsafe(48)

    return AuthConfig(
        secret_key=secret,
        algorithm=s.ALGORITHM,
        access_token_ttl=timedelta(minutes=s.ACCESS_TOKEN_EXPIRE_MINUTES),
        verification_token_ttl=timedelta(hours=s.VERIFICATION_TOKEN_EXPIRE_HOURS),
        reset_token_ttl=timedelta(hours=s.RESET_TOKEN_EXPIRE_HOURS),
    )


@lru_cache
def get_auth_config() -> AuthConfig:
    return build_auth_config(settings)
