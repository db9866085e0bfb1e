"""Security configuration and validation.

JWT signing, CORS and authentication settings. validate_security_settings()
runs during application setup and refuses to start with default or weak
secrets, or with wildcard/insecure CORS origins in production.
"""
import math
import os
from collections import Counter
from typing import List, Set
from urllib.parse import urlparse

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

from app.utils.logger import get_logger
from app.utils.errors import AppError

logger = get_logger(__name__)

# Default value that must never reach a running deployment
DEFAULT_JWT_SECRET = "change-me-in-production-min-32-characters-required"

ALLOWED_JWT_ALGORITHMS: Set[str] = {"HS256", "HS384", "HS512"}

MIN_JWT_SECRET_LENGTH = 32
MIN_ENTROPY_JWT_SECRET = 4.0  # bits per character


def calculate_entropy(text: str) -> float:
    """Shannon entropy of a string in bits per character."""
    if not text:
        return 0.0
    length = len(text)
    return -sum(
        (count / length) * math.log2(count / length) for count in Counter(text).values()
    )


class SecuritySettings(BaseSettings):
    """Security settings. Defaults are for development only."""

    jwt_secret_key: str = Field(
        default=DEFAULT_JWT_SECRET,
        description="JWT signing secret, at least 32 random characters.",
    )
    jwt_algorithm: str = Field(default="HS256")
    jwt_access_token_expire_minutes: int = Field(default=480, ge=5, le=10080)

    cors_origins: str = Field(
        default="http://localhost:3000",
        description="Comma-separated list of allowed CORS origins. Wildcards are rejected.",
    )

    @field_validator("jwt_algorithm")
    @classmethod
    def validate_jwt_algorithm(cls, v: str) -> str:
        """Only HMAC algorithms are supported."""
        if v not in ALLOWED_JWT_ALGORITHMS:
            raise ValueError(
                f"JWT algorithm '{v}' is not allowed. "
                f"Allowed algorithms: {', '.join(sorted(ALLOWED_JWT_ALGORITHMS))}"
            )
        return v

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"


settings = SecuritySettings()


def validate_security_settings() -> None:
    """
    Validate security settings at startup.

    Raises:
        AppError: If the JWT secret is the default, too short or low-entropy,
            or if CORS origins are empty, wildcarded, or (in production) not HTTPS.
    """
    environment = os.getenv("ENVIRONMENT", "development").lower()
    is_production = environment == "production"
    errors: List[str] = []

    secret = settings.jwt_secret_key
    if secret == DEFAULT_JWT_SECRET or secret.startswith("change-me"):
        errors.append("JWT_SECRET_KEY is using the default value. Set a secure random value.")
    elif len(secret) < MIN_JWT_SECRET_LENGTH:
        errors.append(
            f"JWT_SECRET_KEY is too short ({len(secret)} characters, minimum {MIN_JWT_SECRET_LENGTH})."
        )
    elif calculate_entropy(secret) < MIN_ENTROPY_JWT_SECRET:
        errors.append("JWT_SECRET_KEY has insufficient entropy.")

    origins = get_cors_origins()
    if not origins:
        errors.append("CORS_ORIGINS is empty. At least one origin must be specified.")
    for origin in origins:
        if origin == "*":
            errors.append("CORS_ORIGINS contains '*'. Specify exact origins.")
            continue
        parsed = urlparse(origin)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            errors.append(f"CORS origin '{origin}' is not a valid URL.")
        elif is_production and parsed.scheme != "https":
            errors.append(f"CORS origin '{origin}' must use HTTPS in production.")

    if errors:
        for error in errors:
            logger.error("Security validation failed", error=error)
        raise AppError(
            message="Security validation failed",
            code="SECURITY_CONFIGURATION_ERROR",
            details={"errors": errors},
        )


def get_cors_origins() -> List[str]:
    """Allowed CORS origins as a list."""
    return [origin.strip() for origin in settings.cors_origins.split(",") if origin.strip()]


def get_jwt_secret() -> str:
    """Get JWT secret key."""
    return settings.jwt_secret_key


def get_jwt_algorithm() -> str:
    """Get JWT algorithm."""
    return settings.jwt_algorithm


def get_jwt_access_token_expire_minutes() -> int:
    """Get JWT access token expiration time in minutes."""
    return settings.jwt_access_token_expire_minutes
