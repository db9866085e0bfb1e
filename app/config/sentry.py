"""Sentry error tracking configuration."""
import os
from typing import Optional, Dict, Any

import sentry_sdk
from pydantic import Field
from pydantic_settings import BaseSettings
from sentry_sdk.integrations.celery import CeleryIntegration
from sentry_sdk.integrations.logging import LoggingIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

from app.utils.logger import get_logger

logger = get_logger(__name__)


class SentrySettings(BaseSettings):
    """Sentry configuration settings."""

    dsn: Optional[str] = Field(None, alias="SENTRY_DSN")
    environment: str = Field("development", alias="SENTRY_ENVIRONMENT")
    release: Optional[str] = Field(None, alias="SENTRY_RELEASE")
    traces_sample_rate: float = Field(0.1, alias="SENTRY_TRACES_SAMPLE_RATE")
    send_default_pii: bool = Field(False, alias="SENTRY_SEND_DEFAULT_PII")  # HIPAA: never on by default
    enable_before_send_filter: bool = Field(True, alias="SENTRY_ENABLE_BEFORE_SEND_FILTER")

    sensitive_headers: str = Field(
        "authorization,cookie,x-api-key,x-auth-token",
        alias="SENTRY_SENSITIVE_HEADERS",
    )
    sensitive_keys: str = Field(
        "password,token,secret,key,patient,policy,subscriber,date_of_birth",
        alias="SENTRY_SENSITIVE_KEYS",
    )

    # Alert configuration
    enable_alerts: bool = Field(True, alias="SENTRY_ENABLE_ALERTS")
    alert_on_errors: bool = Field(False, alias="SENTRY_ALERT_ON_ERRORS")
    alert_on_warnings: bool = Field(False, alias="SENTRY_ALERT_ON_WARNINGS")

    enable_celery_integration: bool = Field(True, alias="SENTRY_ENABLE_CELERY_INTEGRATION")
    enable_sqlalchemy_integration: bool = Field(True, alias="SENTRY_ENABLE_SQLALCHEMY_INTEGRATION")

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"
        populate_by_name = True


settings = SentrySettings()


def init_sentry() -> None:
    """
    Initialize Sentry error tracking.

    Called from app.core.setup before the FastAPI app is created, and from the
    Celery configuration for workers. Without SENTRY_DSN, or under TESTING,
    Sentry stays disabled and errors are only logged.
    """
    if not settings.dsn:
        logger.info("Sentry DSN not configured, error tracking disabled")
        return

    if os.getenv("TESTING") == "true":
        logger.info("Skipping Sentry initialization in test environment")
        return

    integrations = [
        # Log records become breadcrumbs; errors are captured explicitly
        LoggingIntegration(level=None, event_level=None),
    ]
    if settings.enable_celery_integration:
        integrations.append(CeleryIntegration())
    if settings.enable_sqlalchemy_integration:
        integrations.append(SqlalchemyIntegration())

    sentry_sdk.init(
        dsn=settings.dsn,
        environment=settings.environment,
        release=settings.release,
        traces_sample_rate=settings.traces_sample_rate,
        send_default_pii=settings.send_default_pii,
        integrations=integrations,
        before_send=filter_sensitive_data if settings.enable_before_send_filter else None,
    )

    logger.info(
        "Sentry initialized",
        environment=settings.environment,
        release=settings.release,
        filter_enabled=settings.enable_before_send_filter,
    )


def _split_setting(value: str) -> list:
    return [item.strip().lower() for item in value.split(",") if item.strip()]


def filter_sensitive_data(event: Dict[str, Any], hint: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """
    Strip credentials and patient data from a Sentry event before it is sent.

    - Request headers listed in SENTRY_SENSITIVE_HEADERS are removed
    - User context is reduced to id and username
    - Extra context keys containing any SENTRY_SENSITIVE_KEYS pattern are removed
    """
    sensitive_headers = _split_setting(settings.sensitive_headers)
    sensitive_keys = _split_setting(settings.sensitive_keys)

    headers = event.get("request", {}).get("headers")
    if headers:
        for header_key in [h for h in headers if h.lower() in sensitive_headers]:
            headers.pop(header_key, None)

    if "user" in event:
        event["user"] = {
            "id": event["user"].get("id"),
            "username": event["user"].get("username"),
        }

    extra = event.get("extra")
    if extra:
        for extra_key in [k for k in extra if any(p in k.lower() for p in sensitive_keys)]:
            extra.pop(extra_key, None)

    return event


def capture_exception(
    exception: Exception,
    level: str = "error",
    context: Optional[Dict[str, Any]] = None,
    tags: Optional[Dict[str, str]] = None,
) -> Optional[str]:
    """
    Capture an exception to Sentry with additional context.

    Returns:
        Event ID if Sentry is configured, None otherwise
    """
    with sentry_sdk.new_scope() as scope:
        scope.set_level(level)
        for key, value in (context or {}).items():
            scope.set_context(key, value if isinstance(value, dict) else {"value": value})
        for key, value in (tags or {}).items():
            scope.set_tag(key, value)
        return sentry_sdk.capture_exception(exception)


def add_breadcrumb(
    message: str,
    category: str = "default",
    level: str = "info",
    data: Optional[Dict[str, Any]] = None,
) -> None:
    """Add a breadcrumb describing what happened before a potential error."""
    sentry_sdk.add_breadcrumb(
        message=message,
        category=category,
        level=level,
        data=data or {},
    )
