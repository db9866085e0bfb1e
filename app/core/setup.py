"""
Application setup and initialization.

Runs before the FastAPI application is created: loads `.env`, starts Sentry,
configures structlog and refuses to start with insecure security settings.
`app/main.py` calls `setup_application()` before creating the app.
"""
import os

from dotenv import load_dotenv

from app.config.sentry import init_sentry
from app.utils.logger import get_logger, configure_logging
from app.config.security import validate_security_settings


def setup_application() -> None:
    """
    Initialize application environment and configuration.

    Order matters: environment first, then Sentry (so import-time errors are
    captured), then logging, then security validation.

    Raises:
        AppError: If security validation fails
    """
    load_dotenv()

    init_sentry()

    configure_logging(
        log_level=os.getenv("LOG_LEVEL", "info"),
        log_format=os.getenv("LOG_FORMAT", "json"),
        log_file=os.getenv(
            "LOG_FILE",
            "app.log" if os.getenv("ENVIRONMENT") == "production" else None,
        ),
        log_dir=os.getenv("LOG_DIR", "logs"),
    )

    logger = get_logger(__name__)

    try:
        validate_security_settings()
        logger.info("Security settings validated successfully")
    except Exception as e:
        logger.critical(
            "Security validation failed - application cannot start", error=str(e)
        )
        raise
