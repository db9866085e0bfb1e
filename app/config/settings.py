"""Revenue cycle runtime settings."""
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class RevenueCycleSettings(BaseSettings):
    """
    Settings for remittance posting, denial work queues and the clearinghouse.

    era_auto_posting_enabled is the default for the auto-posting flag; a
    ``system_settings`` row with the same key overrides it at runtime
    (see app.services.feature_flags).
    """

    era_auto_posting_enabled: bool = Field(True, alias="ERA_AUTO_POSTING_ENABLED")
    denial_appeal_window_days: int = Field(90, ge=1, alias="DENIAL_APPEAL_WINDOW_DAYS")
    denial_follow_up_days: int = Field(14, ge=1, alias="DENIAL_FOLLOW_UP_DAYS")

    clearinghouse_api_url: str = Field(
        "https://api.claimmd.com/v1", alias="CLEARINGHOUSE_API_URL"
    )
    clearinghouse_api_key: Optional[str] = Field(None, alias="CLEARINGHOUSE_API_KEY")
    clearinghouse_timeout_seconds: float = Field(30.0, gt=0, alias="CLEARINGHOUSE_TIMEOUT_SECONDS")

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"
        populate_by_name = True


settings = RevenueCycleSettings()


def get_settings() -> RevenueCycleSettings:
    """Return the process-wide settings instance."""
    return settings
