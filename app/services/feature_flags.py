"""
Runtime switches.

A ``system_settings`` row overrides the environment default, so operators can
turn ERA auto-posting off without a deploy.
"""
from typing import Optional

from sqlalchemy.orm import Session

from app.config.settings import RevenueCycleSettings, get_settings
from app.models.database import SystemSetting
from app.utils.logger import get_logger

logger = get_logger(__name__)

AUTO_POSTING_KEY = "era_auto_posting_enabled"
FOLLOW_UP_DAYS_KEY = "denial_follow_up_days"

TRUE_VALUES = frozenset({"true", "1", "yes", "on"})
FALSE_VALUES = frozenset({"false", "0", "no", "off"})


class FeatureFlags:
    def __init__(self, db: Session, settings: Optional[RevenueCycleSettings] = None):
        self.db = db
        self.settings = settings or get_settings()

    def _stored_value(self, key: str) -> Optional[str]:
        row = self.db.query(SystemSetting).filter(SystemSetting.setting_key == key).first()
        if row is None or row.setting_value is None:
            return None
        return row.setting_value.strip().lower()

    def auto_posting_enabled(self) -> bool:
        value = self._stored_value(AUTO_POSTING_KEY)
        if value in TRUE_VALUES:
            return True
        if value in FALSE_VALUES:
            return False
        if value is not None:
            logger.warning("Unrecognised auto-posting setting, using default", value=value)
        return self.settings.era_auto_posting_enabled

    def denial_follow_up_days(self) -> int:
        value = self._stored_value(FOLLOW_UP_DAYS_KEY)
        if value and value.isdigit() and int(value) > 0:
            return int(value)
        return self.settings.denial_follow_up_days

    def denial_appeal_window_days(self) -> int:
        return self.settings.denial_appeal_window_days
