import json
import logging
from typing import Any, Optional

from sqlalchemy import select

from database.models import AppSettings
from database.repositories.base import BaseRepository

logger = logging.getLogger(__name__)


class SettingsRepository(BaseRepository):
    def get_json(self, key: str) -> Optional[Any]:
        setting = self.db.execute(
            select(AppSettings).where(AppSettings.key == key)
        ).scalar_one_or_none()
        if setting is None or not setting.value:
            return None
        return json.loads(setting.value)

    def set_json(self, key: str, value: Any) -> None:
        setting = self.db.execute(
            select(AppSettings).where(AppSettings.key == key)
        ).scalar_one_or_none()
        encoded = json.dumps(value)
        if setting is None:
            self._add(AppSettings(key=key, value=encoded))
        else:
            setting.value = encoded
            self.db.flush()
