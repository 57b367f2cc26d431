from __future__ import annotations

from typing import Optional

from sqlmodel import Session

from product_imager.models.entities import RuntimeSetting


class SettingsRepository:
    """Repository for locally persisted key/value settings records."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, key: str) -> Optional[str]:
        setting = self.session.get(RuntimeSetting, key)
        return setting.value if setting else None

    def upsert(self, key: str, value: Optional[str]) -> RuntimeSetting:
        setting = self.session.get(RuntimeSetting, key)
        if setting is None:
            setting = RuntimeSetting(key=key, value=value)
        else:
            setting.value = value
        self.session.add(setting)
        self.session.commit()
        self.session.refresh(setting)
        return setting
