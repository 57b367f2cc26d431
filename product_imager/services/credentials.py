from __future__ import annotations

import json
import logging
from contextlib import AbstractContextManager
from typing import Callable

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from product_imager.models.schemas import CredentialSet
from product_imager.repositories.settings import SettingsRepository

logger = logging.getLogger(__name__)

CREDENTIALS_KEY = "storage_credentials"

SessionFactory = Callable[[], AbstractContextManager[Session]]


class CredentialStore:
    """Process-scoped holder of the blob storage credentials.

    The credentials are read once from the local settings table at startup and
    overwritten wholesale on save. Read failures never propagate: a missing or
    corrupt record degrades to empty credentials.
    """

    def __init__(self, session_factory: SessionFactory) -> None:
        self._session_factory = session_factory
        self._current = CredentialSet()

    @property
    def current(self) -> CredentialSet:
        return self._current

    @property
    def is_configured(self) -> bool:
        return self._current.is_configured

    def load(self) -> CredentialSet:
        try:
            with self._session_factory() as session:
                raw = SettingsRepository(session).get(CREDENTIALS_KEY)
            if raw:
                self._current = CredentialSet.model_validate(json.loads(raw))
            else:
                self._current = CredentialSet()
        except (SQLAlchemyError, ValueError, ValidationError) as exc:
            logger.error("Failed to read storage credentials from the settings store: %s", exc)
            self._current = CredentialSet()
        return self._current

    def save(self, credentials: CredentialSet) -> CredentialSet:
        payload = credentials.model_dump_json(by_alias=True)
        with self._session_factory() as session:
            SettingsRepository(session).upsert(CREDENTIALS_KEY, payload)
        self._current = credentials
        logger.info("Storage credentials saved (configured=%s)", credentials.is_configured)
        return self._current
