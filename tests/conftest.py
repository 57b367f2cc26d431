import os
import tempfile
from pathlib import Path

_TMP = Path(tempfile.mkdtemp(prefix="product-imager-tests-"))
os.environ.setdefault("PIG_DATABASE_URL", f"sqlite:///{_TMP / 'settings.db'}")
os.environ.setdefault("PIG_EXPORT_ROOT", str(_TMP / "exports"))
os.environ.setdefault("PIG_API_TOKEN", "test-token")
os.environ.setdefault("PIG_GEMINI_API_KEY", "test-key")

import pytest  # noqa: E402
from fakes import CREDENTIALS  # noqa: E402
from sqlmodel import select  # noqa: E402

from product_imager.db import init_db, session_scope  # noqa: E402
from product_imager.models.entities import RuntimeSetting  # noqa: E402
from product_imager.services.credentials import CredentialStore  # noqa: E402

init_db()


@pytest.fixture(autouse=True)
def clean_settings_table():
    with session_scope() as session:
        for row in session.exec(select(RuntimeSetting)).all():
            session.delete(row)
        session.commit()
    yield


@pytest.fixture
def credential_store() -> CredentialStore:
    store = CredentialStore(session_scope)
    store.save(CREDENTIALS)
    return store


@pytest.fixture
def empty_credential_store() -> CredentialStore:
    return CredentialStore(session_scope)
