from __future__ import annotations

from pathlib import Path

import pytest

from charwizard.config import settings
from charwizard.db import session as db_session
from charwizard.db.base import Base
from charwizard.db.models import Character, CreationSession, DailyUsage  # noqa: F401
from charwizard.modules.creation import service as creation_service
from charwizard.modules.telemetry.service import reset_creation_telemetry


@pytest.fixture(autouse=True)
def _reset_db_and_defaults(tmp_path: Path) -> None:
    settings.env = "dev"
    settings.dev_auth_enabled = True
    settings.llm_api_key = ""
    settings.llm_base_url = "https://api.openai.com/v1"
    settings.llm_model = "gpt-4o"
    settings.llm_max_attempts = 1
    settings.daily_completion_limit = 200
    settings.quota_timezone = "UTC"
    settings.choice_option_count = 4
    settings.jwt_secret = "test-secret"
    creation_service._creation_controller = None
    reset_creation_telemetry()
    db_session.rebind_engine(f"sqlite+pysqlite:///{tmp_path / 'test.db'}")
    Base.metadata.drop_all(bind=db_session.engine)
    Base.metadata.create_all(bind=db_session.engine)
    yield
    reset_creation_telemetry()
    creation_service._creation_controller = None
    Base.metadata.drop_all(bind=db_session.engine)
    db_session.engine.dispose()
