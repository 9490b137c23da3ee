from charwizard.db import session as db_session
from charwizard.db.base import Base
from charwizard.db.models import Character, CreationSession, DailyUsage  # noqa: F401


def init_db() -> None:
    Base.metadata.create_all(bind=db_session.engine)
