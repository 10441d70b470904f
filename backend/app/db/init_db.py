"""Create all tables. Run on app startup.

A store that cannot be reached raises here; the caller lets it propagate so
the process exits and the orchestrator restarts it.
"""
import logging

from sqlalchemy import text

from app.db.base import Base
from app.db.session import engine
from app.models import material, content, study_user  # noqa: F401 - register models

logger = logging.getLogger(__name__)


def init_db():
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))
    Base.metadata.create_all(bind=engine)
    logger.info(f"Database ready ({engine.url.get_backend_name()})")
