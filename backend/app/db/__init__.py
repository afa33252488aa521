import logging
import os
import sys

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from app.config import settings

log = logging.getLogger("orders.db")

DATABASE_URL = settings.DATABASE_URL

connect_args = {}
if DATABASE_URL.startswith("sqlite"):
    # sessions are handed between threadpool workers by FastAPI
    connect_args["check_same_thread"] = False

engine = create_engine(DATABASE_URL, future=True, echo=False, connect_args=connect_args)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def _running_pytest() -> bool:
    if any("pytest" in os.path.basename(a).lower() for a in sys.argv):
        return True
    return "PYTEST_CURRENT_TEST" in os.environ


def init_db(reset=None):
    """
    Initialize DB schema.

    Behavior:
      - reset=True drops & recreates all tables.
      - reset=None (default) resets when RESET_DB is 1/true/yes or when pytest is detected.
      - reset=False leaves existing tables in place.

    Model modules are imported here so metadata is populated before create_all.
    """
    # imported for the side effect of registering tables on Base.metadata
    import app.models.order  # noqa: F401

    if reset is None:
        env_reset = os.environ.get("RESET_DB", "false").lower() in ("1", "true", "yes")
        reset = env_reset or _running_pytest()

    if reset:
        log.info("Resetting database (%s)", DATABASE_URL)
        Base.metadata.drop_all(bind=engine)

    Base.metadata.create_all(bind=engine)
    log.debug("Database initialized.")


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
