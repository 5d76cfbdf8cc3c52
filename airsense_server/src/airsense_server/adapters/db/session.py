import logging
from functools import lru_cache

from airsense_core.config.environments import get_settings
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

log = logging.getLogger(__name__)

Base = declarative_base()


@lru_cache(maxsize=1)
def get_session_factory() -> sessionmaker:
    """Create the session factory with current settings, once per process."""
    settings = get_settings()

    log.info(f"Initializing database connection for {settings.ENVIRONMENT.value} environment")
    log.info(f"Database URL: {settings.DATABASE_URL}")

    engine = create_engine(settings.DATABASE_URL, future=True, echo=False)
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)


def SessionLocal():
    return get_session_factory()()
