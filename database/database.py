import contextlib
import logging

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.exc import OperationalError
from tenacity import retry, stop_after_attempt, wait_fixed, retry_if_exception_type

from core.config_loader import DatabaseConfig
from database.models import Base

logger = logging.getLogger(__name__)


def build_engine(config: DatabaseConfig) -> Engine:
    kwargs = {}
    if config.url.startswith("sqlite"):
        # Worker threads share the engine; each opens its own session
        kwargs["connect_args"] = {"check_same_thread": False, "timeout": 30}
    return create_engine(config.url, echo=config.echo, **kwargs)


def create_session_factory(config: DatabaseConfig) -> sessionmaker:
    engine = build_engine(config)
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


@retry(
    stop=stop_after_attempt(5),
    wait=wait_fixed(2),
    retry=retry_if_exception_type(OperationalError),
    reraise=True
)
def init_db(session_factory: sessionmaker) -> None:
    """Create tables if missing. Retries while the database is still starting."""
    engine = session_factory.kw["bind"]
    Base.metadata.create_all(bind=engine)
    logger.info(f"Database schema ready ({engine.url.render_as_string(hide_password=True)})")


@contextlib.contextmanager
def session_scope(session_factory: sessionmaker):
    """Provide a transactional scope around a series of operations."""
    session: Session = session_factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
