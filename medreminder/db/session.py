import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Optional

from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from medreminder.core.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).resolve().parent.parent / "migrations"


def build_engine(settings: Optional[Settings] = None) -> Engine:
    """Engine for the on-device SQLite database."""
    settings = settings or default_settings
    url = settings.DATABASE_URL
    kwargs = {
        # Store calls are dispatched to worker threads via asyncio.to_thread
        "connect_args": {"check_same_thread": False},
        "pool_pre_ping": True,
        "echo": settings.DB_ECHO,
    }
    if url in ("sqlite://", "sqlite:///:memory:"):
        # One shared connection, otherwise every checkout sees an empty database
        kwargs["poolclass"] = StaticPool
    return create_engine(url, **kwargs)


def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


@contextmanager
def session_scope(factory: sessionmaker) -> Generator[Session, None, None]:
    """
    Session with commit on success, rollback on any exception, close always.

    Usage:
        with session_scope(factory) as db:
            db.query(MedicinePlan).all()
    """
    db = factory()
    try:
        yield db
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Database session error: {e}")
        raise
    except Exception:
        # Domain errors (NotFoundError, ValidationError) are reported by the caller
        db.rollback()
        raise
    finally:
        db.close()


def alembic_config(engine: Engine) -> Config:
    cfg = Config()
    cfg.set_main_option("script_location", str(MIGRATIONS_DIR))
    # configparser interpolation treats % specially
    url = engine.url.render_as_string(hide_password=False).replace("%", "%%")
    cfg.set_main_option("sqlalchemy.url", url)
    return cfg


def init_db(engine: Engine) -> None:
    """Create or upgrade the medicine_plans schema to the latest revision."""
    cfg = alembic_config(engine)
    with engine.begin() as connection:
        cfg.attributes["connection"] = connection
        command.upgrade(cfg, "head")
    logger.info(f"🗄️  [DB] Schema at head for {engine.url.render_as_string(hide_password=True)}")
