import logging
from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker, declarative_base

from exam_seating.config import get_settings
from exam_seating.exceptions import PersistenceError

logger = logging.getLogger(__name__)


def make_engine(database_url, **kwargs):
    if database_url.startswith("sqlite"):
        kwargs.setdefault("connect_args", {"check_same_thread": False})
    return create_engine(database_url, **kwargs)


engine = make_engine(get_settings().DATABASE_URL)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def atomic(db, label, exam_id="-"):
    """Commit everything written inside the block, or roll all of it back."""
    try:
        yield
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("%s failed, rolled back", label, extra={"exam_id": exam_id})
        raise PersistenceError(f"{label} failed", cause=exc) from exc
