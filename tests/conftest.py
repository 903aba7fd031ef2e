import pytest
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from exam_seating.config import AllocatorConfig
from exam_seating.database import make_engine
from exam_seating.schema import init_db


@pytest.fixture
def config():
    return AllocatorConfig()


@pytest.fixture
def engine(config):
    engine = make_engine("sqlite://", poolclass=StaticPool)
    init_db(engine, config)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()
