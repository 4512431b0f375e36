import os

import pytest
from sqlalchemy.orm import Session

from rowweight import SessionRecordStore, WeightConfig, WeightManager, refresh_settings_cache
from rowweight.db import database

from tests.models import Base, Slide, Task


@pytest.fixture(scope="session", autouse=True)
def create_schema_once():
    """Bind the module engine to the test database and create all tables once."""
    engine = database.configure(os.getenv("ROWWEIGHT_TEST_DB") or database.SQLITE_MEMORY_URL)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def clean_data():
    """Delete all rows between tests without dropping metadata (faster)."""
    connection = database.engine.connect()
    trans = connection.begin()
    for table in reversed(Base.metadata.sorted_tables):
        connection.execute(table.delete())
    trans.commit()
    connection.close()
    yield


@pytest.fixture(autouse=True)
def _reset_settings(monkeypatch):
    monkeypatch.delenv("WEIGHT_TRANSACTIONAL", raising=False)
    refresh_settings_cache()
    yield
    refresh_settings_cache()


@pytest.fixture
def db_session():
    db = database.SessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def task_config():
    return WeightConfig(weight_group_column="project_id")


@pytest.fixture
def task_manager(db_session: Session, task_config):
    return WeightManager(SessionRecordStore(db_session, Task, task_config))


@pytest.fixture
def slide_manager(db_session: Session):
    return WeightManager(SessionRecordStore(db_session, Slide, WeightConfig(weight_column="position")))


@pytest.fixture
def task_factory(db_session: Session):
    """Insert tasks with literal weights, bypassing the manager."""
    def _create(weight: int, project_id=1, title: str = None):
        task = Task(title=title or f"task-{project_id}-{weight}", project_id=project_id, weight=weight)
        db_session.add(task)
        db_session.commit()
        db_session.refresh(task)
        return task
    return _create
