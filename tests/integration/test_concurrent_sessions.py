"""
Two independent sessions appending to one group race on the same maximum;
the duplicate they produce is healed by the next operation's repair pass.
"""
import pytest
from sqlalchemy.orm import sessionmaker

from rowweight import SessionRecordStore, WeightConfig, WeightManager
from rowweight.db.database import build_engine

from tests.models import Base, Task, task_weights


@pytest.fixture
def file_engine(tmp_path):
    eng = build_engine(f"sqlite:///{tmp_path / 'race.db'}")
    Base.metadata.create_all(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def sessions(file_engine):
    factory = sessionmaker(autocommit=False, autoflush=False, bind=file_engine)
    first, second = factory(), factory()
    try:
        yield first, second
    finally:
        first.close()
        second.close()


def _manager(db):
    return WeightManager(SessionRecordStore(db, Task, WeightConfig(weight_group_column="project_id")))


def test_racing_appends_are_repaired_by_next_call(sessions):
    db_a, db_b = sessions
    manager_a, manager_b = _manager(db_a), _manager(db_b)
    for title in ("one", "two"):
        manager_a.create({"title": title, "project_id": 1})

    # Both callers compute the next slot before either inserts
    fields_a = manager_a.prepare_create({"title": "from-a", "project_id": 1})
    fields_b = manager_b.prepare_create({"title": "from-b", "project_id": 1})
    assert fields_a["weight"] == fields_b["weight"] == 3

    from_a = manager_a.store.create(fields_a)
    from_b = manager_b.store.create(fields_b)
    assert sorted(w for _, w in task_weights(db_a)) == [1, 2, 3, 3]
    assert manager_a.inconsistent_groups() == [1]

    # The next public call on either side observes and fixes the duplicate
    assert manager_b.next_weight({"project_id": 1}) == 5
    weights = dict(task_weights(db_a))
    assert sorted(weights.values()) == [1, 2, 3, 4]
    assert weights[from_a.id] == 3
    assert weights[from_b.id] == 4


def test_reorder_after_race_swaps_repaired_weights(sessions):
    db_a, db_b = sessions
    manager_a, manager_b = _manager(db_a), _manager(db_b)
    first = manager_a.create({"title": "first", "project_id": 7})
    late = manager_b.create({"title": "late", "project_id": 7, "weight": 1})

    manager_b.weight_up(late)

    assert task_weights(db_a, 7) == [(first.id, 2), (late.id, 1)]
