"""
Record store interface and its SQLAlchemy session implementation.

The weight manager only reads and writes rows through this interface, so
the storage layer keeps ownership of sessions, commits and rollbacks.
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Mapping, Optional

from sqlalchemy import inspect
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from rowweight.config import WeightConfig

logger = logging.getLogger(__name__)


class RecordStore(ABC):
    """Storage contract consumed by the weight manager."""

    config: WeightConfig
    model_class: Any

    @abstractmethod
    def query(self):
        """Return a query over every record of the model."""
        raise NotImplementedError

    @abstractmethod
    def all(self, query) -> List[Any]:
        raise NotImplementedError

    @abstractmethod
    def first(self, query) -> Optional[Any]:
        raise NotImplementedError

    @abstractmethod
    def update(self, record: Any, values: Mapping[str, Any]) -> Any:
        """Persist a partial field change and return the record."""
        raise NotImplementedError

    @abstractmethod
    def refresh(self, record: Any) -> Any:
        """Reload the record from storage when the store tracks it."""
        raise NotImplementedError

    @abstractmethod
    def create(self, fields: Mapping[str, Any]) -> Any:
        raise NotImplementedError

    @abstractmethod
    def group_values(self) -> List[Any]:
        """Return the distinct group keys present ([None] when ungrouped)."""
        raise NotImplementedError

    @abstractmethod
    def transaction(self):
        """Re-entrant context manager: commit on success, roll back on error."""
        raise NotImplementedError


class SessionRecordStore(RecordStore):
    """RecordStore backed by a SQLAlchemy ``Session`` and one mapped class."""

    def __init__(self, db: Session, model_class, config: Optional[WeightConfig] = None):
        self.db = db
        self.model_class = model_class
        self.config = config or WeightConfig()
        self._depth = 0

        mapper = inspect(model_class)
        for column in (self.config.weight_column, self.config.weight_group_column):
            if column is not None and column not in mapper.column_attrs:
                raise ValueError(f"{model_class.__name__} has no column attribute '{column}'")

    def query(self):
        return self.db.query(self.model_class)

    def all(self, query) -> List[Any]:
        return query.all()

    def first(self, query) -> Optional[Any]:
        return query.first()

    def update(self, record: Any, values: Mapping[str, Any]) -> Any:
        for key, value in values.items():
            setattr(record, key, value)
        self._commit()
        return record

    def refresh(self, record: Any) -> Any:
        state = inspect(record, raiseerr=False)
        if state is None or not state.persistent:
            return record
        self.db.refresh(record)
        return record

    def create(self, fields: Mapping[str, Any]) -> Any:
        db_record = self.model_class(**fields)
        self.db.add(db_record)
        self._commit()
        self.db.refresh(db_record)
        return db_record

    def group_values(self) -> List[Any]:
        if not self.config.grouped:
            return [None]
        column = getattr(self.model_class, self.config.weight_group_column)
        return [row[0] for row in self.db.query(column).distinct().all()]

    @property
    def in_transaction(self) -> bool:
        return self._depth > 0

    @contextmanager
    def transaction(self) -> Iterator[None]:
        outermost = self._depth == 0
        self._depth += 1
        try:
            yield
        except Exception:
            if outermost:
                self.db.rollback()
            raise
        finally:
            self._depth -= 1
        if outermost:
            self._commit()

    def _commit(self) -> None:
        if self._depth:
            self.db.flush()
            return
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            logger.error(f"Commit failed for {self.model_class.__name__}: {e}")
            self.db.rollback()
            raise


def fields_from(payload: Any) -> Dict[str, Any]:
    """Copy a mapping or pydantic model into a plain dict of field values."""
    if hasattr(payload, "model_dump"):
        return payload.model_dump(exclude_unset=True)
    return dict(payload)
