"""
Weight ordering manager.

Keeps a dense, gapless integer ordering ("weight") across the rows of a
model, optionally partitioned into groups by a second column. Every public
operation first repairs the group, so duplicate weights produced by racing
writers or external edits are healed by whichever call comes next instead of
being surfaced to the caller.
"""
from __future__ import annotations

import logging
from collections import Counter
from contextlib import nullcontext
from typing import Any, List, Mapping, Optional

from rowweight.config import WeightConfig
from rowweight.db import scoping
from rowweight.db.store import RecordStore, fields_from

logger = logging.getLogger(__name__)


class WeightManager:
    """Repair, query and reorder the weights of one model through a RecordStore."""

    def __init__(self, store: RecordStore, config: Optional[WeightConfig] = None):
        self.store = store
        self.config = config or store.config

    # -- group scoping ---------------------------------------------------

    def scope(self, record: Any, query):
        """Narrow ``query`` to the rows in ``record``'s group."""
        return scoping.apply_group_filter(query, record, self.config, self.store.model_class)

    def _group_query(self, record: Any, descending: bool = False):
        query = self.scope(record, self.store.query())
        return scoping.apply_weight_order(query, self.config, self.store.model_class, descending=descending)

    def _weight(self, record: Any) -> Any:
        if isinstance(record, Mapping):
            return record.get(self.config.weight_column)
        return getattr(record, self.config.weight_column)

    def _operation(self):
        if self.config.transactional:
            return self.store.transaction()
        return nullcontext()

    # -- consistency repair ------------------------------------------------

    def sanity_check(self, record: Any) -> Any:
        """Renumber ``record``'s group 1..N if any weight occurs more than once.

        Gaps alone are left alone. Returns the record, refreshed from storage
        when the group was rewritten.
        """
        with self._operation():
            if self._repair(record, force=False):
                record = self.store.refresh(record)
        return record

    def renumber(self, record: Any) -> Any:
        """Unconditionally renumber ``record``'s group 1..N, closing any gaps."""
        with self._operation():
            if self._repair(record, force=True):
                record = self.store.refresh(record)
        return record

    def _repair(self, record: Any, force: bool) -> bool:
        rows = self.store.all(self._group_query(record))
        if not force and not self._has_duplicates(rows):
            return False
        if force and all(self._weight(row) == weight for weight, row in enumerate(rows, start=1)):
            return False

        wc = self.config.weight_column
        logger.warning(
            f"Renumbering {len(rows)} {self.store.model_class.__name__} rows in weight group "
            f"{scoping.group_value(record, self.config)!r} ({'forced' if force else 'duplicate weights'})"
        )
        for weight, row in enumerate(rows, start=1):
            self.store.update(row, {wc: weight})
        return True

    def _has_duplicates(self, rows: List[Any]) -> bool:
        counts = Counter(self._weight(row) for row in rows)
        return any(count > 1 for count in counts.values())

    def inconsistent_groups(self) -> List[Any]:
        """Return the group keys whose weights contain duplicates."""
        inconsistent = []
        for value in self.store.group_values():
            probe = self._probe(value)
            if self._has_duplicates(self.store.all(self._group_query(probe))):
                inconsistent.append(value)
        return inconsistent

    def repair_all(self, compact: bool = False) -> int:
        """Repair every group of the table; return how many were rewritten."""
        repaired = 0
        for value in self.store.group_values():
            with self._operation():
                if self._repair(self._probe(value), force=compact):
                    repaired += 1
        logger.info(f"Weight repair over {self.store.model_class.__name__} rewrote {repaired} group(s)")
        return repaired

    def _probe(self, value: Any) -> dict:
        if not self.config.grouped:
            return {}
        return {self.config.weight_group_column: value}

    # -- position query --------------------------------------------------

    def next_weight(self, record: Any) -> int:
        """Return the first unused weight at the end of ``record``'s group."""
        with self._operation():
            self.sanity_check(record)
            last = self.store.first(self._group_query(record, descending=True))
            if last is None:
                return 1
            return self._weight(last) + 1

    # -- reordering ------------------------------------------------------

    def weight_up(self, record: Any) -> Any:
        """Swap weights with the nearest lower-weighted row of the group."""
        with self._operation():
            record = self.sanity_check(record)
            query = scoping.apply_weight_bound(
                self._group_query(record, descending=True),
                self.config,
                self.store.model_class,
                below=self._weight(record),
            )
            neighbour = self.store.first(query)
            if neighbour is None:
                logger.debug(f"Weight {self._weight(record)} is already the lowest in its group")
                return record
            return self._exchange_weight_with(record, neighbour)

    def weight_down(self, record: Any) -> Any:
        """Swap weights with the nearest higher-weighted row of the group."""
        with self._operation():
            record = self.sanity_check(record)
            query = scoping.apply_weight_bound(
                self._group_query(record),
                self.config,
                self.store.model_class,
                above=self._weight(record),
            )
            neighbour = self.store.first(query)
            if neighbour is None:
                logger.debug(f"Weight {self._weight(record)} is already the highest in its group")
                return record
            return self._exchange_weight_with(record, neighbour)

    def _exchange_weight_with(self, record: Any, other: Any) -> Any:
        wc = self.config.weight_column
        old_weight = self._weight(record)
        new_weight = self._weight(other)

        logger.debug(f"Exchanging weights {old_weight} <-> {new_weight}")
        self.store.update(record, {wc: new_weight})
        self.store.update(other, {wc: old_weight})
        return record

    # -- insertion hook --------------------------------------------------

    def prepare_create(self, fields: Any) -> dict:
        """Return a copy of ``fields`` with the next weight filled in when none is set."""
        values = fields_from(fields)
        wc = self.config.weight_column
        if not values.get(wc):
            values[wc] = self.next_weight(values)
        return values

    def create(self, fields: Any) -> Any:
        """Assign a weight when missing, then create the record through the store."""
        with self._operation():
            return self.store.create(self.prepare_create(fields))
