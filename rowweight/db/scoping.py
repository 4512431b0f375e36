"""
Group scoping utilities for weighted queries.

Reusable functions that narrow a SQLAlchemy query to one ordering group and
order it by weight, so every manager query is built the same way.
"""
from typing import Any, Mapping, Optional

from sqlalchemy import inspect

from rowweight.config import WeightConfig


def group_value(record: Any, config: WeightConfig) -> Any:
    """Return the group key of an ORM instance or a mapping of field values."""
    column = config.weight_group_column
    if column is None:
        return None
    if isinstance(record, Mapping):
        return record.get(column)
    return getattr(record, column, None)


def apply_group_filter(query, record: Any, config: WeightConfig, model_class):
    """
    Narrow a query to the rows sharing ``record``'s ordering group.

    Args:
        query: SQLAlchemy query object
        record: ORM instance or mapping carrying the group key
        config: Column layout of the model
        model_class: The mapped class being queried

    Returns:
        Filtered query (unchanged when the model is ungrouped)
    """
    if not config.grouped:
        return query

    column = getattr(model_class, config.weight_group_column)
    value = group_value(record, config)
    if value is None:
        return query.filter(column.is_(None))
    return query.filter(column == value)


def apply_weight_order(query, config: WeightConfig, model_class, descending: bool = False):
    """Order a query by weight, breaking ties by primary key in the same direction."""
    columns = [getattr(model_class, config.weight_column)]
    columns.extend(inspect(model_class).primary_key)
    if descending:
        return query.order_by(*[column.desc() for column in columns])
    return query.order_by(*[column.asc() for column in columns])


def apply_weight_bound(
    query,
    config: WeightConfig,
    model_class,
    below: Optional[int] = None,
    above: Optional[int] = None,
):
    """Keep rows whose weight is strictly below and/or strictly above the given values."""
    column = getattr(model_class, config.weight_column)
    if below is not None:
        query = query.filter(column < below)
    if above is not None:
        query = query.filter(column > above)
    return query
