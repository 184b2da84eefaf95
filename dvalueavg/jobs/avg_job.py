"""
Average job: mean reading per (date, device type).

The combiner and the reducer share fold_values, a merge over Aggregate
pairs, so combiner output can always be consumed again by the reducer.
"""

import functools

from dvalueavg.config import TAB_DELIMITER
from dvalueavg.records import Aggregate, CompositeKey, parse_value


def extract_value(key, value):
    """
    Map function: parse the materialized join output.

    Args:
        key: Composite key text ``date,type``
        value: Reading as text

    Yields:
        (CompositeKey, float) tuple
    """
    yield (CompositeKey.parse(key), parse_value(value, f"{key}{TAB_DELIMITER}{value}"))


def fold_values(values) -> Aggregate:
    """Merge raw readings and partial aggregates into one Aggregate"""
    return functools.reduce(Aggregate.merge, map(Aggregate.lift, values), Aggregate())


def combine_averages(key, values):
    """
    Combiner function: pre-aggregate readings locally.

    Averages cannot be averaged again, so the partial (sum, count) is emitted.

    Yields:
        (CompositeKey, Aggregate) tuple
    """
    yield (key, fold_values(values))


def reduce_averages(key, values):
    """
    Reduce function: final average for one key.

    Args:
        key: CompositeKey
        values: Readings and/or Aggregates from the combiner

    Yields:
        (tab separated key, average) tuple

    Raises:
        EmptyGroupInvariantViolation: If no values contributed to the key
    """
    yield (key.external(), fold_values(values).average())


def compare_keys(left: CompositeKey, right: CompositeKey) -> int:
    """Date descending, then device type ascending"""
    if left.date == right.date:
        return (left.device_type > right.device_type) - (left.device_type < right.device_type)
    return (left.date < right.date) - (left.date > right.date)


sort_key = functools.cmp_to_key(compare_keys)
