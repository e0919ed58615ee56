"""
Record filter applied to every decoded record before it is emitted.

Criteria map a field (dotted path for nested objects) to a predicate:
- scalar           -> equality (strings compared case-insensitively)
- list / tuple     -> value is one of the accepted values
- {"min", "max"}   -> inclusive numeric range, either bound optional
All configured predicates must match. Empty criteria accept everything.
"""

from collections.abc import Mapping
from typing import Any, Iterable, List, Optional

_MISSING = object()
_RANGE_KEYS = frozenset({"min", "max"})


def _lookup(record: Any, path: str) -> Any:
    value = record
    for part in path.split("."):
        if not isinstance(value, Mapping) or part not in value:
            return _MISSING
        value = value[part]
    return value


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _equals(actual: Any, expected: Any) -> bool:
    if isinstance(actual, str) and isinstance(expected, str):
        return actual.strip().casefold() == expected.strip().casefold()
    if _is_number(actual) and _is_number(expected):
        return actual == expected
    return type(actual) is type(expected) and actual == expected


def _in_range(actual: Any, bounds: Mapping) -> bool:
    if not _is_number(actual):
        return False
    low, high = bounds.get("min"), bounds.get("max")
    if low is not None and actual < low:
        return False
    if high is not None and actual > high:
        return False
    return True


def _matches(actual: Any, expected: Any) -> bool:
    if isinstance(expected, Mapping):
        if not expected or not set(expected) <= _RANGE_KEYS:
            return False
        return _in_range(actual, expected)
    if isinstance(expected, (list, tuple, set, frozenset)):
        # A list-valued field matches when any of its entries is accepted
        candidates = actual if isinstance(actual, (list, tuple)) else (actual,)
        return any(_equals(c, e) for c in candidates for e in expected)
    if isinstance(actual, (list, tuple)):
        return any(_equals(c, expected) for c in actual)
    return _equals(actual, expected)


def accepts(record: Any, criteria: Optional[Mapping]) -> bool:
    """Pure and total: malformed records or criteria never raise, they simply do not match."""
    if not criteria:
        return True
    try:
        if not isinstance(record, Mapping):
            return False
        for field, expected in criteria.items():
            actual = _lookup(record, str(field))
            if actual is _MISSING or not _matches(actual, expected):
                return False
        return True
    except Exception:
        return False


def filter_records(records: Iterable[Any], criteria: Optional[Mapping]) -> List[Any]:
    return [r for r in records if accepts(r, criteria)]
