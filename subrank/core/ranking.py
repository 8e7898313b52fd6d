from datetime import datetime, timezone
from functools import cmp_to_key
from typing import Callable, List, Optional

from subrank.core.model import ResultRecord

SORT_KEYS = ("subdeps", "size", "name", "updated")
ORDERS = ("asc", "desc")

SORT_LABELS = {
    "subdeps": "subdependencies",
    "size": "approx size",
    "name": "name",
    "updated": "last updated",
}

Comparator = Callable[[ResultRecord, ResultRecord], int]


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not isinstance(value, str) or not value:
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_last_updated(value: Optional[str]) -> str:
    """YYYY-MM-DD for a parseable timestamp, the raw value otherwise, '?' when absent."""
    if value is None:
        return "?"
    parsed = parse_timestamp(value)
    if parsed is None:
        return value
    return parsed.astimezone(timezone.utc).strftime("%Y-%m-%d")


def default_order(sort: str) -> str:
    return "asc" if sort == "name" else "desc"


def _cmp(a, b) -> int:
    return (a > b) - (a < b)


def get_results_comparator(sort: str = "subdeps", order: Optional[str] = None) -> Comparator:
    """
    Returns a cmp-style comparator for ResultRecords.

    `order` applies to the primary key and the numeric tie-breaks; every chain
    ends with name ascending so equal rows always come out in the same order.
    Records without a usable publish time are the oldest: last when sorting
    `updated` descending, first when ascending.
    """
    if sort not in SORT_KEYS:
        raise ValueError(f"Unknown sort key: {sort}")
    order = order or default_order(sort)
    if order not in ORDERS:
        raise ValueError(f"Unknown sort order: {order}")
    sign = -1 if order == "desc" else 1

    def by_name(a: ResultRecord, b: ResultRecord) -> int:
        return _cmp(a.name, b.name)

    def by_subdeps(a: ResultRecord, b: ResultRecord) -> int:
        return (sign * _cmp(a.subdeps, b.subdeps)
                or sign * _cmp(a.approx_bytes, b.approx_bytes)
                or by_name(a, b))

    def by_size(a: ResultRecord, b: ResultRecord) -> int:
        return (sign * _cmp(a.approx_bytes, b.approx_bytes)
                or sign * _cmp(a.subdeps, b.subdeps)
                or by_name(a, b))

    def by_updated(a: ResultRecord, b: ResultRecord) -> int:
        ta = parse_timestamp(a.last_updated)
        tb = parse_timestamp(b.last_updated)
        if ta is None and tb is None:
            return by_subdeps(a, b)
        if ta is None:
            return -sign
        if tb is None:
            return sign
        return sign * _cmp(ta, tb) or by_subdeps(a, b)

    if sort == "name":
        return lambda a, b: sign * by_name(a, b)
    if sort == "size":
        return by_size
    if sort == "updated":
        return by_updated
    return by_subdeps


def sort_results(results: List[ResultRecord], sort: str = "subdeps", order: Optional[str] = None) -> List[ResultRecord]:
    return sorted(results, key=cmp_to_key(get_results_comparator(sort, order)))
