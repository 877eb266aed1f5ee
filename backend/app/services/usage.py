import math
from typing import Any, List, Optional

from app.schemas.widget import Number, UsageRecord

_TOKEN_PARTS = ("input", "output", "cacheRead", "cacheWrite")
_COST_PARTS = ("inputCost", "outputCost", "cacheReadCost", "cacheWriteCost")


def to_finite_number(value: Any) -> Optional[Number]:
    """Returns value if it is a finite JSON number (booleans excluded), else None."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value):
        return None
    return value


def _explicit_or_sum(entry: dict, explicit_key: str, part_keys: tuple) -> Number:
    explicit = to_finite_number(entry.get(explicit_key))
    if explicit is not None:
        return explicit
    total = 0
    for key in part_keys:
        part = to_finite_number(entry.get(key))
        if part is not None:
            total += part
    return total


def normalize_daily_usage(value: Any) -> List[UsageRecord]:
    """
    Maps loosely-shaped daily usage records onto UsageRecord.

    Non-list input yields an empty list. Elements that are not objects, or whose
    `date` is not a non-empty string, are dropped. `tokens` is `totalTokens` when
    it is a finite number, otherwise the sum of input/output/cacheRead/cacheWrite;
    `totalCostUsd` follows the same rule with `totalCost` and the *Cost fields.
    Input order is preserved.
    """
    if not isinstance(value, list):
        return []

    daily: List[UsageRecord] = []
    for item in value:
        if not isinstance(item, dict):
            continue
        date = item.get("date")
        if not isinstance(date, str) or not date:
            continue
        daily.append(UsageRecord(
            date=date,
            tokens=_explicit_or_sum(item, "totalTokens", _TOKEN_PARTS),
            totalCostUsd=_explicit_or_sum(item, "totalCost", _COST_PARTS),
        ))
    return daily
