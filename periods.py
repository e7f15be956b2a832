"""Semi-monthly review periods: 1st-15th and 16th-end of each month."""

import re
from datetime import datetime
from typing import Dict, Iterable, List

import config
from models import Question

_PERIOD_RE = re.compile(r"(\d+)年(\d+)月(.+)")


def period_key(ts_ms: int) -> str:
    """Return the period a millisecond timestamp falls in, e.g. ``2025年1月上半月``."""
    d = datetime.fromtimestamp(ts_ms / 1000)
    part = config.FIRST_HALF_LABEL if d.day <= config.FIRST_HALF_LAST_DAY else config.SECOND_HALF_LABEL
    return f"{d.year}年{d.month}月{part}"


def period_sort_value(key: str) -> int:
    """``year*1000 + month*10 + half``; 0 for keys that do not parse."""
    match = _PERIOD_RE.match(key)
    if not match:
        return 0
    year = int(match.group(1))
    month = int(match.group(2))
    half = 0 if match.group(3) == config.FIRST_HALF_LABEL else 1
    return year * 1000 + month * 10 + half


def group_by_period(questions: Iterable[Question]) -> Dict[str, List[Question]]:
    groups: Dict[str, List[Question]] = {}
    for q in questions:
        groups.setdefault(period_key(q.created_at), []).append(q)
    return groups


def sorted_periods(periods: Iterable[str]) -> List[str]:
    """Most recent period first."""
    return sorted(periods, key=period_sort_value, reverse=True)
