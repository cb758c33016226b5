from __future__ import annotations

import math
import re
from collections.abc import Sequence
from dataclasses import dataclass, field

from ..models.record import CanonicalRecord
from ..models.schema import AGE_FIELD

"""Dashboard statistics over the stored collection.

- total_clients: number of records
- average_age: mean of parsed ages over ALL records (unparseable ages count as
  0), rounded half up
- age_distribution: ten-year buckets ("30-39") of parseable ages, sorted by start
"""

__all__ = [
    "AgeBucket",
    "DashboardStats",
    "dashboard_stats",
    "parse_age",
]

_LEADING_INT_RE = re.compile(r"^\s*([+-]?\d+)")


@dataclass(frozen=True)
class AgeBucket:
    range: str
    count: int


@dataclass(frozen=True)
class DashboardStats:
    total_clients: int
    average_age: int
    age_distribution: list[AgeBucket] = field(default_factory=list)


def parse_age(value: str) -> int | None:
    """Leading-integer parse: '45 anos' -> 45, 'abc' -> None."""
    match = _LEADING_INT_RE.match(value or "")
    if match is None:
        return None
    return int(match.group(1))


def dashboard_stats(records: Sequence[CanonicalRecord]) -> DashboardStats:
    if not records:
        return DashboardStats(total_clients=0, average_age=0, age_distribution=[])

    total_age = 0
    buckets: dict[int, int] = {}
    for record in records:
        age = parse_age(record[AGE_FIELD])
        if age is None:
            continue
        total_age += age
        start = (age // 10) * 10
        buckets[start] = buckets.get(start, 0) + 1

    average = math.floor(total_age / len(records) + 0.5)
    distribution = [
        AgeBucket(range=f"{start}-{start + 9}", count=count)
        for start, count in sorted(buckets.items())
    ]
    return DashboardStats(total_clients=len(records), average_age=average, age_distribution=distribution)
