"""
Single-pass statistics over a narrow row projection.

A ``StatisticsSpec`` names the columns to fetch and the measures to compute:

* ``Dimension``: grouped counts. Closed dimensions (with ``labels``) start at
  zero for every label; open ones gain a bucket the first time a value shows up.
  Null values are never counted.
* ``Counter``: rows satisfying a predicate, evaluated against a ``Window`` of
  time boundaries that is computed once per aggregation.
* ``Average``: mean of a numeric column over all rows, rounded half-up, 0 for
  no rows.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Iterable, Mapping, Optional, Sequence, Tuple

Row = Mapping[str, Any]


@dataclass(frozen=True)
class Window:
    now: datetime
    today: str
    week_ahead: str
    cutoffs: Mapping[int, str]

    @classmethod
    def at(cls, now: datetime, lookback_days: Iterable[int] = ()) -> "Window":
        return cls(
            now=now,
            today=now.date().isoformat(),
            week_ahead=(now + timedelta(days=7)).date().isoformat(),
            cutoffs={days: (now - timedelta(days=days)).isoformat() for days in set(lookback_days)},
        )

    def since(self, days: int) -> str:
        return self.cutoffs[days]


@dataclass(frozen=True)
class Dimension:
    name: str
    column: str
    labels: Tuple[str, ...] = ()


@dataclass(frozen=True)
class Counter:
    name: str
    predicate: Callable[[Row, Window], bool]
    lookback_days: Optional[int] = None


@dataclass(frozen=True)
class Average:
    name: str
    column: str


@dataclass(frozen=True)
class StatisticsSpec:
    columns: Tuple[str, ...]
    dimensions: Tuple[Dimension, ...] = ()
    averages: Tuple[Average, ...] = ()
    counters: Tuple[Counter, ...] = ()

    @property
    def projection(self) -> str:
        return ", ".join(self.columns)


def present(column: str) -> Callable[[Row, Window], bool]:
    """Truthy value in ``column``."""
    return lambda row, window: bool(row.get(column))


def at_least(column: str, minimum: float) -> Callable[[Row, Window], bool]:
    def check(row: Row, window: Window) -> bool:
        value = row.get(column)
        return isinstance(value, (int, float)) and value >= minimum
    return check


def within_days(column: str, days: int) -> Callable[[Row, Window], bool]:
    """``column`` timestamp at or after ``now - days``."""
    def check(row: Row, window: Window) -> bool:
        value = row.get(column)
        return bool(value) and str(value) >= window.since(days)
    return check


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def aggregate(rows: Sequence[Row], spec: StatisticsSpec, now: datetime) -> Dict[str, Any]:
    window = Window.at(now, (c.lookback_days for c in spec.counters if c.lookback_days is not None))

    snapshot: Dict[str, Any] = {"total": 0}
    groups: Dict[str, Dict[str, int]] = {}
    for dim in spec.dimensions:
        groups[dim.name] = {label: 0 for label in dim.labels}
        snapshot[dim.name] = groups[dim.name]
    sums = {avg.name: 0.0 for avg in spec.averages}
    counts = {counter.name: 0 for counter in spec.counters}

    for row in rows:
        snapshot["total"] += 1
        for dim in spec.dimensions:
            value = row.get(dim.column)
            if value is None or value == "":
                continue
            bucket = groups[dim.name]
            bucket[value] = bucket.get(value, 0) + 1
        for avg in spec.averages:
            value = row.get(avg.column)
            if isinstance(value, (int, float)) and not isinstance(value, bool):
                sums[avg.name] += value
        for counter in spec.counters:
            if counter.predicate(row, window):
                counts[counter.name] += 1

    total = snapshot["total"]
    for avg in spec.averages:
        snapshot[avg.name] = round_half_up(sums[avg.name] / total) if total else 0
    snapshot.update(counts)
    return snapshot
