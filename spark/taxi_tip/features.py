# spark/taxi_tip/features.py
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Callable, Iterator, NamedTuple, Optional, Sequence, Tuple

from pyspark import StorageLevel
from pyspark.sql import Column, DataFrame
from pyspark.sql import functions as F

logger = logging.getLogger(__name__)

UNMATCHED = "Unmatched"

Span = Tuple[Optional[int], Optional[int]]


class TimeBin(NamedTuple):
    """A labelled set of inclusive hour spans; None leaves that end open."""

    label: str
    spans: Tuple[Span, ...]

    def matches(self, hour: int) -> bool:
        return any(
            (lo is None or hour >= lo) and (hi is None or hour <= hi)
            for lo, hi in self.spans
        )

    def condition(self, c: Column) -> Column:
        parts = []
        for lo, hi in self.spans:
            if lo is None:
                parts.append(c <= hi)
            elif hi is None:
                parts.append(c >= lo)
            else:
                parts.append((c >= lo) & (c <= hi))
        cond = parts[0]
        for p in parts[1:]:
            cond = cond | p
        return cond


# Evaluated in order, first match wins.
# Night is "<= 6 OR >= 20"; the boundaries 6/7 and 19/20 are kept exactly.
TRAFFIC_TIME_BINS = (
    TimeBin("Night", ((None, 6), (20, None))),
    TimeBin("AMRush", ((7, 10),)),
    TimeBin("Afternoon", ((11, 15),)),
    TimeBin("PMRush", ((16, 19),)),
)


def bin_label(hour: int, bins: Sequence[TimeBin] = TRAFFIC_TIME_BINS) -> str:
    for b in bins:
        if b.matches(hour):
            return b.label
    return UNMATCHED


def traffic_time_bins(col: str = "pickup_hour", bins: Sequence[TimeBin] = TRAFFIC_TIME_BINS) -> Column:
    c = F.col(col)
    expr = None
    for b in bins:
        expr = F.when(b.condition(c), F.lit(b.label)) if expr is None else expr.when(b.condition(c), F.lit(b.label))
    return expr.otherwise(F.lit(UNMATCHED))


def tipped(col: str = "tip_amount") -> Column:
    # null tip counts as not tipped
    return F.when(F.col(col) > 0, F.lit(1)).otherwise(F.lit(0))


class DerivedColumn(NamedTuple):
    name: str
    build: Callable[[], Column]


DEFAULT_RULES = (
    DerivedColumn("TrafficTimeBins", traffic_time_bins),
    DerivedColumn("tipped", tipped),
)


def add_derived_columns(df: DataFrame, rules: Sequence[DerivedColumn] = DEFAULT_RULES) -> DataFrame:
    for rule in rules:
        df = df.withColumn(rule.name, rule.build())
    return df


@contextmanager
def cached(df: DataFrame, storage_level: StorageLevel = StorageLevel.MEMORY_ONLY) -> Iterator[DataFrame]:
    """persist() on enter, unpersist() on every exit path."""
    df.persist(storage_level)
    try:
        yield df
    finally:
        df.unpersist()
        logger.debug("unpersisted cached table")
