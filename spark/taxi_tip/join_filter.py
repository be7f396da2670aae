# spark/taxi_tip/join_filter.py
from __future__ import annotations

import logging
from typing import NamedTuple, Sequence, Tuple

from pyspark.errors import AnalysisException
from pyspark.sql import DataFrame
from pyspark.sql import functions as F

from taxi_tip.errors import FilterError, SchemaError

logger = logging.getLogger(__name__)

JOIN_KEYS = ("medallion", "hack_license", "pickup_datetime")


class Predicate(NamedTuple):
    name: str
    sql: str
    columns: Tuple[str, ...]


# Outlier rules for the trip/fare join. A row survives only if every one holds.
TRIP_FARE_PREDICATES = (
    Predicate("passenger_count", "passenger_count > 0 AND passenger_count < 8", ("passenger_count",)),
    Predicate("tip_range", "tip_amount >= 0 AND tip_amount <= 15", ("tip_amount",)),
    Predicate("fare_range", "fare_amount >= 1 AND fare_amount <= 150", ("fare_amount",)),
    Predicate("tip_below_fare", "tip_amount < fare_amount", ("tip_amount", "fare_amount")),
    Predicate("trip_distance", "trip_distance > 0 AND trip_distance <= 40", ("trip_distance",)),
    Predicate("trip_time", "trip_time_in_secs >= 30 AND trip_time_in_secs <= 7200", ("trip_time_in_secs",)),
    Predicate("rate_code", "rate_code <= 5", ("rate_code",)),
    Predicate("payment_type", "payment_type IN ('CSH', 'CRD')", ("payment_type",)),
)


def _apply(df: DataFrame, predicates: Sequence[Predicate]) -> DataFrame:
    for p in predicates:
        try:
            df = df.where(F.expr(p.sql))
        except AnalysisException as e:
            raise FilterError(f"predicate {p.name!r} ({p.sql}) cannot be resolved: {e}") from e
    return df


def _push(df: DataFrame, predicates: Sequence[Predicate], deferred: list) -> DataFrame:
    for p in predicates:
        try:
            df = df.where(F.expr(p.sql))
        except AnalysisException:
            # declared columns did not cover the sql; filter after the join instead
            deferred.append(p)
    return df


def join_and_filter(
    trips: DataFrame,
    fares: DataFrame,
    keys: Sequence[str] = JOIN_KEYS,
    predicates: Sequence[Predicate] = TRIP_FARE_PREDICATES,
    push_down: bool = True,
) -> DataFrame:
    """
    Inner equi-join on the composite key, then keep rows passing every predicate.

    With push_down, predicates that only touch one side are applied before the
    join. The result is the same as filtering after the join; duplicates on the
    key are kept as-is.
    """
    keys = list(keys)
    for side, df in (("trips", trips), ("fares", fares)):
        missing = [k for k in keys if k not in df.columns]
        if missing:
            raise SchemaError(f"{side} is missing join keys {missing}")

    available = set(trips.columns) | set(fares.columns)
    for p in predicates:
        unknown = [c for c in p.columns if c not in available]
        if unknown:
            raise FilterError(f"predicate {p.name!r} references missing columns {unknown}")

    trip_only, fare_only, joint = [], [], []
    for p in predicates:
        cols = set(p.columns)
        if push_down and cols <= set(trips.columns) and not cols & set(fares.columns):
            trip_only.append(p)
        elif push_down and cols <= set(fares.columns) and not cols & set(trips.columns):
            fare_only.append(p)
        else:
            joint.append(p)

    logger.debug(
        "predicates: trips=%s fares=%s joined=%s",
        [p.name for p in trip_only], [p.name for p in fare_only], [p.name for p in joint],
    )

    pushed_trips = _push(trips, trip_only, joint)
    pushed_fares = _push(fares, fare_only, joint)
    joined = pushed_trips.join(pushed_fares, on=keys, how="inner")
    return _apply(joined, joint).withColumn("pickup_hour", F.hour(F.col("pickup_datetime")))
