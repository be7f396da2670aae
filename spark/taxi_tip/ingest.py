# spark/taxi_tip/ingest.py
from __future__ import annotations

import logging
from functools import reduce
from typing import List, Optional

from pyspark.errors import AnalysisException
from pyspark.sql import DataFrame, Row, SparkSession
from pyspark.sql import functions as F
from pyspark.sql.types import (
    StructType, StructField,
    StringType, DoubleType, IntegerType, TimestampType
)

from taxi_tip.config import JobConfig
from taxi_tip.errors import SchemaError, StorageError

logger = logging.getLogger(__name__)

# Only the columns the job uses; extra CSV columns (dropoff_*, mta_tax, ...) are dropped on read
TRIP_SCHEMA = StructType([
    StructField("medallion", StringType(), True),
    StructField("hack_license", StringType(), True),
    StructField("pickup_datetime", TimestampType(), True),
    StructField("passenger_count", IntegerType(), True),
    StructField("trip_distance", DoubleType(), True),
    StructField("trip_time_in_secs", IntegerType(), True),
    StructField("rate_code", IntegerType(), True),
])

FARE_SCHEMA = StructType([
    StructField("medallion", StringType(), True),
    StructField("hack_license", StringType(), True),
    StructField("pickup_datetime", TimestampType(), True),
    StructField("vendor_id", StringType(), True),
    StructField("fare_amount", DoubleType(), True),
    StructField("surcharge", DoubleType(), True),
    StructField("tolls_amount", DoubleType(), True),
    StructField("tip_amount", DoubleType(), True),
    StructField("payment_type", StringType(), True),
])

# on_malformed -> CSV reader mode, used when the schema is applied positionally
READER_MODES = {
    "fail": "FAILFAST",
    "null": "PERMISSIVE",
    "drop": "DROPMALFORMED",
}

_MALFORMED = "_malformed"


def read_table(
    spark: SparkSession,
    path: str,
    schema: Optional[StructType] = None,
    fmt: str = "csv",
    header: bool = True,
    infer_schema: bool = True,
    on_malformed: str = "null",
) -> DataFrame:
    """
    Read a delimited (or any Spark-readable) dataset.

    - schema given + header: columns are matched by name, values cast with try_cast,
      then `on_malformed` decides what happens to values that do not cast:
      "fail" raises SchemaError, "null" keeps them as null, "drop" removes the row.
    - schema given, no header: the schema is applied positionally by the CSV reader.
    - no schema: Spark infers it from content, which must be requested explicitly.
    """
    if on_malformed not in READER_MODES:
        raise ValueError(f"on_malformed must be one of {tuple(READER_MODES)}, got {on_malformed!r}")
    if schema is None and not infer_schema:
        raise SchemaError(f"{path}: no schema supplied and schema inference disabled")

    positional = schema is not None and not header
    reader = spark.read.format(fmt)
    if fmt == "csv":
        reader = reader.option("header", str(header).lower())
        if positional:
            reader = reader.schema(schema).option("mode", READER_MODES[on_malformed])
        else:
            reader = reader.option("inferSchema", str(schema is None).lower())

    try:
        df = reader.load(path)
    except AnalysisException as e:
        raise StorageError(f"cannot read {path}: {e}") from e

    if schema is None or positional:
        return df
    return conform(df, schema, on_malformed, source=path)


def conform(
    df: DataFrame,
    schema: StructType,
    on_malformed: str = "null",
    source: str = "<dataframe>",
) -> DataFrame:
    df = df.toDF(*[c.strip() for c in df.columns])

    missing = [f.name for f in schema.fields if f.name not in df.columns]
    if missing:
        raise SchemaError(f"{source}: missing columns {missing} (found {df.columns})")

    casts = [
        (f.name, F.expr(f"try_cast(`{f.name}` AS {f.dataType.simpleString()})"))
        for f in schema.fields
    ]
    # a value is malformed when it was present but did not survive the cast
    malformed = reduce(
        lambda a, b: a | b,
        [F.col(f"`{name}`").isNotNull() & typed.isNull() for name, typed in casts],
    )
    flagged = df.select(*[typed.alias(name) for name, typed in casts], malformed.alias(_MALFORMED))

    if on_malformed == "fail":
        bad_rows = flagged.where(F.col(_MALFORMED)).count()
        if bad_rows:
            raise SchemaError(f"{source}: {bad_rows} rows do not match schema {schema.simpleString()}")
    elif on_malformed == "drop":
        flagged = flagged.where(~F.col(_MALFORMED))

    return flagged.drop(_MALFORMED)


def schema_string(df: DataFrame) -> str:
    return df.schema.simpleString()


def head(df: DataFrame, n: int = 5) -> List[Row]:
    return df.head(n)


def read_trips(spark: SparkSession, config: JobConfig) -> DataFrame:
    trips = read_table(spark, config.trip_path, TRIP_SCHEMA, on_malformed=config.on_malformed)
    logger.info("trips <- %s %s", config.trip_path, schema_string(trips))
    return trips


def read_fares(spark: SparkSession, config: JobConfig) -> DataFrame:
    fares = read_table(spark, config.fare_path, FARE_SCHEMA, on_malformed=config.on_malformed)
    logger.info("fares <- %s %s", config.fare_path, schema_string(fares))
    return fares
