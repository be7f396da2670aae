import pytest
from pyspark.sql import functions as F

from taxi_tip.config import JobConfig
from taxi_tip.ingest import FARE_SCHEMA, TRIP_SCHEMA
from taxi_tip.session import close_session, open_session

TEST_CONFIG = JobConfig(
    app_name="taxi-tip-tests",
    master="local[2]",
    executor_instances=1,
    executor_memory_overhead="384m",
    shuffle_partitions=4,
    record_runs=False,
)


@pytest.fixture(scope="session")
def spark():
    spark = open_session(TEST_CONFIG)
    yield spark
    close_session(spark)


def _typed(spark, rows, schema):
    # build from strings then cast, so timestamps never go through python tz conversion
    names = [f.name for f in schema.fields]
    raw = spark.createDataFrame(
        [tuple(None if r.get(n) is None else str(r.get(n)) for n in names) for r in rows],
        schema=", ".join(f"{n} string" for n in names),
    )
    return raw.select(*[F.col(f.name).cast(f.dataType).alias(f.name) for f in schema.fields])


def trip(**overrides):
    row = {
        "medallion": "A",
        "hack_license": "L1",
        "pickup_datetime": "2013-01-01 08:15:00",
        "passenger_count": 2,
        "trip_distance": 5.0,
        "trip_time_in_secs": 600,
        "rate_code": 1,
    }
    row.update(overrides)
    return row


def fare(**overrides):
    row = {
        "medallion": "A",
        "hack_license": "L1",
        "pickup_datetime": "2013-01-01 08:15:00",
        "vendor_id": "CMT",
        "fare_amount": 10.0,
        "surcharge": 0.0,
        "tolls_amount": 0.0,
        "tip_amount": 2.0,
        "payment_type": "CSH",
    }
    row.update(overrides)
    return row


@pytest.fixture
def make_trips(spark):
    return lambda rows: _typed(spark, rows, TRIP_SCHEMA)


@pytest.fixture
def make_fares(spark):
    return lambda rows: _typed(spark, rows, FARE_SCHEMA)


def write_csv(path, header, rows):
    lines = [",".join(header)] + [",".join("" if v is None else str(v) for v in r) for r in rows]
    path.write_text("\n".join(lines) + "\n")
    return str(path)
