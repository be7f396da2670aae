# spark/taxi_tip/governance.py
import json
import os
import uuid

from py4j.protocol import Py4JJavaError
from pyspark.errors import PySparkException
from pyspark.sql import DataFrame, SparkSession
from pyspark.sql import functions as F
from pyspark.sql.types import StructType, StructField, StringType, LongType, TimestampType

from taxi_tip.errors import StorageError

# explicit schema: createDataFrame cannot infer types from None values
JOB_RUN_SCHEMA = StructType([
    StructField("run_id", StringType(), False),
    StructField("job_name", StringType(), False),
    StructField("git_commit", StringType(), True),
    StructField("source_path", StringType(), True),
    StructField("target_path", StringType(), True),
    StructField("input_rows", LongType(), True),
    StructField("output_rows", LongType(), True),
    StructField("status", StringType(), True),
    StructField("error_message", StringType(), True),
    StructField("logged_at", TimestampType(), True),
])


def _append(df: DataFrame, path: str) -> None:
    try:
        df.write.mode("append").parquet(path)
    except (PySparkException, Py4JJavaError) as e:
        raise StorageError(f"cannot append governance rows to {path}: {e}") from e


def new_run_id() -> str:
    return str(uuid.uuid4())


def get_git_commit() -> str:
    return os.getenv("GIT_COMMIT", "unknown")


def log_job_run(
    spark: SparkSession,
    gov_dir: str,
    run_id: str,
    job_name: str,
    source_path: str,
    target_path: str,
    input_rows: int,
    output_rows: int,
    status: str = "SUCCESS",
    error_message: str = ""
) -> None:
    rows = [(
        run_id,
        job_name,
        get_git_commit(),
        source_path,
        target_path,
        int(input_rows),
        int(output_rows),
        status,
        (error_message or "")[:1000],
        None,
    )]
    df = spark.createDataFrame(rows, schema=JOB_RUN_SCHEMA).withColumn("logged_at", F.current_timestamp())
    _append(df, f"{gov_dir}/job_runs")


def snapshot_schema(spark: SparkSession, gov_dir: str, df: DataFrame, dataset_name: str, dataset_path: str) -> None:
    """
    Minimal schema registry: dataset, path, fields as json, time
    """
    fields = [{"name": f.name, "type": str(f.dataType), "nullable": bool(f.nullable)} for f in df.schema.fields]
    snap = spark.createDataFrame([{
        "dataset_name": dataset_name,
        "dataset_path": dataset_path,
        "schema_json": json.dumps(fields, ensure_ascii=False),
    }]).withColumn("snap_at", F.current_timestamp())
    _append(snap, f"{gov_dir}/schema_registry")
