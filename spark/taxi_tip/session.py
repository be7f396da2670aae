# spark/taxi_tip/session.py
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator, List, Tuple

from pyspark.sql import SparkSession

from taxi_tip.config import JobConfig
from taxi_tip.errors import EngineConnectionError

logger = logging.getLogger(__name__)


def session_conf(config: JobConfig) -> List[Tuple[str, str]]:
    conf = [
        ("spark.executor.instances", str(config.executor_instances)),
        ("spark.executor.memoryOverhead", config.executor_memory_overhead),
        ("spark.sql.shuffle.partitions", str(config.shuffle_partitions)),
    ]
    if config.packages:
        # e.g. org.apache.hadoop:hadoop-aws for s3a:// inputs
        conf.append(("spark.jars.packages", ",".join(config.packages)))
    return conf


def _builder(config: JobConfig):
    builder = SparkSession.builder.appName(config.app_name)
    if config.master:
        builder = builder.master(config.master)
    for key, value in session_conf(config):
        builder = builder.config(key, value)
    return builder


def open_session(config: JobConfig) -> SparkSession:
    try:
        spark = _builder(config).getOrCreate()
        spark.sparkContext.setLogLevel(config.log_level)
    except Exception as e:
        raise EngineConnectionError(f"cannot start Spark session {config.app_name!r}: {e}") from e

    logger.info("Spark session %s started (ui=%s)", config.app_name, spark.sparkContext.uiWebUrl)
    return spark


def close_session(spark: SparkSession) -> None:
    spark.stop()
    logger.info("Spark session stopped")


@contextmanager
def spark_session(config: JobConfig) -> Iterator[SparkSession]:
    """
    Scoped Spark session: opened on enter, stopped on every exit path.
    """
    spark = open_session(config)
    try:
        yield spark
    finally:
        close_session(spark)
