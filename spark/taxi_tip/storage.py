# spark/taxi_tip/storage.py
from __future__ import annotations

import logging
import os
import shutil
from typing import List, Optional
from urllib.parse import urlparse

from py4j.protocol import Py4JJavaError
from pyspark.errors import PySparkException
from pyspark.sql import DataFrame, SparkSession

from taxi_tip.errors import StorageError

logger = logging.getLogger(__name__)

# accepted mode -> DataFrameWriter mode
WRITE_MODES = {
    "overwrite": "overwrite",
    "append": "append",
    "error": "errorifexists",
    "errorifexists": "errorifexists",
}


def repartition(df: DataFrame, shard_count: int) -> DataFrame:
    if shard_count < 1:
        raise ValueError(f"shard_count must be >= 1, got {shard_count}")
    return df.repartition(shard_count)


def _file_uri_path(path: str) -> Optional[str]:
    parsed = urlparse(path)
    if parsed.scheme == "file":
        return parsed.path
    if parsed.scheme:
        return None
    return path


def local_path(spark: SparkSession, path: str) -> Optional[str]:
    """
    Driver-local filesystem path for `path`, or None when Spark resolves it
    elsewhere (s3a://, abfss://, hdfs://, or a scheme-less path on a cluster
    whose fs.defaultFS is not file:///).
    """
    if urlparse(path).scheme:
        return _file_uri_path(path)
    hadoop_conf = spark.sparkContext._jsc.hadoopConfiguration()
    default_fs = spark.sparkContext._jvm.org.apache.hadoop.fs.FileSystem.getDefaultUri(hadoop_conf)
    if default_fs.getScheme() not in (None, "file"):
        return None
    return os.path.abspath(path)


def replace_dir_atomic(target_dir: str, tmp_dir: str) -> None:
    """
    Local FS atomic-ish replace of a whole output directory:
    - move existing -> backup
    - move tmp -> target (backup moved back if this fails)
    - delete backup
    """
    target_dir = target_dir.rstrip("/")
    backup = target_dir + ".__bak"
    if os.path.exists(backup):
        shutil.rmtree(backup)

    if os.path.exists(target_dir):
        os.rename(target_dir, backup)

    try:
        os.makedirs(os.path.dirname(target_dir) or ".", exist_ok=True)
        os.rename(tmp_dir, target_dir)
    except OSError:
        if os.path.exists(backup) and not os.path.exists(target_dir):
            os.rename(backup, target_dir)
        raise

    if os.path.exists(backup):
        shutil.rmtree(backup)

    if os.path.exists(target_dir):
        os.rename(target_dir, backup)

    os.makedirs(os.path.dirname(target_dir) or ".", exist_ok=True)
    os.rename(tmp_dir, target_dir)

    if os.path.exists(backup):
        shutil.rmtree(backup)


def write_table(df: DataFrame, path: str, fmt: str = "parquet", mode: str = "overwrite") -> str:
    """
    Write `df` under `path`. A failed overwrite is never resumed: rerun the
    whole write. Local overwrites go to a temp dir first and are swapped in.
    """
    if mode not in WRITE_MODES:
        raise ValueError(f"mode must be one of {tuple(WRITE_MODES)}, got {mode!r}")
    spark_mode = WRITE_MODES[mode]
    local = local_path(df.sparkSession, path) if spark_mode == "overwrite" else None

    try:
        if spark_mode == "overwrite" and local is not None:
            tmp = local.rstrip("/") + ".__tmp"
            if os.path.exists(tmp):
                shutil.rmtree(tmp)
            df.write.mode("overwrite").format(fmt).save(tmp)
            replace_dir_atomic(local, tmp)
        else:
            df.write.mode(spark_mode).format(fmt).save(path)
    except (PySparkException, Py4JJavaError, OSError) as e:
        raise StorageError(f"write {fmt} -> {path} (mode={mode}) failed: {e}") from e

    logger.info("wrote %s -> %s (mode=%s)", fmt, path, mode)
    return path


def read_back(spark: SparkSession, path: str, fmt: str = "parquet") -> DataFrame:
    try:
        return spark.read.format(fmt).load(path)
    except PySparkException as e:
        raise StorageError(f"cannot read {fmt} at {path}: {e}") from e


def shard_files(path: str) -> List[str]:
    local = _file_uri_path(path)
    if local is None:
        raise ValueError(f"shard_files only lists local paths, got {path}")
    return sorted(
        os.path.join(local, name)
        for name in os.listdir(local)
        if name.startswith("part-")
    )
