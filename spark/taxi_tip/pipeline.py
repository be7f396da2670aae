# spark/taxi_tip/pipeline.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from pyspark.sql import SparkSession

from taxi_tip.config import JobConfig
from taxi_tip.features import add_derived_columns, cached
from taxi_tip.governance import log_job_run, new_run_id, snapshot_schema
from taxi_tip.ingest import head, read_fares, read_trips
from taxi_tip.join_filter import join_and_filter
from taxi_tip.plots import PLOT_COLUMNS, plot_tip_exploration
from taxi_tip.sampling import materialize_local, sample
from taxi_tip.session import spark_session
from taxi_tip.storage import read_back, repartition, write_table

logger = logging.getLogger(__name__)

EXTRACT_COLUMNS = (
    "payment_type",
    "pickup_hour",
    "fare_amount",
    "tip_amount",
    "passenger_count",
    "trip_distance",
    "trip_time_in_secs",
    "TrafficTimeBins",
    "tipped",
)


@dataclass(frozen=True)
class PipelineResult:
    run_id: str
    input_rows: int
    plot_rows: int
    extract_rows: int
    output_path: str
    plot_path: str


def execute(spark: SparkSession, config: JobConfig) -> PipelineResult:
    """
    Run every stage on a session owned by the caller:
    ingest -> join/filter -> features (cached) -> plot sample -> extract sample -> parquet.
    """
    config.validate()
    run_id = new_run_id()
    source = f"{config.trip_path},{config.fare_path}"
    input_rows = 0

    try:
        trips = read_trips(spark, config)
        fares = read_fares(spark, config)
        if logger.isEnabledFor(logging.DEBUG):
            for row in head(trips, 3):
                logger.debug("trip sample: %s", row)

        featured = add_derived_columns(join_and_filter(trips, fares))

        with cached(featured) as taxi:
            input_rows = taxi.count()
            logger.info("joined + filtered rows: %d", input_rows)

            local = materialize_local(
                sample(taxi, config.plot_fraction, config.seed),
                columns=PLOT_COLUMNS,
            )
            plot_tip_exploration(local, config.plot_path)
            logger.info("plotted %d sampled rows -> %s", len(local), config.plot_path)

            extract = repartition(
                sample(taxi, config.extract_fraction, config.seed).select(*EXTRACT_COLUMNS),
                config.shard_count,
            )
            write_table(extract, config.output_path, "parquet", config.write_mode)

        # count AFTER write by reading the written dataset
        written = read_back(spark, config.output_path)
        extract_rows = written.count()

    except Exception as e:
        if config.record_runs:
            try:
                log_job_run(
                    spark, config.governance_dir, run_id, config.app_name,
                    source, config.output_path, input_rows, 0,
                    "FAILED", str(e),
                )
            except Exception:
                logger.exception("could not record FAILED run %s in %s", run_id, config.governance_dir)
        raise

    # extract is written; governance errors past here propagate without a FAILED row
    if config.record_runs:
        snapshot_schema(spark, config.governance_dir, written, "gold.tip_extract", config.output_path)
        log_job_run(
            spark, config.governance_dir, run_id, config.app_name,
            source, config.output_path, input_rows, extract_rows,
            "SUCCESS", "",
        )

    return PipelineResult(
        run_id=run_id,
        input_rows=input_rows,
        plot_rows=len(local),
        extract_rows=extract_rows,
        output_path=config.output_path,
        plot_path=config.plot_path,
    )


def run(config: Optional[JobConfig] = None) -> PipelineResult:
    config = config or JobConfig.from_env()
    config.validate()
    with spark_session(config) as spark:
        return execute(spark, config)


def main() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
    )
    result = run()
    logger.info(
        "✅ %s done. rows=%d extract=%d -> %s",
        result.run_id, result.input_rows, result.extract_rows, result.output_path,
    )


if __name__ == "__main__":
    main()
