# spark/prepare_data/generate_taxi_csv.py
import os

from pyspark.sql import SparkSession
from pyspark.sql.functions import col, expr, rand, pmod, element_at, date_format

from taxi_tip.config import JobConfig

# =========================
# CONFIG (env overrides, same variables as the job)
# =========================
cfg = JobConfig.from_env()
TRIP_PATH = cfg.trip_path
FARE_PATH = cfg.fare_path

N_TRIPS = int(os.getenv("N_TRIPS", "200000"))
N_MEDALLIONS = 5_000
N_DAYS = 31

# share of trips that get an out-of-range value somewhere (filtered by the job)
OUTLIER_RATIO = 0.05

spark = (
    SparkSession.builder
    .appName("generate_taxi_csv")
    .config("spark.sql.shuffle.partitions", "50")
    .getOrCreate()
)
spark.sparkContext.setLogLevel("WARN")

# =========================
# 1) TRIPS (trip_data.csv layout)
# =========================
base = (
    spark.range(0, N_TRIPS)
    .select(
        col("id"),
        expr(f"md5(cast(pmod(id, {N_MEDALLIONS}) as string))").alias("medallion"),
        expr(f"md5(concat('hack_', cast(pmod(id * 7, {N_MEDALLIONS * 3}) as string)))").alias("hack_license"),
        expr(f"timestamp_seconds(unix_timestamp('2013-01-01 00:00:00') + pmod(id * 13, {N_DAYS} * 86400))")
            .alias("pickup_ts"),
        rand(7).alias("u"),
    )
)

trips = (
    base
    .select(
        "id", "medallion", "hack_license",
        element_at(expr("array('CMT','VTS')"), (pmod(col("id"), 2) + 1).cast("int")).alias("vendor_id"),
        expr(f"CASE WHEN u < {OUTLIER_RATIO / 2} THEN 6 ELSE 1 END").alias("rate_code"),
        expr("'N'").alias("store_and_fwd_flag"),
        date_format(col("pickup_ts"), "yyyy-MM-dd HH:mm:ss").alias("pickup_datetime"),
        (pmod(col("id"), 6) + 1).cast("int").alias("passenger_count"),
        expr("cast(60 + rand(11) * 2400 as int)").alias("trip_time_in_secs"),
        expr(f"CASE WHEN u > {1 - OUTLIER_RATIO / 2} THEN 55.0 ELSE round(0.3 + rand(13) * 12, 2) END")
            .alias("trip_distance"),
        expr("-73.98 + rand(17) * 0.05").alias("pickup_longitude"),
        expr("40.75 + rand(19) * 0.05").alias("pickup_latitude"),
        expr("-73.98 + rand(23) * 0.05").alias("dropoff_longitude"),
        expr("40.75 + rand(29) * 0.05").alias("dropoff_latitude"),
        col("pickup_ts"),
    )
    .withColumn(
        "dropoff_datetime",
        date_format(expr("timestamp_seconds(unix_timestamp(pickup_ts) + trip_time_in_secs)"), "yyyy-MM-dd HH:mm:ss"),
    )
)

(
    trips.drop("id", "pickup_ts")
    .select(
        "medallion", "hack_license", "vendor_id", "rate_code", "store_and_fwd_flag",
        "pickup_datetime", "dropoff_datetime", "passenger_count", "trip_time_in_secs",
        "trip_distance", "pickup_longitude", "pickup_latitude", "dropoff_longitude", "dropoff_latitude",
    )
    .coalesce(1)
    .write.mode("overwrite")
    .option("header", "true")
    .csv(TRIP_PATH)
)
print("✅ trips:", N_TRIPS, "->", TRIP_PATH)

# =========================
# 2) FARES (trip_fare.csv layout, headers keep the leading space of the public files)
# =========================
fares = (
    trips
    .select(
        "medallion", "hack_license", "vendor_id", "pickup_datetime",
        element_at(expr("array('CRD','CSH','CRD','NOC','DIS')"), (pmod(col("id"), 5) + 1).cast("int"))
            .alias("payment_type"),
        expr("round(2.5 + trip_distance * 2.5 + trip_time_in_secs / 120.0, 1)").alias("fare_amount"),
        expr("CASE WHEN hour(pickup_ts) >= 20 OR hour(pickup_ts) < 6 THEN 0.5 ELSE 0.0 END").alias("surcharge"),
        expr("0.5").alias("mta_tax"),
        col("id"),
    )
    .withColumn(
        "tip_amount",
        expr("CASE WHEN payment_type = 'CRD' THEN round(fare_amount * (0.1 + rand(31) * 0.15), 2) ELSE 0.0 END"),
    )
    .withColumn("tolls_amount", expr("CASE WHEN pmod(id, 20) = 0 THEN 5.33 ELSE 0.0 END"))
    .withColumn("total_amount", expr("fare_amount + surcharge + mta_tax + tip_amount + tolls_amount"))
)

(
    fares
    .select(
        col("medallion"),
        col("hack_license").alias(" hack_license"),
        col("vendor_id").alias(" vendor_id"),
        col("pickup_datetime").alias(" pickup_datetime"),
        col("payment_type").alias(" payment_type"),
        col("fare_amount").alias(" fare_amount"),
        col("surcharge").alias(" surcharge"),
        col("mta_tax").alias(" mta_tax"),
        col("tip_amount").alias(" tip_amount"),
        col("tolls_amount").alias(" tolls_amount"),
        col("total_amount").alias(" total_amount"),
    )
    .coalesce(1)
    .write.mode("overwrite")
    .option("header", "true")
    .csv(FARE_PATH)
)
print("✅ fares:", N_TRIPS, "->", FARE_PATH)

spark.stop()
