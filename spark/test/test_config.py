import pytest

from taxi_tip.config import JobConfig


def test_defaults_derive_paths_from_base_dir():
    cfg = JobConfig(base_dir="/tmp/taxi/")
    assert cfg.trip_path == "/tmp/taxi/raw/trip_data.csv"
    assert cfg.fare_path == "/tmp/taxi/raw/trip_fare.csv"
    assert cfg.output_path == "/tmp/taxi/gold/tip_extract"
    assert cfg.governance_dir == "/tmp/taxi/gov"
    assert (cfg.plot_fraction, cfg.extract_fraction, cfg.seed, cfg.shard_count, cfg.write_mode) == (
        0.0001, 0.1, 123, 10, "overwrite",
    )


def test_from_env(monkeypatch):
    monkeypatch.setenv("TAXI_BASE_DIR", "s3a://lake/nyc")
    monkeypatch.setenv("TAXI_FARE_PATH", "s3a://other/fares")
    monkeypatch.setenv("SPARK_EXECUTOR_INSTANCES", "8")
    monkeypatch.setenv("SPARK_PACKAGES", "a:b:1, c:d:2")
    monkeypatch.setenv("TAXI_SHARD_COUNT", "3")
    monkeypatch.setenv("TAXI_RECORD_RUNS", "false")

    cfg = JobConfig.from_env()

    assert cfg.trip_path == "s3a://lake/nyc/raw/trip_data.csv"
    assert cfg.fare_path == "s3a://other/fares"
    assert cfg.executor_instances == 8
    assert cfg.packages == ("a:b:1", "c:d:2")
    assert cfg.shard_count == 3
    assert cfg.record_runs is False


@pytest.mark.parametrize("overrides", [
    {"plot_fraction": 0.0},
    {"extract_fraction": 1.5},
    {"shard_count": 0},
    {"write_mode": "upsert"},
    {"on_malformed": "ignore"},
])
def test_validate_rejects_bad_values(overrides):
    with pytest.raises(ValueError):
        JobConfig().with_overrides(**overrides).validate()
