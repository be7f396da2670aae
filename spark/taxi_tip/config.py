# spark/taxi_tip/config.py
from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from typing import Optional, Tuple

WRITE_MODES = ("overwrite", "append", "error", "errorifexists")
MALFORMED_POLICIES = ("fail", "null", "drop")


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_list(name: str) -> Tuple[str, ...]:
    raw = os.getenv(name, "")
    return tuple(p.strip() for p in raw.split(",") if p.strip())


@dataclass(frozen=True)
class JobConfig:
    base_dir: str = "data/nyc_taxi"
    trip_path: Optional[str] = None
    fare_path: Optional[str] = None
    output_path: Optional[str] = None
    plot_path: Optional[str] = None
    governance_dir: Optional[str] = None

    app_name: str = "taxi_tip_extract"
    master: Optional[str] = None
    executor_instances: int = 4
    executor_memory_overhead: str = "1024m"
    packages: Tuple[str, ...] = field(default_factory=tuple)
    shuffle_partitions: int = 50
    log_level: str = "WARN"

    on_malformed: str = "null"
    plot_fraction: float = 0.0001
    extract_fraction: float = 0.1
    seed: int = 123
    shard_count: int = 10
    write_mode: str = "overwrite"
    record_runs: bool = True

    def __post_init__(self):
        # derived paths hang off base_dir unless set explicitly
        base = self.base_dir.rstrip("/")
        defaults = {
            "trip_path": f"{base}/raw/trip_data.csv",
            "fare_path": f"{base}/raw/trip_fare.csv",
            "output_path": f"{base}/gold/tip_extract",
            "plot_path": f"{base}/charts/tip_exploration.png",
            "governance_dir": f"{base}/gov",
        }
        for name, value in defaults.items():
            if getattr(self, name) is None:
                object.__setattr__(self, name, value)

    @classmethod
    def from_env(cls) -> "JobConfig":
        base = os.getenv("TAXI_BASE_DIR", cls.base_dir)
        cfg = cls(
            base_dir=base,
            trip_path=os.getenv("TAXI_TRIP_PATH"),
            fare_path=os.getenv("TAXI_FARE_PATH"),
            output_path=os.getenv("TAXI_OUTPUT_PATH"),
            plot_path=os.getenv("TAXI_PLOT_PATH"),
            governance_dir=os.getenv("TAXI_GOV_DIR"),
            app_name=os.getenv("TAXI_APP_NAME", cls.app_name),
            master=os.getenv("SPARK_MASTER") or None,
            executor_instances=int(os.getenv("SPARK_EXECUTOR_INSTANCES", cls.executor_instances)),
            executor_memory_overhead=os.getenv("SPARK_EXECUTOR_MEMORY_OVERHEAD", cls.executor_memory_overhead),
            packages=_env_list("SPARK_PACKAGES"),
            shuffle_partitions=int(os.getenv("SPARK_SHUFFLE_PARTITIONS", cls.shuffle_partitions)),
            log_level=os.getenv("SPARK_LOG_LEVEL", cls.log_level),
            on_malformed=os.getenv("TAXI_ON_MALFORMED", cls.on_malformed),
            plot_fraction=float(os.getenv("TAXI_PLOT_FRACTION", cls.plot_fraction)),
            extract_fraction=float(os.getenv("TAXI_EXTRACT_FRACTION", cls.extract_fraction)),
            seed=int(os.getenv("TAXI_SEED", cls.seed)),
            shard_count=int(os.getenv("TAXI_SHARD_COUNT", cls.shard_count)),
            write_mode=os.getenv("TAXI_WRITE_MODE", cls.write_mode),
            record_runs=_env_bool("TAXI_RECORD_RUNS", cls.record_runs),
        )
        cfg.validate()
        return cfg

    def with_overrides(self, **kwargs) -> "JobConfig":
        return replace(self, **kwargs)

    def validate(self) -> None:
        for name in ("plot_fraction", "extract_fraction"):
            value = getattr(self, name)
            if not 0.0 < value <= 1.0:
                raise ValueError(f"{name} must be in (0, 1], got {value}")
        if self.shard_count < 1:
            raise ValueError(f"shard_count must be >= 1, got {self.shard_count}")
        if self.executor_instances < 1:
            raise ValueError(f"executor_instances must be >= 1, got {self.executor_instances}")
        if self.write_mode not in WRITE_MODES:
            raise ValueError(f"write_mode must be one of {WRITE_MODES}, got {self.write_mode!r}")
        if self.on_malformed not in MALFORMED_POLICIES:
            raise ValueError(f"on_malformed must be one of {MALFORMED_POLICIES}, got {self.on_malformed!r}")
