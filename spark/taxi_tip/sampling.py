# spark/taxi_tip/sampling.py
from __future__ import annotations

from typing import Optional, Sequence

import pandas as pd
from pyspark.sql import DataFrame


def sample(df: DataFrame, fraction: float, seed: int, with_replacement: bool = False) -> DataFrame:
    """
    Row-level Bernoulli sample. Same seed + same input snapshot -> same rows;
    the same logical data partitioned differently may sample differently.
    """
    if not 0.0 < fraction <= 1.0:
        raise ValueError(f"fraction must be in (0, 1], got {fraction}")
    return df.sample(withReplacement=with_replacement, fraction=fraction, seed=seed)


def materialize_local(
    df: DataFrame,
    columns: Optional[Sequence[str]] = None,
    limit: Optional[int] = None,
) -> pd.DataFrame:
    # collects to the driver; keep the sample small
    if columns:
        df = df.select(*columns)
    if limit is not None:
        df = df.limit(limit)
    return df.toPandas()
