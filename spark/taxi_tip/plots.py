# spark/taxi_tip/plots.py
from __future__ import annotations

import os

import matplotlib
matplotlib.use("Agg")  # jobs run headless on the driver
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd

PLOT_COLUMNS = ("fare_amount", "tip_amount")


def tip_bins(tips: pd.Series, bin_width: float) -> np.ndarray:
    top = float(tips.max()) if len(tips) else 0.0
    top = max(top, 0.0) + bin_width
    return np.arange(0.0, top + bin_width, bin_width)


def plot_tip_exploration(pdf: pd.DataFrame, path: str, bin_width: float = 1.0) -> str:
    """
    Histogram of tip_amount (left) and fare_amount vs tip_amount (right),
    both drawn from the same sampled rows, saved as one PNG.
    """
    if bin_width <= 0:
        raise ValueError(f"bin_width must be > 0, got {bin_width}")
    missing = [c for c in PLOT_COLUMNS if c not in pdf.columns]
    if missing:
        raise KeyError(f"sample is missing plot columns {missing}")

    tips = pdf["tip_amount"].astype(float)
    fares = pdf["fare_amount"].astype(float)

    fig, (ax1, ax2) = plt.subplots(1, 2, figsize=(12, 5))

    ax1.hist(tips, bins=tip_bins(tips, bin_width), edgecolor="black")
    ax1.set_xlabel("Tip amount ($)")
    ax1.set_ylabel("Trips")
    ax1.set_title(f"Tip amount distribution (bin width {bin_width:g})")

    ax2.scatter(fares, tips, s=4, alpha=0.5, color="navy")
    ax2.set_xlabel("Fare amount ($)")
    ax2.set_ylabel("Tip amount ($)")
    ax2.set_title("Tip vs fare")

    fig.suptitle(f"NYC taxi sample, n={len(pdf)}")
    fig.tight_layout()

    parent = os.path.dirname(path)
    if parent:
        os.makedirs(parent, exist_ok=True)
    fig.savefig(path, dpi=150, bbox_inches="tight", facecolor="white")
    plt.close(fig)
    return path
