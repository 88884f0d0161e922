"""File IO helpers."""

from __future__ import annotations

from pathlib import Path

import pandas as pd


def ensure_dir(path: Path) -> Path:
    """Ensure that a directory exists."""

    path.mkdir(parents=True, exist_ok=True)
    return path


def write_parquet(df: pd.DataFrame, path: Path) -> Path:
    """Write a dataframe to Parquet, creating parent folders; returns ``path``."""

    ensure_dir(path.parent)
    df.to_parquet(path, index=False)
    return path


def read_parquet(path: Path) -> pd.DataFrame:
    """Read a dataframe from Parquet."""

    return pd.read_parquet(path)


__all__ = ["ensure_dir", "write_parquet", "read_parquet"]
