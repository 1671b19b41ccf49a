"""Data pipeline for the NBA salary analysis.

This module handles loading and cleaning the raw player statistics and salary
CSV so that every remaining row is a complete, modelable player-season-team
record.
"""

from __future__ import annotations

import logging
from typing import Optional

import numpy as np
import pandas as pd

from .utils import default_data_path


logger = logging.getLogger(__name__)

# Raw CSV headers -> formula-safe model column names
COLUMN_MAPPING = {
    "Player Name": "player",
    "Salary": "salary",
    "Position": "position",
    "Age": "age",
    "Team": "team",
    "GP": "gp",
    "GS": "gs",
    "MP": "mp",
    "PTS": "pts",
    "Total Minutes": "total_minutes",
    "TS%": "ts_pct",
    "3PAr": "three_par",
    "FTr": "ftr",
    "ORB%": "orb_pct",
    "DRB%": "drb_pct",
    "TRB%": "trb_pct",
    "AST%": "ast_pct",
    "STL%": "stl_pct",
    "BLK%": "blk_pct",
    "TOV%": "tov_pct",
    "USG%": "usg_pct",
    "OWS": "ows",
    "DWS": "dws",
    "WS": "ws",
    "WS/48": "ws_per_48",
    "OBPM": "obpm",
    "DBPM": "dbpm",
    "BPM": "bpm",
    "VORP": "vorp",
    "Guaranteed": "guaranteed",
    "Signed Using": "signed_using",
}

# The 19 advanced statistics
ADVANCED_STATS = [
    "ts_pct", "three_par", "ftr", "orb_pct", "drb_pct", "trb_pct",
    "ast_pct", "stl_pct", "blk_pct", "tov_pct", "usg_pct",
    "ows", "dws", "ws", "ws_per_48", "obpm", "dbpm", "bpm", "vorp",
]

# Basic counting stats kept when present
BASIC_STATS = ["gp", "gs", "mp", "pts", "total_minutes"]

CATEGORICAL_COLS = ["team", "position"]

REQUIRED_COLS = ["player", "salary", "age"] + CATEGORICAL_COLS + ADVANCED_STATS

# Level used for players listed with more than one team in the season
MULTI_TEAM = "MULTI"


def load_raw_data(filepath: Optional[str] = None) -> pd.DataFrame:
    """Load raw player salary CSV data.

    Args:
        filepath: Path to CSV file. Uses default path if None.

    Returns:
        Raw DataFrame with the original column headers.
    """
    if filepath is None:
        filepath = default_data_path()

    df = pd.read_csv(filepath)

    # Drop unnamed index column if present
    if "Unnamed: 0" in df.columns:
        df = df.drop(columns=["Unnamed: 0"])

    return df


def _rename_columns(df: pd.DataFrame) -> pd.DataFrame:
    """Rename raw headers to model names and keep only known columns."""
    df = df.rename(columns=COLUMN_MAPPING)
    keep = [col for col in COLUMN_MAPPING.values() if col in df.columns]

    missing = [col for col in REQUIRED_COLS if col not in df.columns]
    if missing:
        raise ValueError(f"Input data is missing required columns: {', '.join(missing)}")

    return df[keep].copy()


def _parse_currency(series: pd.Series) -> pd.Series:
    """Convert '$1,234,567' style strings to floats."""
    if pd.api.types.is_numeric_dtype(series):
        return series.astype(float)
    cleaned = series.astype(str).str.replace(r"[\$,\s]", "", regex=True)
    return pd.to_numeric(cleaned, errors="coerce").astype(float)


def _coerce_numeric_columns(df: pd.DataFrame) -> pd.DataFrame:
    """Convert stat columns to numeric, handling any string values."""
    for col in ["salary", "guaranteed"]:
        if col in df.columns:
            df[col] = _parse_currency(df[col])

    numeric_cols = ["age"] + BASIC_STATS + ADVANCED_STATS
    for col in numeric_cols:
        if col in df.columns:
            df[col] = pd.to_numeric(df[col], errors="coerce")

    return df


def _clean_categoricals(df: pd.DataFrame) -> pd.DataFrame:
    """Standardize player, team and position labels."""
    df["player"] = df["player"].astype(str).str.strip()

    team = df["team"].astype(str).str.strip().str.upper()
    df["team"] = team.where(~team.str.contains("/", regex=False), MULTI_TEAM)

    # Hybrid positions like 'SG-PG' keep their first listed position
    df["position"] = df["position"].astype(str).str.strip().str.upper().str.split("-").str[0]

    for col in CATEGORICAL_COLS:
        df.loc[df[col].isin(["", "NAN", "NONE"]), col] = np.nan

    return df


def clean_data(df: pd.DataFrame) -> pd.DataFrame:
    """Apply all cleaning operations to raw data.

    Rows missing any advanced statistic, age, team or position are dropped, as
    are rows without a strictly positive salary. A ``log_salary`` column is
    added for log-response models.

    Args:
        df: Raw DataFrame.

    Returns:
        Cleaned DataFrame ready for modeling.

    Raises:
        ValueError: If required columns are missing or no rows survive cleaning.
    """
    df = _rename_columns(df.copy())
    df = _coerce_numeric_columns(df)
    df = _clean_categoricals(df)

    before = len(df)

    # Drop rows with missing key stats
    df = df.dropna(subset=ADVANCED_STATS + ["age"] + CATEGORICAL_COLS)
    after_missing = len(df)

    # Zero (or missing) salaries have no log and are not contracts we can model
    df = df[df["salary"] > 0]

    if after_missing != before:
        logger.info("Dropped %d rows with missing advanced metrics", before - after_missing)
    if len(df) != after_missing:
        logger.info("Dropped %d rows without a positive salary", after_missing - len(df))

    if df.empty:
        raise ValueError("No rows left after cleaning")

    df = df.copy()
    df["age"] = df["age"].astype(int)
    df["log_salary"] = np.log(df["salary"])

    return df.reset_index(drop=True)


def load_and_clean_data(filepath: Optional[str] = None) -> pd.DataFrame:
    """Convenience function to load and clean data in one step.

    Args:
        filepath: Path to CSV file. Uses default if None.

    Returns:
        Cleaned DataFrame ready for modeling.
    """
    raw_df = load_raw_data(filepath)
    clean_df = clean_data(raw_df)
    return clean_df


def get_data_summary(df: pd.DataFrame) -> dict:
    """Generate summary statistics about the cleaned dataset.

    Args:
        df: Cleaned DataFrame.

    Returns:
        Dictionary with summary statistics.
    """
    return {
        "total_records": len(df),
        "unique_players": df["player"].nunique(),
        "salary_range": (float(df["salary"].min()), float(df["salary"].max())),
        "median_salary": float(df["salary"].median()),
        "age_range": (int(df["age"].min()), int(df["age"].max())),
        "teams": int(df["team"].nunique()),
        "positions": df["position"].value_counts().to_dict(),
    }


if __name__ == "__main__":
    print("Loading and cleaning data...")
    df = load_and_clean_data()

    print("\nData Summary:")
    summary = get_data_summary(df)
    for key, value in summary.items():
        print(f"  {key}: {value}")
