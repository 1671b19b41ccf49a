"""Utility functions for the NBA salary analysis."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Tuple

import pandas as pd
from sklearn.model_selection import train_test_split


# Project paths
PROJECT_ROOT = Path(__file__).parent.parent
DATA_DIR = PROJECT_ROOT / "data"
PROCESSED_DIR = DATA_DIR / "processed"
MODELS_DIR = PROJECT_ROOT / "models"
OUTPUTS_DIR = PROJECT_ROOT / "outputs"
VIZ_DIR = PROJECT_ROOT / "visualizations"

# Held-out test set size (rows) and split seed
TEST_SIZE = 100
RANDOM_STATE = 42

# Contract context, kept for reference but never used as a predictor
CONTRACT_COLS = ["guaranteed", "signed_using"]


def ensure_directories():
    """Create project directories if they don't exist."""
    for dir_path in [PROCESSED_DIR, MODELS_DIR, OUTPUTS_DIR, VIZ_DIR]:
        dir_path.mkdir(parents=True, exist_ok=True)


def default_data_path() -> Path:
    """Location of the raw salary CSV, overridable with NBA_SALARY_DATA."""
    return Path(os.getenv("NBA_SALARY_DATA", str(DATA_DIR / "nba_salaries.csv")))


def create_train_test_split(
    df: pd.DataFrame,
    test_size: int = TEST_SIZE,
    random_state: int = RANDOM_STATE,
) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """Split data once into a training set and a fixed-size held-out test set.

    Args:
        df: Cleaned DataFrame.
        test_size: Number of rows in the test set.
        random_state: Random seed for reproducibility.

    Returns:
        Tuple of (train_df, test_df).

    Raises:
        ValueError: If the test set would leave no training rows.
    """
    if test_size <= 0 or test_size >= len(df):
        raise ValueError(
            f"test_size must be between 1 and {len(df) - 1} rows, got {test_size}"
        )

    train_df, test_df = train_test_split(
        df,
        test_size=test_size,
        random_state=random_state,
        shuffle=True,
    )

    return train_df.reset_index(drop=True), test_df.reset_index(drop=True)


def save_train_test_split(train_df: pd.DataFrame, test_df: pd.DataFrame):
    """Save train and test sets to CSV files."""
    ensure_directories()

    train_path = PROCESSED_DIR / "train_set.csv"
    test_path = PROCESSED_DIR / "test_set.csv"

    train_df.to_csv(train_path, index=False)
    test_df.to_csv(test_path, index=False)

    print(f"Saved train set ({len(train_df)} rows) to: {train_path}")
    print(f"Saved test set ({len(test_df)} rows) to: {test_path}")


def load_train_test_split() -> Tuple[pd.DataFrame, pd.DataFrame]:
    """Load previously saved train and test sets.

    Returns:
        Tuple of (train_df, test_df).
    """
    train_path = PROCESSED_DIR / "train_set.csv"
    test_path = PROCESSED_DIR / "test_set.csv"

    return pd.read_csv(train_path), pd.read_csv(test_path)


if __name__ == "__main__":
    from .data_pipeline import load_and_clean_data

    print("Creating train/test split...")

    df = load_and_clean_data()
    print(f"Loaded {len(df)} cleaned rows")

    train_df, test_df = create_train_test_split(df)

    print(f"\nTrain set: {len(train_df)} rows")
    print(f"  Median salary: ${train_df['salary'].median():,.0f}")
    print(f"\nTest set: {len(test_df)} rows")
    print(f"  Median salary: ${test_df['salary'].median():,.0f}")

    save_train_test_split(train_df, test_df)
