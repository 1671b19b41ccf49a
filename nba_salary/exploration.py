"""Exploratory correlation analysis for the NBA salary data.

Correlations are computed over the numeric columns of the training set only,
so that the held-out test rows play no part in choosing predictors.
"""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional, Tuple

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import seaborn as sns
from matplotlib.ticker import FuncFormatter

from .utils import CONTRACT_COLS


# Set style for all plots
plt.style.use("seaborn-v0_8-whitegrid")
sns.set_palette("husl")

# |r| at or above this marks a pair of predictors as collinear
COLLINEARITY_THRESHOLD = 0.9

_millions = FuncFormatter(lambda x, pos: f"${x * 1e-6:.0f}M")


def compute_correlation_matrix(df: pd.DataFrame, method: str = "pearson") -> pd.DataFrame:
    """Correlation matrix over numeric columns, excluding contract details.

    Args:
        df: Cleaned DataFrame.
        method: 'pearson', 'spearman' or 'kendall'.

    Returns:
        Square correlation DataFrame.
    """
    numeric = df.select_dtypes(include=[np.number])
    numeric = numeric.drop(columns=[c for c in CONTRACT_COLS if c in numeric.columns])
    return numeric.corr(method=method)


def salary_correlations(corr: pd.DataFrame, response: str = "salary") -> pd.Series:
    """Correlations of every other column with the response, strongest first."""
    if response not in corr.columns:
        raise ValueError(f"'{response}' is not in the correlation matrix")

    series = corr[response].drop(labels=[c for c in ("salary", "log_salary") if c in corr.index])
    return series.reindex(series.abs().sort_values(ascending=False).index)


def find_collinear_pairs(
    corr: pd.DataFrame,
    threshold: float = COLLINEARITY_THRESHOLD,
) -> List[Tuple[str, str, float]]:
    """Predictor pairs whose absolute correlation reaches the threshold.

    Returns:
        List of (column_a, column_b, r) sorted by |r| descending.
    """
    predictors = [c for c in corr.columns if c not in ("salary", "log_salary")]
    pairs = []
    for i, a in enumerate(predictors):
        for b in predictors[i + 1:]:
            r = corr.loc[a, b]
            if pd.notna(r) and abs(r) >= threshold:
                pairs.append((a, b, float(r)))
    return sorted(pairs, key=lambda p: abs(p[2]), reverse=True)


def plot_correlation_heatmap(
    corr: pd.DataFrame,
    save_path: Optional[Path] = None,
) -> plt.Figure:
    """Plot lower-triangle heatmap of the correlation matrix.

    Args:
        corr: Correlation matrix.
        save_path: Path to save figure (optional).

    Returns:
        Matplotlib figure.
    """
    fig, ax = plt.subplots(figsize=(14, 12))

    mask = np.triu(np.ones_like(corr, dtype=bool), k=1)
    sns.heatmap(
        corr,
        mask=mask,
        cmap="RdBu_r",
        vmin=-1,
        vmax=1,
        center=0,
        square=True,
        linewidths=0.5,
        cbar_kws={"shrink": 0.7},
        ax=ax,
    )

    ax.set_title("Correlation Matrix - Player Stats and Salary", fontsize=14)

    plt.tight_layout()

    if save_path:
        fig.savefig(save_path, dpi=150, bbox_inches="tight")

    return fig


def plot_salary_distribution(
    df: pd.DataFrame,
    save_path: Optional[Path] = None,
) -> plt.Figure:
    """Plot salary on the raw and log scales side by side."""
    fig, axes = plt.subplots(1, 2, figsize=(12, 5))

    sns.histplot(df["salary"], bins=30, color="steelblue", edgecolor="black", ax=axes[0])
    axes[0].xaxis.set_major_formatter(_millions)
    axes[0].set_xlabel("Salary", fontsize=12)
    axes[0].set_title("Salary", fontsize=14)

    sns.histplot(np.log(df["salary"]), bins=30, color="#45B7D1", edgecolor="black", ax=axes[1])
    axes[1].set_xlabel("log(Salary)", fontsize=12)
    axes[1].set_title("Log Salary", fontsize=14)

    plt.suptitle(f"Salary Distribution (n={len(df)})", fontsize=16, y=1.02)
    plt.tight_layout()

    if save_path:
        fig.savefig(save_path, dpi=150, bbox_inches="tight")

    return fig


def plot_top_predictors(
    df: pd.DataFrame,
    correlations: pd.Series,
    top_n: int = 6,
    save_path: Optional[Path] = None,
) -> plt.Figure:
    """Scatter salary against the most correlated predictors.

    Args:
        df: Cleaned DataFrame.
        correlations: Output of ``salary_correlations``.
        top_n: Number of predictors to show.
        save_path: Path to save figure (optional).

    Returns:
        Matplotlib figure.
    """
    top = list(correlations.index[:top_n])
    ncols = 3
    nrows = max(1, int(np.ceil(len(top) / ncols)))
    fig, axes = plt.subplots(nrows, ncols, figsize=(5 * ncols, 4 * nrows), squeeze=False)

    for ax, col in zip(axes.flat, top):
        sns.regplot(
            data=df,
            x=col,
            y="salary",
            scatter_kws={"alpha": 0.5, "s": 15},
            line_kws={"color": "red"},
            ax=ax,
        )
        ax.yaxis.set_major_formatter(_millions)
        ax.set_title(f"{col} (r = {correlations[col]:.2f})", fontsize=12)

    for ax in list(axes.flat)[len(top):]:
        ax.set_visible(False)

    plt.suptitle("Salary vs Most Correlated Predictors", fontsize=16, y=1.02)
    plt.tight_layout()

    if save_path:
        fig.savefig(save_path, dpi=150, bbox_inches="tight")

    return fig


def plot_salary_by_position(
    df: pd.DataFrame,
    save_path: Optional[Path] = None,
) -> plt.Figure:
    """Box plot of salary for each position."""
    fig, ax = plt.subplots(figsize=(9, 6))

    order = df.groupby("position")["salary"].median().sort_values(ascending=False).index
    sns.boxplot(data=df, x="position", y="salary", order=order, color="#4ECDC4", ax=ax)

    ax.yaxis.set_major_formatter(_millions)
    ax.set_xlabel("Position", fontsize=12)
    ax.set_ylabel("Salary", fontsize=12)
    ax.set_title("Salary by Position", fontsize=14)

    plt.tight_layout()

    if save_path:
        fig.savefig(save_path, dpi=150, bbox_inches="tight")

    return fig
