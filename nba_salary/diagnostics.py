"""Residual diagnostics for fitted salary models.

Each fitted model is checked against the usual OLS assumptions: normal
residuals (Q-Q plot, histogram, Shapiro-Wilk), constant variance
(fitted-vs-residual and scale-location plots, Breusch-Pagan) and, for the
predictors, multicollinearity (variance inflation factors).
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Dict, Optional, Sequence

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import seaborn as sns
from scipy import stats
from statsmodels.stats.diagnostic import het_breuschpagan
from statsmodels.stats.outliers_influence import variance_inflation_factor
from statsmodels.tools.tools import add_constant

from .modeling import FittedModel


plt.style.use("seaborn-v0_8-whitegrid")

ALPHA = 0.05

# scipy's Shapiro-Wilk p-value is unreliable above this sample size
SHAPIRO_MAX_N = 5000


@dataclass
class DiagnosticsResult:
    """Residual test results for one model."""

    model_name: str
    n: int
    shapiro_stat: float
    shapiro_p: float
    breusch_pagan_stat: float
    breusch_pagan_p: float
    skewness: float
    kurtosis: float
    normal_residuals: bool
    constant_variance: bool

    def to_dict(self) -> Dict:
        return asdict(self)


def residual_diagnostics(
    model: FittedModel,
    alpha: float = ALPHA,
    random_state: int = 42,
) -> DiagnosticsResult:
    """Run normality and heteroscedasticity tests on a model's residuals.

    Args:
        model: Fitted model.
        alpha: Significance level for the normality and constant-variance verdicts.
        random_state: Seed for subsampling residuals above SHAPIRO_MAX_N.

    Returns:
        DiagnosticsResult.
    """
    resid = np.asarray(model.resid, dtype=float)

    sample = resid
    if len(sample) > SHAPIRO_MAX_N:
        rng = np.random.default_rng(random_state)
        sample = rng.choice(sample, size=SHAPIRO_MAX_N, replace=False)
    shapiro_stat, shapiro_p = stats.shapiro(sample)

    exog = model.results.model.exog
    if exog.shape[1] > 1:
        bp_stat, bp_p, _, _ = het_breuschpagan(resid, exog)
    else:
        # Intercept-only model: nothing to regress the squared residuals on
        bp_stat, bp_p = np.nan, np.nan

    return DiagnosticsResult(
        model_name=model.name,
        n=len(resid),
        shapiro_stat=float(shapiro_stat),
        shapiro_p=float(shapiro_p),
        breusch_pagan_stat=float(bp_stat),
        breusch_pagan_p=float(bp_p),
        skewness=float(stats.skew(resid)),
        kurtosis=float(stats.kurtosis(resid)),
        normal_residuals=bool(shapiro_p >= alpha),
        constant_variance=bool(np.isnan(bp_p) or bp_p >= alpha),
    )


def variance_inflation(data: pd.DataFrame, predictors: Sequence[str]) -> pd.DataFrame:
    """Variance inflation factor for each numeric predictor.

    Returns:
        DataFrame with 'feature' and 'vif' columns, highest first.
    """
    numeric = data[list(predictors)].select_dtypes(include=[np.number]).dropna()
    if numeric.shape[1] < 2:
        raise ValueError("Need at least two numeric predictors to compute VIF")

    exog = add_constant(numeric, has_constant="add")
    with np.errstate(divide="ignore"):
        vifs = [variance_inflation_factor(exog.values, i) for i in range(1, exog.shape[1])]

    vif_df = pd.DataFrame({"feature": numeric.columns, "vif": vifs})
    return vif_df.sort_values("vif", ascending=False).reset_index(drop=True)


def _draw_qq(model: FittedModel, ax: plt.Axes):
    (theoretical, ordered), (slope, intercept, _) = stats.probplot(np.asarray(model.resid), dist="norm")
    ax.scatter(theoretical, ordered, s=12, alpha=0.6, color="steelblue")
    ax.plot(theoretical, slope * np.asarray(theoretical) + intercept, "r--", lw=1.5)
    ax.set_xlabel("Theoretical Quantiles", fontsize=11)
    ax.set_ylabel("Sample Quantiles", fontsize=11)
    ax.set_title("Normal Q-Q", fontsize=13)


def _draw_residuals_vs_fitted(model: FittedModel, ax: plt.Axes):
    sns.scatterplot(x=model.fittedvalues, y=model.resid, color="steelblue", alpha=0.6, s=15, ax=ax)
    ax.axhline(0, color="red", linestyle="--", lw=1.5)
    ax.set_xlabel("Fitted Values", fontsize=11)
    ax.set_ylabel("Residuals", fontsize=11)
    ax.set_title("Residuals vs Fitted", fontsize=13)


def _draw_residual_histogram(model: FittedModel, ax: plt.Axes):
    sns.histplot(model.resid, bins=30, kde=True, color="#4ECDC4", edgecolor="black", ax=ax)
    ax.set_xlabel("Residual", fontsize=11)
    ax.set_title("Residual Distribution", fontsize=13)


def _draw_scale_location(model: FittedModel, ax: plt.Axes):
    influence = model.results.get_influence()
    root_std = np.sqrt(np.abs(influence.resid_studentized_internal))
    sns.scatterplot(x=model.fittedvalues, y=root_std, color="#FF6B6B", alpha=0.6, s=15, ax=ax)
    ax.set_xlabel("Fitted Values", fontsize=11)
    ax.set_ylabel("sqrt(|Standardized Residuals|)", fontsize=11)
    ax.set_title("Scale-Location", fontsize=13)


def _single_panel(draw, model: FittedModel, save_path: Optional[Path]) -> plt.Figure:
    fig, ax = plt.subplots(figsize=(7, 5))
    draw(model, ax)
    ax.set_title(f"{ax.get_title()} - {model.name}", fontsize=13)

    plt.tight_layout()

    if save_path:
        fig.savefig(save_path, dpi=150, bbox_inches="tight")

    return fig


def plot_qq(model: FittedModel, save_path: Optional[Path] = None) -> plt.Figure:
    """Normal Q-Q plot of the residuals."""
    return _single_panel(_draw_qq, model, save_path)


def plot_residuals_vs_fitted(model: FittedModel, save_path: Optional[Path] = None) -> plt.Figure:
    """Residuals against fitted values with a zero reference line."""
    return _single_panel(_draw_residuals_vs_fitted, model, save_path)


def plot_residual_histogram(model: FittedModel, save_path: Optional[Path] = None) -> plt.Figure:
    """Histogram of residuals with a kernel density overlay."""
    return _single_panel(_draw_residual_histogram, model, save_path)


def plot_diagnostics_panel(
    model: FittedModel,
    diagnostics: Optional[DiagnosticsResult] = None,
    save_path: Optional[Path] = None,
) -> plt.Figure:
    """2x2 panel: residuals vs fitted, Q-Q, scale-location, histogram.

    Args:
        model: Fitted model.
        diagnostics: Test results to print in the title (optional).
        save_path: Path to save figure (optional).

    Returns:
        Matplotlib figure.
    """
    fig, axes = plt.subplots(2, 2, figsize=(12, 10))

    _draw_residuals_vs_fitted(model, axes[0, 0])
    _draw_qq(model, axes[0, 1])
    _draw_scale_location(model, axes[1, 0])
    _draw_residual_histogram(model, axes[1, 1])

    title = f"Residual Diagnostics - {model.name}"
    if diagnostics is not None:
        title += f"\nShapiro-Wilk p = {diagnostics.shapiro_p:.3g}, Breusch-Pagan p = {diagnostics.breusch_pagan_p:.3g}"
    plt.suptitle(title, fontsize=15, y=1.02)
    plt.tight_layout()

    if save_path:
        fig.savefig(save_path, dpi=150, bbox_inches="tight")

    return fig
