"""NBA Salary Analysis - regression models of player salary on performance."""

__version__ = "1.0.0"

from .data_pipeline import load_and_clean_data, clean_data, ADVANCED_STATS
from .modeling import (
    ModelSpec,
    FittedModel,
    fit_ols,
    backward_stepwise,
    select_by_aic,
    select_by_bic,
    compare_models,
    predict_salary,
    predictable_rows,
)
from .diagnostics import residual_diagnostics
from .report import run_full_analysis, generate_analysis_report
from .utils import create_train_test_split

__all__ = [
    "load_and_clean_data",
    "clean_data",
    "ADVANCED_STATS",
    "ModelSpec",
    "FittedModel",
    "fit_ols",
    "backward_stepwise",
    "select_by_aic",
    "select_by_bic",
    "compare_models",
    "predict_salary",
    "predictable_rows",
    "residual_diagnostics",
    "run_full_analysis",
    "generate_analysis_report",
    "create_train_test_split",
]
