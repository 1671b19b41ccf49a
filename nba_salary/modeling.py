"""Linear regression models for NBA salary.

This module fits the sequence of ordinary least squares models compared in the
analysis (additive, interaction, log-response) and reduces them with backward
stepwise selection under AIC or BIC.

Models are described by a ``ModelSpec``: a response column plus an ordered list
of formula terms. Numeric predictors appear by name, categorical predictors as
``C(name)``, and interactions as ``a:b``.
"""

from __future__ import annotations

import itertools
import json
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

import joblib
import numpy as np
import pandas as pd
import statsmodels.formula.api as smf
from sklearn.metrics import mean_absolute_error, mean_squared_error, r2_score
from statsmodels.stats.anova import anova_lm

from .data_pipeline import ADVANCED_STATS, CATEGORICAL_COLS
from .utils import MODELS_DIR, ensure_directories


logger = logging.getLogger(__name__)

# Predictors whose pairwise interactions enter the interaction model
KEY_PREDICTORS = ["age", "usg_pct", "vorp", "mp"]

# Basic counting stats offered to the full model
MODEL_BASIC_STATS = ["gp", "gs", "mp", "pts"]

AIC_PENALTY = 2.0

_CATEGORICAL_TERM = re.compile(r"^C\((\w+)\)$")


@dataclass
class ModelSpec:
    """A linear model formula: response plus ordered terms."""

    name: str
    response: str
    terms: List[str] = field(default_factory=list)

    @property
    def formula(self) -> str:
        rhs = " + ".join(self.terms) if self.terms else "1"
        return f"{self.response} ~ {rhs}"

    @property
    def is_log(self) -> bool:
        return self.response == "log_salary"

    @property
    def variables(self) -> List[str]:
        """Data columns referenced by the terms, in first-seen order."""
        seen: List[str] = []
        for term in self.terms:
            for factor in term.split(":"):
                match = _CATEGORICAL_TERM.match(factor)
                name = match.group(1) if match else factor
                if name not in seen:
                    seen.append(name)
        return seen

    @property
    def categorical_variables(self) -> List[str]:
        found: List[str] = []
        for term in self.terms:
            for factor in term.split(":"):
                match = _CATEGORICAL_TERM.match(factor)
                if match and match.group(1) not in found:
                    found.append(match.group(1))
        return found

    def without(self, term: str, name: Optional[str] = None) -> "ModelSpec":
        if term not in self.terms:
            raise ValueError(f"Term '{term}' is not in model '{self.name}'")
        return ModelSpec(
            name=name or self.name,
            response=self.response,
            terms=[t for t in self.terms if t != term],
        )

    def to_dict(self) -> Dict:
        return {"name": self.name, "response": self.response, "terms": list(self.terms)}


@dataclass
class FittedModel:
    """A fitted OLS model together with what is needed to predict with it."""

    spec: ModelSpec
    results: object
    levels: Dict[str, List[str]]
    smearing: float = 1.0

    @property
    def name(self) -> str:
        return self.spec.name

    @property
    def params(self) -> pd.Series:
        return self.results.params

    @property
    def fittedvalues(self) -> pd.Series:
        return self.results.fittedvalues

    @property
    def resid(self) -> pd.Series:
        return self.results.resid

    @property
    def n_params(self) -> int:
        return int(self.results.df_model + self.results.k_constant)


@dataclass
class StepRecord:
    dropped: Optional[str]
    criterion: float
    n_params: int


@dataclass
class StepwiseResult:
    """Outcome of a backward elimination run."""

    start: ModelSpec
    model: FittedModel
    penalty: float
    history: List[StepRecord]

    @property
    def dropped_terms(self) -> List[str]:
        return [step.dropped for step in self.history if step.dropped is not None]


def _term(column: str) -> str:
    return f"C({column})" if column in CATEGORICAL_COLS else column


def default_predictors(df: pd.DataFrame) -> List[str]:
    """Columns offered to the full additive model, in a fixed order."""
    candidates = ["age"] + MODEL_BASIC_STATS + ADVANCED_STATS + CATEGORICAL_COLS
    return [col for col in candidates if col in df.columns]


def additive_spec(
    predictors: Sequence[str],
    response: str = "salary",
    name: str = "additive",
) -> ModelSpec:
    """Main-effects model over the given predictor columns."""
    return ModelSpec(name=name, response=response, terms=[_term(p) for p in predictors])


def interaction_spec(
    predictors: Sequence[str],
    key_predictors: Sequence[str] = KEY_PREDICTORS,
    response: str = "salary",
    name: str = "interaction",
) -> ModelSpec:
    """Additive model plus every pairwise interaction among the key predictors."""
    spec = additive_spec(predictors, response=response, name=name)
    keys = [_term(p) for p in key_predictors if p in predictors]
    spec.terms.extend(f"{a}:{b}" for a, b in itertools.combinations(keys, 2))
    return spec


def log_spec(spec: ModelSpec, name: Optional[str] = None) -> ModelSpec:
    """Same terms with log(salary) as the response."""
    return ModelSpec(name=name or f"log_{spec.name}", response="log_salary", terms=list(spec.terms))


def fit_ols(spec: ModelSpec, data: pd.DataFrame) -> FittedModel:
    """Fit ordinary least squares for a spec on a data table.

    Raises:
        ValueError: If the data lacks a column the spec refers to.
    """
    missing = [col for col in [spec.response] + spec.variables if col not in data.columns]
    if missing:
        raise ValueError(f"Model '{spec.name}' needs missing columns: {', '.join(missing)}")

    results = smf.ols(spec.formula, data=data).fit()

    levels = {
        col: sorted(data[col].dropna().astype(str).unique().tolist())
        for col in spec.categorical_variables
    }
    smearing = float(np.mean(np.exp(results.resid))) if spec.is_log else 1.0

    return FittedModel(spec=spec, results=results, levels=levels, smearing=smearing)


def information_criterion(model: FittedModel, k: float = AIC_PENALTY) -> float:
    """-2 log-likelihood plus k per estimated coefficient.

    k=2 gives AIC; k=log(n) gives BIC.
    """
    return float(-2.0 * model.results.llf + k * model.n_params)


def droppable_terms(terms: Sequence[str]) -> List[str]:
    """Terms not contained in a higher-order interaction still in the model."""
    factor_sets = {term: set(term.split(":")) for term in terms}
    droppable = []
    for term, factors in factor_sets.items():
        if not any(factors < other for t, other in factor_sets.items() if t != term):
            droppable.append(term)
    return droppable


def backward_stepwise(
    spec: ModelSpec,
    data: pd.DataFrame,
    k: float = AIC_PENALTY,
    name: Optional[str] = None,
) -> StepwiseResult:
    """Backward elimination from ``spec`` driven by an information criterion.

    Each step tries removing every droppable term and keeps the removal with the
    lowest criterion, provided it is strictly lower than the current model's.
    Rows incomplete in any starting column are removed first so that every
    candidate is fit on the same observations.

    Args:
        spec: Starting (largest) model.
        data: Training data.
        k: Penalty per coefficient (2 for AIC, log(n) for BIC).
        name: Name for the selected model.

    Returns:
        StepwiseResult with the selected fit and the elimination path.
    """
    data = data.dropna(subset=[spec.response] + spec.variables)
    current = ModelSpec(name=name or spec.name, response=spec.response, terms=list(spec.terms))
    current_fit = fit_ols(current, data)
    current_score = information_criterion(current_fit, k)
    history = [StepRecord(dropped=None, criterion=current_score, n_params=current_fit.n_params)]

    while current.terms:
        best: Optional[Tuple[str, float, FittedModel]] = None
        for term in droppable_terms(current.terms):
            trial_fit = fit_ols(current.without(term), data)
            trial_score = information_criterion(trial_fit, k)
            if best is None or trial_score < best[1]:
                best = (term, trial_score, trial_fit)

        if best is None or best[1] >= current_score:
            break

        term, current_score, current_fit = best
        current = current_fit.spec
        history.append(StepRecord(dropped=term, criterion=current_score, n_params=current_fit.n_params))

    return StepwiseResult(start=spec, model=current_fit, penalty=k, history=history)


def select_by_aic(spec: ModelSpec, data: pd.DataFrame, name: Optional[str] = None) -> StepwiseResult:
    return backward_stepwise(spec, data, k=AIC_PENALTY, name=name)


def select_by_bic(spec: ModelSpec, data: pd.DataFrame, name: Optional[str] = None) -> StepwiseResult:
    n = len(data.dropna(subset=[spec.response] + spec.variables))
    return backward_stepwise(spec, data, k=float(np.log(n)), name=name)


def _unseen_level_mask(model: FittedModel, data: pd.DataFrame) -> pd.Series:
    mask = pd.Series(False, index=data.index)
    for col, known in model.levels.items():
        mask |= ~data[col].astype(str).isin(known)
    return mask


def _missing_value_mask(model: FittedModel, data: pd.DataFrame) -> pd.Series:
    return data[model.spec.variables].isna().any(axis=1)


def predictable_rows(model: FittedModel, data: pd.DataFrame) -> pd.Series:
    """Boolean mask of rows the model can predict.

    A row is predictable when every categorical value was seen in training and
    no variable the model refers to is missing.
    """
    return ~(_unseen_level_mask(model, data) | _missing_value_mask(model, data))


def predict_salary(model: FittedModel, data: pd.DataFrame, smearing: bool = True) -> pd.Series:
    """Predict salary in dollars.

    Log-response predictions are exponentiated and, when ``smearing`` is set,
    scaled by Duan's smearing factor.
    """
    unseen = _unseen_level_mask(model, data)
    missing = _missing_value_mask(model, data) & ~unseen
    if unseen.any():
        logger.warning(
            "Model '%s': skipping %d rows with categorical levels unseen in training",
            model.name,
            int(unseen.sum()),
        )
    if missing.any():
        logger.warning(
            "Model '%s': skipping %d rows with missing predictor values",
            model.name,
            int(missing.sum()),
        )

    usable = data.loc[~(unseen | missing)]
    if usable.empty:
        return pd.Series(dtype=float, name="predicted_salary")
    predictions = pd.Series(model.results.predict(usable), index=usable.index, name="predicted_salary")
    if model.spec.is_log:
        predictions = np.exp(predictions) * (model.smearing if smearing else 1.0)
    return predictions


def evaluate_model(model: FittedModel, test: pd.DataFrame) -> Dict:
    """Evaluate a model on the held-out test set on the dollar scale.

    Returns:
        Dictionary with test R^2, RMSE, MAE and row counts.
    """
    predictions = predict_salary(model, test)
    if predictions.empty:
        raise ValueError(f"Model '{model.name}' could not predict any test rows")
    actual = test.loc[predictions.index, "salary"]

    return {
        "test_r2": float(r2_score(actual, predictions)),
        "test_rmse": float(np.sqrt(mean_squared_error(actual, predictions))),
        "test_mae": float(mean_absolute_error(actual, predictions)),
        "n_test": int(len(predictions)),
        "n_skipped": int(len(test) - len(predictions)),
    }


def compare_models(models: Sequence[FittedModel], test: pd.DataFrame) -> pd.DataFrame:
    """Side-by-side fit statistics and test-set performance.

    Every model is scored on the same test rows: those all of them can predict.
    AIC and BIC are only comparable between models sharing a response.
    """
    shared = pd.Series(True, index=test.index)
    for model in models:
        shared &= predictable_rows(model, test)

    excluded = int((~shared).sum())
    if excluded:
        logger.warning(
            "Excluding %d of %d test rows that not every model can predict",
            excluded,
            len(test),
        )
    scored = test.loc[shared]

    rows = []
    for model in models:
        res = model.results
        metrics = evaluate_model(model, scored)
        metrics["n_skipped"] = excluded
        rows.append({
            "model": model.name,
            "response": model.spec.response,
            "n_params": model.n_params,
            "r2": float(res.rsquared),
            "adj_r2": float(res.rsquared_adj),
            "aic": float(res.aic),
            "bic": float(res.bic),
            **metrics,
        })
    return pd.DataFrame(rows)


def choose_model(comparison: pd.DataFrame) -> str:
    """Name of the model with the lowest test RMSE."""
    if comparison.empty:
        raise ValueError("No models to choose from")
    return str(comparison.loc[comparison["test_rmse"].idxmin(), "model"])


def nested_f_test(reduced: FittedModel, full: FittedModel) -> pd.DataFrame:
    """Partial F-test of a reduced model against the model it was reduced from.

    Raises:
        ValueError: If the models have different responses or observations.
    """
    if reduced.spec.response != full.spec.response:
        raise ValueError("Nested F-test needs models with the same response")
    if reduced.results.nobs != full.results.nobs:
        raise ValueError("Nested F-test needs models fit on the same rows")
    return anova_lm(reduced.results, full.results)


def fit_candidate_models(
    train: pd.DataFrame,
    predictors: Optional[Sequence[str]] = None,
    key_predictors: Sequence[str] = KEY_PREDICTORS,
) -> Tuple[Dict[str, FittedModel], Dict[str, StepwiseResult]]:
    """Fit the full sequence of candidate models on the training set.

    Returns:
        Tuple of (models by name, stepwise results by model name).
    """
    if predictors is None:
        predictors = default_predictors(train)

    full = additive_spec(predictors, name="additive")
    log_full = log_spec(full, name="log_additive")

    stepwise = {
        "aic_stepwise": select_by_aic(full, train, name="aic_stepwise"),
        "bic_stepwise": select_by_bic(full, train, name="bic_stepwise"),
        "log_bic_stepwise": select_by_bic(log_full, train, name="log_bic_stepwise"),
    }

    models = {
        "additive": fit_ols(full, train),
        "interaction": fit_ols(interaction_spec(predictors, key_predictors), train),
        "log_additive": fit_ols(log_full, train),
    }
    models.update({name: result.model for name, result in stepwise.items()})

    return models, stepwise


def save_model(
    model: FittedModel,
    metadata: Dict,
    model_name: str = "salary_model",
) -> Dict[str, Path]:
    """Save a fitted model and its metadata.

    Args:
        model: Fitted model to persist.
        metadata: Analysis metadata dictionary.
        model_name: Base name for saved files.

    Returns:
        Dictionary with paths to saved files.
    """
    ensure_directories()

    model_path = MODELS_DIR / f"{model_name}.pkl"
    joblib.dump(model, model_path)

    metadata = dict(metadata)
    metadata["spec"] = model.spec.to_dict()
    metadata["formula"] = model.spec.formula
    metadata["saved_at"] = datetime.now().isoformat()
    metadata_path = MODELS_DIR / f"{model_name}_metadata.json"
    with open(metadata_path, "w") as f:
        json.dump(metadata, f, indent=2)

    return {
        "model": model_path,
        "metadata": metadata_path,
    }


def load_model(model_name: str = "salary_model") -> Tuple[FittedModel, Dict]:
    """Load a saved model and its metadata.

    Returns:
        Tuple of (fitted model, metadata).
    """
    model = joblib.load(MODELS_DIR / f"{model_name}.pkl")

    with open(MODELS_DIR / f"{model_name}_metadata.json", "r") as f:
        metadata = json.load(f)

    return model, metadata


if __name__ == "__main__":
    from .data_pipeline import load_and_clean_data
    from .utils import create_train_test_split

    print("=" * 60)
    print("NBA SALARY MODELS - FITTING")
    print("=" * 60)

    print("\n1. Loading data...")
    df = load_and_clean_data()
    train_df, test_df = create_train_test_split(df)
    print(f"   Train: {len(train_df)} rows, Test: {len(test_df)} rows")

    print("\n2. Fitting candidate models...")
    models, stepwise = fit_candidate_models(train_df)
    for name, result in stepwise.items():
        print(f"   {name}: dropped {len(result.dropped_terms)} terms, kept {len(result.model.spec.terms)}")

    print("\n3. Comparing on test set...")
    comparison = compare_models(list(models.values()), test_df)
    print(comparison[["model", "n_params", "adj_r2", "test_rmse"]].to_string(index=False))

    chosen = choose_model(comparison)
    print(f"\n   Chosen model: {chosen}")
    print(f"   Formula: {models[chosen].spec.formula}")
