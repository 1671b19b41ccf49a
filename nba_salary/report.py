"""End-to-end salary analysis and markdown report.

This module runs the complete analysis (load, clean, split, explore, fit,
select, diagnose, compare), saves figures and tables, and writes a report
with commentary drawn from the results.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import matplotlib.pyplot as plt
import pandas as pd

from .data_pipeline import get_data_summary, load_and_clean_data
from .diagnostics import (
    ALPHA,
    DiagnosticsResult,
    plot_diagnostics_panel,
    plot_qq,
    plot_residual_histogram,
    plot_residuals_vs_fitted,
    residual_diagnostics,
    variance_inflation,
)
from .exploration import (
    compute_correlation_matrix,
    find_collinear_pairs,
    plot_correlation_heatmap,
    plot_salary_by_position,
    plot_salary_distribution,
    plot_top_predictors,
    salary_correlations,
)
from .modeling import (
    FittedModel,
    StepwiseResult,
    choose_model,
    compare_models,
    default_predictors,
    fit_candidate_models,
    nested_f_test,
    save_model,
)
from .utils import (
    OUTPUTS_DIR,
    RANDOM_STATE,
    TEST_SIZE,
    VIZ_DIR,
    create_train_test_split,
    ensure_directories,
    save_train_test_split,
)


@dataclass
class AnalysisResult:
    """Everything the analysis produces, for reporting and the web view."""

    summary: Dict
    train: pd.DataFrame
    test: pd.DataFrame
    correlations: pd.DataFrame
    salary_correlations: pd.Series
    collinear_pairs: List[Tuple[str, str, float]]
    vif: pd.DataFrame
    models: Dict[str, FittedModel]
    stepwise: Dict[str, StepwiseResult]
    comparison: pd.DataFrame
    diagnostics: Dict[str, DiagnosticsResult]
    f_tests: Dict[str, pd.DataFrame]
    chosen: str
    figures: Dict[str, Path] = field(default_factory=dict)

    @property
    def chosen_model(self) -> FittedModel:
        return self.models[self.chosen]


def coefficient_table(model: FittedModel) -> pd.DataFrame:
    """Coefficients with standard errors, t statistics and p-values."""
    res = model.results
    return pd.DataFrame({
        "term": res.params.index,
        "estimate": res.params.values,
        "std_err": res.bse.values,
        "t": res.tvalues.values,
        "p_value": res.pvalues.values,
    })


def _fmt_money(value: float) -> str:
    return f"${value:,.0f}"


def _commentary(result: AnalysisResult) -> List[str]:
    """Plain-language observations derived from the numbers."""
    lines = []

    top = result.salary_correlations.head(3)
    if not top.empty:
        named = ", ".join(f"`{name}` (r = {r:.2f})" for name, r in top.items())
        lines.append(f"Salary is most strongly correlated with {named}.")

    if result.collinear_pairs:
        lines.append(
            f"{len(result.collinear_pairs)} predictor pairs have |r| >= 0.9, so individual "
            "coefficients in the full additive model are unstable and should not be read in isolation."
        )

    full_terms = len(result.models["additive"].spec.terms)
    for name in ("aic_stepwise", "bic_stepwise"):
        if name in result.stepwise:
            kept = len(result.stepwise[name].model.spec.terms)
            label = "AIC" if name.startswith("aic") else "BIC"
            lines.append(f"Backward selection under {label} kept {kept} of {full_terms} terms.")

    raw_models = [d for name, d in result.diagnostics.items() if not result.models[name].spec.is_log]
    log_models = [d for name, d in result.diagnostics.items() if result.models[name].spec.is_log]
    if raw_models and not any(d.normal_residuals for d in raw_models):
        lines.append(
            "Every salary-scale model fails the Shapiro-Wilk test, consistent with the right skew "
            "of salaries."
        )
    if log_models:
        best_log = max(log_models, key=lambda d: d.shapiro_p)
        verdict = "no longer rejects" if best_log.normal_residuals else "still rejects"
        lines.append(
            f"On the log scale the Shapiro-Wilk test {verdict} normality for `{best_log.model_name}` "
            f"(p = {best_log.shapiro_p:.3g})."
        )

    chosen = result.comparison.set_index("model").loc[result.chosen]
    lines.append(
        f"The chosen model is `{result.chosen}` with {int(chosen['n_params'])} coefficients: "
        f"test RMSE {_fmt_money(chosen['test_rmse'])}, test R^2 {chosen['test_r2']:.3f}."
    )

    return lines


def generate_analysis_report(
    result: AnalysisResult,
    save_path: Optional[Path] = None,
) -> str:
    """Generate markdown report of the salary analysis.

    Args:
        result: Output of ``run_full_analysis``.
        save_path: Path to save report (optional).

    Returns:
        Markdown report string.
    """
    summary = result.summary

    report_lines = [
        "# NBA Salary Regression Analysis",
        "",
        "## Data Summary",
        "",
        f"- **Records**: {summary['total_records']} ({summary['unique_players']} players, {summary['teams']} teams)",
        f"- **Salary range**: {_fmt_money(summary['salary_range'][0])} - {_fmt_money(summary['salary_range'][1])}",
        f"- **Median salary**: {_fmt_money(summary['median_salary'])}",
        f"- **Age range**: {summary['age_range'][0]} - {summary['age_range'][1]}",
        f"- **Train / test**: {len(result.train)} / {len(result.test)} rows",
        "",
        "## Correlation with Salary",
        "",
        "| Predictor | r |",
        "|-----------|---|",
    ]

    for name, r in result.salary_correlations.head(10).items():
        report_lines.append(f"| {name} | {r:.3f} |")

    if result.collinear_pairs:
        report_lines.extend([
            "",
            "### Collinear Predictor Pairs",
            "",
        ])
        for a, b, r in result.collinear_pairs:
            report_lines.append(f"- `{a}` / `{b}`: r = {r:.3f}")

    if not result.vif.empty:
        report_lines.extend([
            "",
            "### Highest Variance Inflation Factors",
            "",
        ])
        for _, row in result.vif.head(5).iterrows():
            report_lines.append(f"- `{row['feature']}`: {row['vif']:.1f}")

    report_lines.extend([
        "",
        "## Model Comparison",
        "",
        "AIC and BIC are only comparable between models with the same response.",
        "",
    ])

    n_test = int(result.comparison["n_test"].iloc[0])
    n_skipped = int(result.comparison["n_skipped"].iloc[0])
    scored = f"All models are scored on the same {n_test} test rows"
    if n_skipped:
        scored += f" ({n_skipped} excluded because not every model can predict them)"
    report_lines.extend([
        scored + ".",
        "",
        "| Model | Response | Params | R^2 | Adj R^2 | AIC | BIC | Test n | Test R^2 | Test RMSE |",
        "|-------|----------|--------|-----|---------|-----|-----|--------|----------|-----------|",
    ])

    for _, row in result.comparison.iterrows():
        marker = " **(chosen)**" if row["model"] == result.chosen else ""
        report_lines.append(
            f"| {row['model']}{marker} | {row['response']} | {row['n_params']} | {row['r2']:.3f} | "
            f"{row['adj_r2']:.3f} | {row['aic']:.1f} | {row['bic']:.1f} | {row['n_test']} | {row['test_r2']:.3f} | "
            f"{_fmt_money(row['test_rmse'])} |"
        )

    report_lines.extend([
        "",
        "## Stepwise Selection",
        "",
    ])

    for name, step in result.stepwise.items():
        report_lines.append(f"### {name} (penalty k = {step.penalty:.2f})")
        report_lines.append("")
        for record in step.history:
            label = "start" if record.dropped is None else f"drop `{record.dropped}`"
            report_lines.append(f"- {label}: criterion {record.criterion:.2f}, {record.n_params} coefficients")
        report_lines.append("")
        report_lines.append(f"Final formula: `{step.model.spec.formula}`")

        if name in result.f_tests:
            f_row = result.f_tests[name].iloc[-1]
            report_lines.append(
                f"Partial F-test against `{step.start.name}`: F = {f_row['F']:.3f}, p = {f_row['Pr(>F)']:.3g}"
            )
        report_lines.append("")

    report_lines.extend([
        "## Residual Diagnostics",
        "",
        f"Tests at alpha = {ALPHA}.",
        "",
        "| Model | Shapiro-Wilk W | p | Breusch-Pagan p | Skew | Excess Kurtosis |",
        "|-------|----------------|---|-----------------|------|-----------------|",
    ])

    for d in result.diagnostics.values():
        report_lines.append(
            f"| {d.model_name} | {d.shapiro_stat:.3f} | {d.shapiro_p:.3g} | {d.breusch_pagan_p:.3g} | "
            f"{d.skewness:.2f} | {d.kurtosis:.2f} |"
        )

    chosen = result.chosen_model
    report_lines.extend([
        "",
        f"## Chosen Model: {result.chosen}",
        "",
        f"`{chosen.spec.formula}`",
        "",
        "| Term | Estimate | Std. Error | t | p |",
        "|------|----------|------------|---|---|",
    ])

    for _, row in coefficient_table(chosen).iterrows():
        report_lines.append(
            f"| {row['term']} | {row['estimate']:.4g} | {row['std_err']:.3g} | {row['t']:.2f} | {row['p_value']:.3g} |"
        )

    if chosen.spec.is_log:
        report_lines.extend([
            "",
            f"Predictions are back-transformed with exp() and a smearing factor of {chosen.smearing:.3f}.",
        ])

    report_lines.extend([
        "",
        "## Discussion",
        "",
    ])
    report_lines.extend(f"- {line}" for line in _commentary(result))

    if result.figures:
        report_lines.extend([
            "",
            "## Figures",
            "",
        ])
        for label, path in result.figures.items():
            report_lines.append(f"- {label}: `{path}`")

    report_str = "\n".join(report_lines)

    if save_path:
        with open(save_path, "w") as f:
            f.write(report_str)

    return report_str


def _save_figures(result: AnalysisResult) -> Dict[str, Path]:
    explore_dir = VIZ_DIR / "exploration"
    diag_dir = VIZ_DIR / "diagnostics"
    explore_dir.mkdir(parents=True, exist_ok=True)
    diag_dir.mkdir(parents=True, exist_ok=True)

    figures = {
        "correlation_heatmap": explore_dir / "correlation_heatmap.png",
        "salary_distribution": explore_dir / "salary_distribution.png",
        "top_predictors": explore_dir / "top_predictors.png",
        "salary_by_position": explore_dir / "salary_by_position.png",
    }
    plot_correlation_heatmap(result.correlations, save_path=figures["correlation_heatmap"])
    plot_salary_distribution(result.train, save_path=figures["salary_distribution"])
    plot_top_predictors(result.train, result.salary_correlations, save_path=figures["top_predictors"])
    plot_salary_by_position(result.train, save_path=figures["salary_by_position"])
    plt.close("all")

    for name, model in result.models.items():
        path = diag_dir / f"{name}_diagnostics.png"
        plot_diagnostics_panel(model, result.diagnostics[name], save_path=path)
        figures[f"{name}_diagnostics"] = path
        plt.close("all")

    chosen = result.chosen_model
    for label, plot in [("qq", plot_qq), ("residuals_vs_fitted", plot_residuals_vs_fitted),
                        ("residual_histogram", plot_residual_histogram)]:
        path = diag_dir / f"{result.chosen}_{label}.png"
        plot(chosen, save_path=path)
        figures[f"chosen_{label}"] = path
    plt.close("all")

    return figures


def run_full_analysis(
    filepath: Optional[str] = None,
    test_size: int = TEST_SIZE,
    random_state: int = RANDOM_STATE,
    save_figures: bool = True,
    save_outputs: bool = True,
) -> AnalysisResult:
    """Run the complete analysis and write all outputs.

    Args:
        filepath: Raw CSV path. Uses default if None.
        test_size: Number of held-out test rows.
        random_state: Seed for the train/test split.
        save_figures: Write figures under the visualizations directory.
        save_outputs: Write the split, comparison table, report and chosen model.

    Returns:
        AnalysisResult.
    """
    if save_figures or save_outputs:
        ensure_directories()

    print("Loading data...")
    df = load_and_clean_data(filepath)
    summary = get_data_summary(df)
    train_df, test_df = create_train_test_split(df, test_size=test_size, random_state=random_state)
    print(f"  {len(df)} rows after cleaning: {len(train_df)} train, {len(test_df)} test")

    print("\nExploring correlations...")
    corr = compute_correlation_matrix(train_df)
    salary_corr = salary_correlations(corr)
    collinear = find_collinear_pairs(corr)
    predictors = default_predictors(train_df)
    vif = variance_inflation(train_df, predictors)
    print(f"  Strongest correlate: {salary_corr.index[0]} (r = {salary_corr.iloc[0]:.3f})")

    print("\nFitting models...")
    models, stepwise = fit_candidate_models(train_df, predictors)
    for name, step in stepwise.items():
        print(f"  {name}: dropped {len(step.dropped_terms)} terms")

    f_tests = {}
    for name, step in stepwise.items():
        if step.dropped_terms:
            start_name = "log_additive" if step.start.is_log else "additive"
            f_tests[name] = nested_f_test(step.model, models[start_name])

    print("\nRunning diagnostics...")
    diagnostics = {name: residual_diagnostics(model) for name, model in models.items()}

    comparison = compare_models(list(models.values()), test_df)
    chosen = choose_model(comparison)
    print(f"  Chosen model: {chosen}")

    result = AnalysisResult(
        summary=summary,
        train=train_df,
        test=test_df,
        correlations=corr,
        salary_correlations=salary_corr,
        collinear_pairs=collinear,
        vif=vif,
        models=models,
        stepwise=stepwise,
        comparison=comparison,
        diagnostics=diagnostics,
        f_tests=f_tests,
        chosen=chosen,
    )

    if save_figures:
        print("\nGenerating visualizations...")
        result.figures = _save_figures(result)
        print(f"  - Saved {len(result.figures)} figures to {VIZ_DIR}")

    if save_outputs:
        save_train_test_split(train_df, test_df)

        comparison_path = OUTPUTS_DIR / "model_comparison.csv"
        comparison.to_csv(comparison_path, index=False)
        print(f"  - Saved {comparison_path.name}")

        generate_analysis_report(result, save_path=OUTPUTS_DIR / "analysis_report.md")
        print("  - Saved analysis_report.md")

        metadata = {
            "chosen": chosen,
            "n_train": len(train_df),
            "n_test": len(test_df),
            "test_size": test_size,
            "random_state": random_state,
            "comparison": json.loads(comparison.to_json(orient="records")),
            "diagnostics": json.loads(pd.Series(diagnostics[chosen].to_dict()).to_json()),
        }
        save_model(result.chosen_model, metadata)
        print("  - Saved chosen model")

    print("\nAnalysis complete!")
    return result


if __name__ == "__main__":
    run_full_analysis()
