import sys

import pytest

import analyze_salaries
import nba_salary.modeling as modeling
import nba_salary.report as report
import nba_salary.utils as utils
from nba_salary.modeling import load_model
from nba_salary.report import coefficient_table, generate_analysis_report, run_full_analysis
from tests.conftest import make_raw_frame


@pytest.fixture(scope="module")
def analysis(tmp_path_factory):
    """Run the whole analysis once, writing into a temporary project tree."""
    root = tmp_path_factory.mktemp("project")
    data_path = root / "salaries.csv"
    make_raw_frame(n=240, seed=3).to_csv(data_path, index=False)

    dirs = {
        "PROCESSED_DIR": root / "data" / "processed",
        "MODELS_DIR": root / "models",
        "OUTPUTS_DIR": root / "outputs",
        "VIZ_DIR": root / "visualizations",
    }

    with pytest.MonkeyPatch.context() as mp:
        for name, path in dirs.items():
            mp.setattr(utils, name, path)
        mp.setattr(modeling, "MODELS_DIR", dirs["MODELS_DIR"])
        mp.setattr(report, "OUTPUTS_DIR", dirs["OUTPUTS_DIR"])
        mp.setattr(report, "VIZ_DIR", dirs["VIZ_DIR"])

        result = run_full_analysis(filepath=str(data_path), test_size=60, random_state=0)
        yield result, dirs, data_path


def test_analysis_fits_every_candidate(analysis):
    result, _, _ = analysis

    assert set(result.models) == {
        "additive", "interaction", "log_additive",
        "aic_stepwise", "bic_stepwise", "log_bic_stepwise",
    }
    assert len(result.comparison) == 6
    assert result.comparison["n_test"].nunique() == 1
    assert result.chosen in result.models
    assert set(result.diagnostics) == set(result.models)
    assert len(result.test) == 60
    assert len(result.train) + len(result.test) == result.summary["total_records"]


def test_chosen_model_has_lowest_test_rmse(analysis):
    result, _, _ = analysis

    best = result.comparison.sort_values("test_rmse").iloc[0]["model"]
    assert result.chosen == best


def test_stepwise_models_shrink_the_full_model(analysis):
    result, _, _ = analysis

    full_terms = set(result.models["additive"].spec.terms)
    for name in ("aic_stepwise", "bic_stepwise"):
        assert set(result.models[name].spec.terms) <= full_terms
    assert len(result.models["bic_stepwise"].spec.terms) < len(full_terms)
    for name, table in result.f_tests.items():
        assert name in result.stepwise
        assert "F" in table.columns


def test_outputs_written(analysis):
    result, dirs, _ = analysis

    assert (dirs["PROCESSED_DIR"] / "train_set.csv").exists()
    assert (dirs["OUTPUTS_DIR"] / "model_comparison.csv").exists()
    assert (dirs["OUTPUTS_DIR"] / "analysis_report.md").exists()
    assert result.figures
    for path in result.figures.values():
        assert path.exists()


def test_saved_model_is_the_chosen_model(analysis):
    result, _, _ = analysis

    model, metadata = load_model()

    assert model.name == result.chosen
    assert metadata["chosen"] == result.chosen
    assert metadata["n_test"] == 60
    assert len(metadata["comparison"]) == 6


def test_report_content(analysis):
    result, _, _ = analysis

    text = generate_analysis_report(result)

    for heading in ["## Data Summary", "## Model Comparison", "## Stepwise Selection",
                    "## Residual Diagnostics", "## Discussion"]:
        assert heading in text
    assert f"## Chosen Model: {result.chosen}" in text
    assert "vorp" in text
    assert "**(chosen)**" in text
    assert "All models are scored on the same" in text


def test_coefficient_table(analysis):
    result, _, _ = analysis

    table = coefficient_table(result.chosen_model)

    assert list(table.columns) == ["term", "estimate", "std_err", "t", "p_value"]
    assert table["term"].iloc[0] == "Intercept"


def test_cli_summary(raw_df, tmp_path, monkeypatch, capsys):
    path = tmp_path / "salaries.csv"
    raw_df.to_csv(path, index=False)
    monkeypatch.setattr(sys, "argv", ["analyze_salaries.py", "--summary", "--data", str(path)])

    assert analyze_salaries.main() == 0
    assert "total_records" in capsys.readouterr().out


def test_cli_missing_file(tmp_path, monkeypatch, capsys):
    monkeypatch.setattr(sys, "argv", ["analyze_salaries.py", "--summary", "--data", str(tmp_path / "nope.csv")])

    assert analyze_salaries.main() == 1
    assert "File not found" in capsys.readouterr().err


def test_cli_player_prediction(analysis, monkeypatch, capsys):
    _, _, data_path = analysis
    monkeypatch.setattr(sys, "argv", ["analyze_salaries.py", "--player", "Player 010", "--data", str(data_path)])

    assert analyze_salaries.main() == 0
    out = capsys.readouterr().out
    assert "Player 010" in out
    assert "Predicted salary" in out


def test_cli_player_ambiguous_name(analysis, monkeypatch, capsys):
    _, _, data_path = analysis
    monkeypatch.setattr(sys, "argv", ["analyze_salaries.py", "--player", "Player 01", "--data", str(data_path)])

    assert analyze_salaries.main() == 0
    assert "Did you mean" in capsys.readouterr().out
