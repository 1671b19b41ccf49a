import numpy as np
import pandas as pd
import pytest

from nba_salary.modeling import (
    ModelSpec,
    additive_spec,
    backward_stepwise,
    choose_model,
    compare_models,
    default_predictors,
    droppable_terms,
    evaluate_model,
    fit_candidate_models,
    fit_ols,
    information_criterion,
    interaction_spec,
    load_model,
    log_spec,
    nested_f_test,
    predict_salary,
    predictable_rows,
    save_model,
    select_by_aic,
    select_by_bic,
)
from nba_salary.utils import create_train_test_split


def _linear_spec():
    return ModelSpec(name="full", response="y", terms=["x1", "x2", "noise1", "noise2", "C(grp)"])


def test_model_spec_formula_and_variables():
    spec = ModelSpec(name="m", response="salary", terms=["age", "C(team)", "age:C(team)"])

    assert spec.formula == "salary ~ age + C(team) + age:C(team)"
    assert spec.variables == ["age", "team"]
    assert spec.categorical_variables == ["team"]
    assert not spec.is_log


def test_intercept_only_formula():
    assert ModelSpec(name="null", response="salary").formula == "salary ~ 1"


def test_without_unknown_term_raises():
    with pytest.raises(ValueError, match="vorp"):
        ModelSpec(name="m", response="salary", terms=["age"]).without("vorp")


def test_additive_spec_wraps_categoricals():
    spec = additive_spec(["age", "vorp", "team", "position"])

    assert spec.terms == ["age", "vorp", "C(team)", "C(position)"]
    assert spec.response == "salary"


def test_interaction_spec_adds_pairwise_terms():
    spec = interaction_spec(
        ["age", "vorp", "usg_pct", "position"],
        key_predictors=["age", "vorp", "position", "not_a_predictor"],
    )

    assert spec.terms[:4] == ["age", "vorp", "usg_pct", "C(position)"]
    assert spec.terms[4:] == ["age:vorp", "age:C(position)", "vorp:C(position)"]


def test_log_spec_switches_response():
    spec = log_spec(additive_spec(["age"]))

    assert spec.response == "log_salary"
    assert spec.is_log
    assert spec.name == "log_additive"


def test_default_predictors_order(clean_df):
    predictors = default_predictors(clean_df)

    assert predictors[0] == "age"
    assert predictors[-2:] == ["team", "position"]
    assert "player" not in predictors
    assert "salary" not in predictors
    assert "guaranteed" not in predictors
    assert "signed_using" not in predictors


def test_droppable_terms_respect_marginality():
    assert droppable_terms(["a", "b", "a:b", "c"]) == ["a:b", "c"]
    assert droppable_terms(["a", "b"]) == ["a", "b"]


def test_fit_ols_recovers_coefficients(linear_df):
    model = fit_ols(ModelSpec(name="m", response="y", terms=["x1", "x2"]), linear_df)

    assert model.params["x1"] == pytest.approx(3.0, abs=0.05)
    assert model.params["x2"] == pytest.approx(2.0, abs=0.05)
    assert model.n_params == 3
    assert len(model.resid) == len(linear_df)
    np.testing.assert_allclose(model.fittedvalues + model.resid, linear_df["y"])


def test_fit_ols_missing_column_raises(linear_df):
    with pytest.raises(ValueError, match="missing columns"):
        fit_ols(ModelSpec(name="m", response="y", terms=["x9"]), linear_df)


def test_fit_ols_records_training_levels(linear_df):
    model = fit_ols(_linear_spec(), linear_df)

    assert model.levels == {"grp": ["a", "b", "c"]}
    assert model.smearing == 1.0


def test_information_criterion_matches_aic_and_bic(linear_df):
    model = fit_ols(_linear_spec(), linear_df)

    assert information_criterion(model, k=2.0) == pytest.approx(model.results.aic)
    assert information_criterion(model, k=np.log(len(linear_df))) == pytest.approx(model.results.bic)


def test_backward_stepwise_heavy_penalty_keeps_only_signal(linear_df):
    result = backward_stepwise(_linear_spec(), linear_df, k=1000.0, name="selected")

    assert result.model.spec.terms == ["x1", "x2"]
    assert result.model.name == "selected"
    assert set(result.dropped_terms) == {"noise1", "noise2", "C(grp)"}
    assert result.start.name == "full"


def test_backward_stepwise_criterion_decreases(linear_df):
    result = select_by_aic(_linear_spec(), linear_df)

    criteria = [step.criterion for step in result.history]
    assert criteria == sorted(criteria, reverse=True)
    assert len(set(criteria)) == len(criteria)
    assert {"x1", "x2"} <= set(result.model.spec.terms)
    assert result.history[0].dropped is None
    assert result.penalty == 2.0


def test_backward_stepwise_never_drops_main_effect_under_interaction(linear_df):
    spec = ModelSpec(name="int", response="y", terms=["x1", "noise1", "x1:noise1", "x2"])

    result = backward_stepwise(spec, linear_df, k=1000.0)

    assert result.dropped_terms[0] == "x1:noise1"
    assert "x1" in result.model.spec.terms
    assert "noise1" not in result.model.spec.terms


def test_backward_stepwise_zero_penalty_keeps_full_model(linear_df):
    result = backward_stepwise(_linear_spec(), linear_df, k=0.0)

    assert result.dropped_terms == []
    assert result.model.spec.terms == _linear_spec().terms


def test_select_by_bic_uses_log_n_penalty(linear_df):
    result = select_by_bic(_linear_spec(), linear_df)

    assert result.penalty == pytest.approx(np.log(len(linear_df)))
    assert {"x1", "x2"} <= set(result.model.spec.terms)


def test_predict_salary_skips_unseen_levels(linear_df):
    model = fit_ols(_linear_spec(), linear_df)
    test = linear_df.head(5).copy()
    test.loc[test.index[0], "grp"] = "z"

    predictions = predict_salary(model, test)

    assert list(predictions.index) == list(test.index[1:])


def test_predict_salary_back_transforms_log_models(clean_df):
    spec = log_spec(additive_spec(["vorp", "usg_pct", "age"]))
    model = fit_ols(spec, clean_df)

    smeared = predict_salary(model, clean_df)
    plain = predict_salary(model, clean_df, smearing=False)

    assert model.smearing > 1.0
    assert (plain > 0).all()
    np.testing.assert_allclose(smeared, plain * model.smearing)
    np.testing.assert_allclose(plain, np.exp(model.results.predict(clean_df)))


def test_predict_salary_skips_and_logs_missing_predictors(clean_df, caplog):
    train, test = create_train_test_split(clean_df, test_size=40)
    model = fit_ols(additive_spec(["vorp", "mp"]), train)
    test.loc[0, "mp"] = np.nan

    with caplog.at_level("WARNING", logger="nba_salary.modeling"):
        predictions = predict_salary(model, test)

    assert len(predictions) == len(test) - 1
    assert 0 not in predictions.index
    assert "missing predictor values" in caplog.text
    assert not predictable_rows(model, test).loc[0]


def test_predict_salary_with_nothing_predictable(linear_df):
    model = fit_ols(_linear_spec(), linear_df)
    test = linear_df.head(3).assign(grp="z")

    assert predict_salary(model, test).empty


def test_evaluate_model_reports_dollar_metrics(clean_df):
    train, test = create_train_test_split(clean_df, test_size=40)
    model = fit_ols(additive_spec(["vorp", "usg_pct", "age", "position"]), train)

    metrics = evaluate_model(model, test)

    assert set(metrics) == {"test_r2", "test_rmse", "test_mae", "n_test", "n_skipped"}
    assert metrics["test_rmse"] >= metrics["test_mae"] > 0
    assert metrics["n_test"] + metrics["n_skipped"] == len(test)


def test_compare_models_and_choose(clean_df):
    train, test = create_train_test_split(clean_df, test_size=40)
    models = [
        fit_ols(additive_spec(["vorp"], name="small"), train),
        fit_ols(log_spec(additive_spec(["vorp", "usg_pct", "age"]), name="log_three"), train),
    ]

    comparison = compare_models(models, test)

    assert comparison["model"].tolist() == ["small", "log_three"]
    assert comparison.loc[1, "response"] == "log_salary"
    assert comparison.loc[0, "n_params"] == 2
    assert choose_model(comparison) == comparison.loc[comparison["test_rmse"].idxmin(), "model"]


def test_compare_models_scores_every_model_on_the_same_rows(clean_df, caplog):
    train, test = create_train_test_split(clean_df, test_size=60, random_state=4)
    missing_team = test["team"].iloc[0]
    train = train[train["team"] != missing_team]
    with_team = fit_ols(additive_spec(["vorp", "team"], name="with_team"), train)
    no_team = fit_ols(additive_spec(["vorp"], name="no_team"), train)
    known = test["team"].isin(train["team"])
    unseen = int((~known).sum())

    with caplog.at_level("WARNING", logger="nba_salary.modeling"):
        comparison = compare_models([with_team, no_team], test)

    assert comparison["n_test"].nunique() == 1
    assert comparison["n_test"].iloc[0] == len(test) - unseen
    assert (comparison["n_skipped"] == unseen).all()
    assert "Excluding" in caplog.text

    shared = test[known]
    assert comparison.loc[1, "test_rmse"] == pytest.approx(evaluate_model(no_team, shared)["test_rmse"])


def test_choose_model_picks_lowest_rmse():
    comparison = pd.DataFrame({"model": ["a", "b", "c"], "test_rmse": [3.0, 1.0, 2.0]})
    assert choose_model(comparison) == "b"

    with pytest.raises(ValueError):
        choose_model(comparison.iloc[0:0])


def test_nested_f_test(linear_df):
    full = fit_ols(_linear_spec(), linear_df)
    reduced = fit_ols(ModelSpec(name="r", response="y", terms=["noise1"]), linear_df)

    table = nested_f_test(reduced, full)

    assert "F" in table.columns
    assert table["Pr(>F)"].iloc[-1] < 0.001


def test_nested_f_test_rejects_different_responses(linear_df):
    a = fit_ols(ModelSpec(name="a", response="y", terms=["x1"]), linear_df)
    b = fit_ols(ModelSpec(name="b", response="x2", terms=["x1"]), linear_df)

    with pytest.raises(ValueError):
        nested_f_test(a, b)


def test_fit_candidate_models(clean_df):
    train, _ = create_train_test_split(clean_df, test_size=40)
    predictors = ["age", "vorp", "usg_pct", "ows", "dws", "mp", "position"]

    models, stepwise = fit_candidate_models(train, predictors)

    assert set(models) == {
        "additive", "interaction", "log_additive",
        "aic_stepwise", "bic_stepwise", "log_bic_stepwise",
    }
    assert models["log_bic_stepwise"].spec.is_log
    assert "age:vorp" in models["interaction"].spec.terms
    assert "vorp" in models["log_bic_stepwise"].spec.terms
    for result in stepwise.values():
        assert set(result.model.spec.terms) <= set(result.start.terms)


def test_save_and_load_model(linear_df, isolated_dirs):
    model = fit_ols(_linear_spec(), linear_df)

    paths = save_model(model, {"chosen": "full"}, model_name="unit")
    loaded, metadata = load_model("unit")

    assert paths["model"].exists()
    assert metadata["chosen"] == "full"
    assert metadata["formula"] == model.spec.formula
    assert "saved_at" in metadata
    np.testing.assert_allclose(
        predict_salary(loaded, linear_df.head(10)),
        predict_salary(model, linear_df.head(10)),
    )
