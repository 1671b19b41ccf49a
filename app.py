"""
NBA Salary Analysis - Interactive Report
Run with: streamlit run app.py
"""

import warnings
warnings.filterwarnings("ignore")

import streamlit as st
import pandas as pd
import matplotlib.pyplot as plt
from pathlib import Path

from nba_salary.diagnostics import plot_diagnostics_panel
from nba_salary.exploration import (
    plot_correlation_heatmap,
    plot_salary_by_position,
    plot_salary_distribution,
    plot_top_predictors,
)
from nba_salary.modeling import predict_salary
from nba_salary.report import coefficient_table, generate_analysis_report, run_full_analysis
from nba_salary.utils import RANDOM_STATE, TEST_SIZE, default_data_path

# Page config
st.set_page_config(
    page_title="NBA Salary Analysis",
    page_icon="🏀",
    layout="wide",
    initial_sidebar_state="expanded"
)

st.markdown("""
<style>
    .main-header {
        font-size: 3rem;
        font-weight: bold;
        background: linear-gradient(90deg, #1e3c72, #2a5298);
        -webkit-background-clip: text;
        -webkit-text-fill-color: transparent;
        text-align: center;
        padding: 1rem 0;
    }
    .metric-card {
        background: #f8f9fa;
        padding: 1.5rem;
        border-radius: 10px;
        border-left: 4px solid #1e3c72;
        margin: 0.5rem 0;
    }
</style>
""", unsafe_allow_html=True)


@st.cache_resource
def load_analysis(data_path: str, test_size: int, seed: int):
    """Run the analysis once per data path and split (cached)."""
    return run_full_analysis(
        filepath=data_path,
        test_size=test_size,
        random_state=seed,
        save_figures=False,
        save_outputs=False,
    )


def show_figure(fig):
    st.pyplot(fig)
    plt.close(fig)


# =============================================================================
# PAGE: OVERVIEW
# =============================================================================
def page_overview(result):
    st.markdown('<h1 class="main-header">🏀 NBA Salary Analysis</h1>', unsafe_allow_html=True)

    summary = result.summary
    col1, col2, col3, col4 = st.columns(4)
    with col1:
        st.metric("Records", summary["total_records"], f"{summary['unique_players']} players")
    with col2:
        st.metric("Median Salary", f"${summary['median_salary']:,.0f}")
    with col3:
        st.metric("Train / Test", f"{len(result.train)} / {len(result.test)}")
    with col4:
        st.metric("Chosen Model", result.chosen)

    st.markdown("---")
    st.markdown("## Salary Distribution")
    show_figure(plot_salary_distribution(result.train))

    st.markdown("## Salary by Position")
    show_figure(plot_salary_by_position(result.train))


# =============================================================================
# PAGE: CORRELATIONS
# =============================================================================
def page_correlations(result):
    st.markdown("# 🔗 Correlations")

    col1, col2 = st.columns([1, 2])
    with col1:
        st.markdown("### Correlation with Salary")
        st.dataframe(
            result.salary_correlations.rename("r").to_frame().round(3),
            use_container_width=True,
        )
    with col2:
        show_figure(plot_correlation_heatmap(result.correlations))

    st.markdown("### Most Correlated Predictors")
    top_n = st.slider("Predictors to show", 3, 12, 6)
    show_figure(plot_top_predictors(result.train, result.salary_correlations, top_n=top_n))

    if result.collinear_pairs:
        st.markdown("### ⚠️ Collinear Pairs")
        st.dataframe(
            pd.DataFrame(result.collinear_pairs, columns=["predictor_a", "predictor_b", "r"]),
            use_container_width=True,
        )

    st.markdown("### Variance Inflation Factors")
    st.dataframe(result.vif.round(2), use_container_width=True)


# =============================================================================
# PAGE: MODELS
# =============================================================================
def page_models(result):
    st.markdown("# 📈 Model Comparison")
    st.info("AIC and BIC are only comparable between models with the same response.")

    st.dataframe(
        result.comparison.set_index("model").style.highlight_min(subset=["test_rmse"], color="#c8f7c5"),
        use_container_width=True,
    )

    st.markdown("---")
    st.markdown("## Stepwise Selection")
    for name, step in result.stepwise.items():
        with st.expander(f"{name} (k = {step.penalty:.2f}, dropped {len(step.dropped_terms)} terms)"):
            history = pd.DataFrame([vars(record) for record in step.history])
            st.dataframe(history, use_container_width=True)
            st.code(step.model.spec.formula)
            if name in result.f_tests:
                st.markdown("Partial F-test against the starting model")
                st.dataframe(result.f_tests[name], use_container_width=True)

    st.markdown("---")
    name = st.selectbox("Coefficients for", list(result.models), index=list(result.models).index(result.chosen))
    model = result.models[name]
    st.code(model.spec.formula)
    st.dataframe(coefficient_table(model).round(4), use_container_width=True)


# =============================================================================
# PAGE: DIAGNOSTICS
# =============================================================================
def page_diagnostics(result):
    st.markdown("# 🩺 Residual Diagnostics")

    table = pd.DataFrame([d.to_dict() for d in result.diagnostics.values()]).set_index("model_name")
    st.dataframe(table.round(4), use_container_width=True)

    name = st.selectbox("Model", list(result.models), index=list(result.models).index(result.chosen))
    show_figure(plot_diagnostics_panel(result.models[name], result.diagnostics[name]))


# =============================================================================
# PAGE: PLAYER LOOKUP
# =============================================================================
def page_players(result):
    st.markdown("# 🔮 Player Salary Lookup")

    data = pd.concat([result.train.assign(split="train"), result.test.assign(split="test")], ignore_index=True)
    player = st.selectbox("Player", sorted(data["player"].unique()))
    rows = data[data["player"] == player]

    predictions = predict_salary(result.chosen_model, rows)
    if predictions.empty:
        st.warning("The chosen model cannot predict for this player (team or position unseen in training, or a missing stat).")
        return

    for idx, predicted in predictions.items():
        row = rows.loc[idx]
        col1, col2, col3 = st.columns(3)
        with col1:
            st.metric(f"{row['team']} · {row['position']} ({row['split']})", f"${row['salary']:,.0f}", "actual")
        with col2:
            st.metric("Predicted", f"${predicted:,.0f}")
        with col3:
            st.metric("Difference", f"${row['salary'] - predicted:+,.0f}")


# =============================================================================
# PAGE: REPORT
# =============================================================================
def page_report(result):
    report = generate_analysis_report(result)
    st.download_button("Download report (markdown)", report, file_name="analysis_report.md")
    st.markdown(report)


# =============================================================================
# MAIN APP
# =============================================================================
def main():
    st.sidebar.markdown("# 🏀 Navigation")

    data_path = st.sidebar.text_input("Data CSV", str(default_data_path()))
    test_size = st.sidebar.number_input("Test rows", min_value=10, value=TEST_SIZE, step=10)
    seed = st.sidebar.number_input("Split seed", min_value=0, value=RANDOM_STATE)

    if not Path(data_path).exists():
        st.markdown('<h1 class="main-header">🏀 NBA Salary Analysis</h1>', unsafe_allow_html=True)
        st.error(f"Data file not found: {data_path}")
        st.info("Place the player salary CSV at the path above or set NBA_SALARY_DATA.")
        return

    with st.spinner("Running analysis..."):
        try:
            result = load_analysis(data_path, int(test_size), int(seed))
        except ValueError as e:
            st.error(str(e))
            return

    pages = {
        "🏠 Overview": page_overview,
        "🔗 Correlations": page_correlations,
        "📈 Models": page_models,
        "🩺 Diagnostics": page_diagnostics,
        "🔮 Players": page_players,
        "📝 Report": page_report,
    }

    selection = st.sidebar.radio("Go to", list(pages.keys()))

    st.sidebar.markdown("---")
    st.sidebar.markdown(f"""
    ### About
    Linear regression models of NBA salary on advanced statistics,
    reduced by backward stepwise selection.

    **Chosen model**: {result.chosen}
    """)

    pages[selection](result)


if __name__ == "__main__":
    main()
