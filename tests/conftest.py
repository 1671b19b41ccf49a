import matplotlib

matplotlib.use("Agg")

import numpy as np
import pandas as pd
import pytest

from nba_salary.data_pipeline import clean_data


TEAMS = ["LAL", "BOS", "GSW", "MIA", "DEN", "PHX"]
POSITIONS = ["PG", "SG", "SF", "PF", "C"]


def make_raw_frame(n: int = 240, seed: int = 0) -> pd.DataFrame:
    """Synthetic player salary table with the real CSV's headers.

    Log salary depends on VORP, usage rate and age; the remaining advanced
    stats are noise. The first four rows carry the cases cleaning must handle.
    """
    rng = np.random.default_rng(seed)

    vorp = rng.normal(1.0, 1.5, n)
    usg = rng.normal(20.0, 5.0, n)
    age = rng.integers(20, 37, n)
    ows = rng.normal(2.0, 1.5, n)
    dws = rng.normal(1.5, 1.0, n)
    log_salary = 15.0 + 0.35 * vorp + 0.03 * (usg - 20.0) + 0.02 * (age - 27) + rng.normal(0, 0.25, n)
    salary = np.exp(log_salary)

    df = pd.DataFrame({
        "Player Name": [f"Player {i:03d}" for i in range(n)],
        "Salary": [f"${s:,.0f}" for s in salary],
        "Position": rng.choice(POSITIONS, n),
        "Age": age,
        "Team": rng.choice(TEAMS, n),
        "GP": rng.integers(10, 83, n),
        "GS": rng.integers(0, 60, n),
        "MP": rng.uniform(8, 38, n).round(1),
        "PTS": rng.uniform(2, 30, n).round(1),
        "Total Minutes": rng.integers(100, 3000, n),
        "PER": rng.normal(15, 4, n).round(1),
        "TS%": rng.uniform(0.45, 0.65, n).round(3),
        "3PAr": rng.uniform(0.0, 0.7, n).round(3),
        "FTr": rng.uniform(0.1, 0.5, n).round(3),
        "ORB%": rng.uniform(1, 15, n).round(1),
        "DRB%": rng.uniform(8, 30, n).round(1),
        "TRB%": rng.uniform(5, 22, n).round(1),
        "AST%": rng.uniform(5, 45, n).round(1),
        "STL%": rng.uniform(0.5, 3, n).round(1),
        "BLK%": rng.uniform(0, 8, n).round(1),
        "TOV%": rng.uniform(5, 20, n).round(1),
        "USG%": usg.round(1),
        "OWS": ows.round(1),
        "DWS": dws.round(1),
        "WS": (ows + dws + rng.normal(0, 0.3, n)).round(1),
        "WS/48": rng.normal(0.1, 0.05, n).round(3),
        "OBPM": rng.normal(0, 2.5, n).round(1),
        "DBPM": rng.normal(0, 1.5, n).round(1),
        "BPM": rng.normal(0, 3, n).round(1),
        "VORP": vorp.round(2),
        "Guaranteed": [f"${s * 2:,.0f}" for s in salary],
        "Signed Using": rng.choice(["Bird Rights", "Cap Space", "Rookie Scale", "Minimum"], n),
    })

    df.loc[0, "TS%"] = np.nan
    df.loc[1, "Salary"] = "$0"
    df.loc[2, "Position"] = "SG-PG"
    df.loc[3, "Team"] = "LAL/UTA"

    return df


@pytest.fixture
def raw_df() -> pd.DataFrame:
    return make_raw_frame()


@pytest.fixture
def clean_df(raw_df) -> pd.DataFrame:
    return clean_data(raw_df)


@pytest.fixture
def linear_df() -> pd.DataFrame:
    """y depends strongly on x1 and x2; noise1, noise2 and grp are irrelevant."""
    rng = np.random.default_rng(1)
    n = 200
    x1 = rng.normal(0, 1, n)
    x2 = rng.normal(0, 1, n)
    return pd.DataFrame({
        "x1": x1,
        "x2": x2,
        "noise1": rng.normal(0, 1, n),
        "noise2": rng.normal(0, 1, n),
        "grp": rng.choice(["a", "b", "c"], n),
        "y": 1.0 + 3.0 * x1 + 2.0 * x2 + rng.normal(0, 0.1, n),
    })


@pytest.fixture
def isolated_dirs(tmp_path, monkeypatch):
    """Point every output directory at a temporary location."""
    import nba_salary.modeling as modeling
    import nba_salary.report as report
    import nba_salary.utils as utils

    dirs = {
        "PROCESSED_DIR": tmp_path / "data" / "processed",
        "MODELS_DIR": tmp_path / "models",
        "OUTPUTS_DIR": tmp_path / "outputs",
        "VIZ_DIR": tmp_path / "visualizations",
    }
    for name, path in dirs.items():
        monkeypatch.setattr(utils, name, path)
    monkeypatch.setattr(modeling, "MODELS_DIR", dirs["MODELS_DIR"])
    monkeypatch.setattr(report, "OUTPUTS_DIR", dirs["OUTPUTS_DIR"])
    monkeypatch.setattr(report, "VIZ_DIR", dirs["VIZ_DIR"])
    return dirs
