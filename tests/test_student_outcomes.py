import numpy as np
import pandas as pd
import pytest

from adapters import LocalStorageAdapter
from analysis import (
    FREQUENCY_CSV_NAME,
    REGRESSION_CSV_NAME,
    build_analysis_outputs,
    build_indicator_distribution_plot,
    default_regression_features,
    fit_dropout_logistic_regression,
    frequency_table,
    target_crosstab,
)


@pytest.fixture
def merged_students():
    rng = np.random.default_rng(42)
    n = 200
    nationality = rng.integers(1, 4, n)
    life_expectancy = np.where(nationality == 1, 81.1, np.where(nationality == 2, 81.3, np.nan))
    age = rng.integers(18, 45, n)
    # Older students drop out more often, so the fit has signal.
    dropout = rng.random(n) < (age - 15) / 40
    return pd.DataFrame(
        {
            "Nacionality": nationality,
            "Gender": rng.integers(0, 2, n),
            "Age at enrollment": age,
            "Target": np.where(dropout, "Dropout", "Graduate"),
            "life_expectancy": life_expectancy,
        }
    )


def test_frequency_table_counts_and_percent():
    df = pd.DataFrame({"Target": ["Dropout", "Graduate", "Graduate", None]})
    table = frequency_table(df, "Target")
    assert table["count"].sum() == 4
    assert table.iloc[0]["value"] == "Graduate"
    assert table.iloc[0]["count"] == 2
    assert table["percent"].sum() == pytest.approx(100.0)


def test_frequency_table_unknown_column():
    with pytest.raises(KeyError):
        frequency_table(pd.DataFrame({"a": [1]}), "b")


def test_target_crosstab_rows_sum_to_100(merged_students):
    crosstab = target_crosstab(merged_students, "Nacionality")
    np.testing.assert_allclose(crosstab.sum(axis=1).to_numpy(), 100.0)
    assert set(crosstab.columns) == {"Dropout", "Graduate"}


def test_logistic_regression_excludes_missing_rows(merged_students):
    summary = fit_dropout_logistic_regression(
        merged_students, features=["life_expectancy", "Age at enrollment"]
    )
    n_missing = int(merged_students["life_expectancy"].isna().sum())
    assert summary.n_obs == len(merged_students) - n_missing
    assert summary.n_dropped == n_missing
    assert set(summary.coefficients) == {"life_expectancy", "Age at enrollment"}
    assert summary.coefficients["Age at enrollment"] > 0
    assert 0.0 <= summary.accuracy <= 1.0

    df = summary.to_dataframe()
    assert df["term"].tolist() == ["intercept", "life_expectancy", "Age at enrollment"]
    assert (df["odds_ratio"] > 0).all()


def test_logistic_regression_needs_two_classes(merged_students):
    one_class = merged_students.assign(Target="Graduate")
    with pytest.raises(ValueError):
        fit_dropout_logistic_regression(one_class, features=["Age at enrollment"])


def test_distribution_plot_written(tmp_path, merged_students):
    path = build_indicator_distribution_plot(
        merged_students, value_column="life_expectancy", output_dir=tmp_path
    )
    assert path.exists()
    assert path.suffix == ".png"


def test_build_analysis_outputs(tmp_path, merged_students):
    paths = build_analysis_outputs(
        merged_students,
        value_column="life_expectancy",
        regression_features=["life_expectancy", "Age at enrollment"],
        output_dir=tmp_path,
    )
    names = {p.name for p in paths}
    assert FREQUENCY_CSV_NAME in names
    assert REGRESSION_CSV_NAME in names
    assert "target_by_nacionality.csv" in names
    assert "target_by_gender.csv" in names
    assert all(p.exists() for p in paths)

    freq = pd.read_csv(tmp_path / FREQUENCY_CSV_NAME)
    assert set(freq["column"]) == {"Target", "Nacionality", "Gender"}


def test_build_analysis_outputs_without_target(tmp_path, merged_students, caplog):
    with caplog.at_level("WARNING"):
        paths = build_analysis_outputs(
            merged_students.drop(columns=["Target"]),
            value_column="life_expectancy",
            output_dir=tmp_path,
        )
    assert [p.name for p in paths] == [FREQUENCY_CSV_NAME]
    assert "skipping" in caplog.text


def test_regression_defaults_to_indicator_plus_covariates(tmp_path, merged_students):
    assert default_regression_features(merged_students, "life_expectancy") == [
        "life_expectancy",
        "Age at enrollment",
    ]
    without_age = merged_students.drop(columns=["Age at enrollment"])
    assert default_regression_features(without_age, "life_expectancy") == ["life_expectancy"]

    build_analysis_outputs(merged_students, value_column="life_expectancy", output_dir=tmp_path)
    summary = pd.read_csv(tmp_path / REGRESSION_CSV_NAME)
    assert summary["term"].tolist() == ["intercept", "life_expectancy", "Age at enrollment"]


def test_build_analysis_outputs_through_storage(tmp_path, merged_students):
    storage = LocalStorageAdapter(tmp_path / "store")
    paths = build_analysis_outputs(
        merged_students,
        value_column="life_expectancy",
        storage=storage,
        key_prefix="analysis",
        output_dir=tmp_path / "unused",
    )
    assert {p.parent for p in paths} == {tmp_path / "store" / "analysis"}
    assert storage.exists(f"analysis/{REGRESSION_CSV_NAME}")
    assert storage.exists("analysis/life_expectancy_by_target.png")
    assert not (tmp_path / "unused").exists()
