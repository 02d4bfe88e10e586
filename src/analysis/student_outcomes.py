"""
Exploratory outputs for the merged student dataset.

Artefacts written by ``build_analysis_outputs``:

- frequency_tables.csv
  One block per categorical column: value, count, percent.

- target_by_<column>.csv
  Outcome distribution (row percentages) per category of a column.

- <value_column>_by_target.png
  Histogram of the indicator value per outcome class.

- logistic_regression_summary.csv
  Coefficients of one illustrative logistic regression
  (dropout vs. everything else on the indicator plus any available
  covariates).
"""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt  # noqa: E402
import numpy as np  # noqa: E402
import pandas as pd  # noqa: E402
from sklearn.linear_model import LogisticRegression  # noqa: E402
from sklearn.pipeline import Pipeline  # noqa: E402
from sklearn.preprocessing import StandardScaler  # noqa: E402

from adapters import LocalStorageAdapter, StorageAdapter  # noqa: E402

logger = logging.getLogger(__name__)

ANALYSIS_OUTPUT_DIR = Path("output") / "analysis"
FREQUENCY_CSV_NAME = "frequency_tables.csv"
REGRESSION_CSV_NAME = "logistic_regression_summary.csv"

DEFAULT_TARGET_COLUMN = "Target"
DEFAULT_POSITIVE_LABEL = "Dropout"
DEFAULT_CATEGORICAL_COLUMNS = ("Target", "Nacionality", "Gender")
# Regressed alongside the indicator when present in the merged frame.
DEFAULT_COVARIATES = ("Age at enrollment",)


@dataclass
class LogisticRegressionSummary:
    """Fitted coefficients (on standardised features) and in-sample accuracy."""

    features: List[str]
    coefficients: Dict[str, float]
    intercept: float
    accuracy: float
    n_obs: int
    n_dropped: int
    positive_label: str

    def to_dataframe(self) -> pd.DataFrame:
        rows = [{"term": "intercept", "coefficient": self.intercept}]
        rows.extend({"term": f, "coefficient": self.coefficients[f]} for f in self.features)
        df = pd.DataFrame(rows)
        df["odds_ratio"] = np.exp(df["coefficient"])
        df["accuracy"] = self.accuracy
        df["n_obs"] = self.n_obs
        df["positive_label"] = self.positive_label
        return df


def frequency_table(df: pd.DataFrame, column: str) -> pd.DataFrame:
    """Counts and percentages of each value in ``column`` (missing values included)."""
    if column not in df.columns:
        raise KeyError(f"Column {column!r} not found")

    counts = df[column].value_counts(dropna=False)
    total = int(counts.sum())
    result = pd.DataFrame(
        {
            "column": column,
            "value": counts.index.astype(str),
            "count": counts.to_numpy(),
        }
    )
    result["percent"] = (result["count"] / total * 100.0) if total else 0.0
    return result.reset_index(drop=True)


def target_crosstab(
    df: pd.DataFrame,
    column: str,
    target: str = DEFAULT_TARGET_COLUMN,
) -> pd.DataFrame:
    """Row-normalised (percent) outcome distribution for each value of ``column``."""
    for col in (column, target):
        if col not in df.columns:
            raise KeyError(f"Column {col!r} not found")
    return pd.crosstab(df[column], df[target], normalize="index") * 100.0


def _key(prefix: str, name: str) -> str:
    return f"{prefix.rstrip('/')}/{name}" if prefix else name


def _csv_bytes(df: pd.DataFrame, *, index: bool) -> bytes:
    buffer = io.StringIO()
    df.to_csv(buffer, index=index)
    return buffer.getvalue().encode("utf-8")


def build_indicator_distribution_plot(
    df: pd.DataFrame,
    *,
    value_column: str,
    target: str = DEFAULT_TARGET_COLUMN,
    output_dir: Path | str = ANALYSIS_OUTPUT_DIR,
    storage: Optional[StorageAdapter] = None,
    key_prefix: str = "",
) -> Path:
    """
    Overlayed histogram of ``value_column`` per outcome class.

    The PNG is stored at ``<key_prefix>/<value>_by_<target>.png`` through
    ``storage``; without one it lands in ``output_dir``.
    """
    data = df.dropna(subset=[value_column, target])
    if data.empty:
        raise RuntimeError(f"No rows with both {value_column!r} and {target!r} to plot")

    plt.figure(figsize=(8, 5))
    for label, group in data.groupby(target):
        plt.hist(group[value_column], bins=20, alpha=0.5, label=str(label))
    plt.xlabel(value_column)
    plt.ylabel("Students")
    plt.title(f"{value_column} by {target}")
    plt.legend(frameon=False)
    plt.tight_layout()

    buffer = io.BytesIO()
    plt.savefig(buffer, format="png", dpi=150)
    plt.close()

    storage = storage or LocalStorageAdapter(output_dir)
    name = f"{value_column}_by_{target}.png".replace(" ", "_").lower()
    return Path(storage.write_raw(_key(key_prefix, name), buffer.getvalue()))


def fit_dropout_logistic_regression(
    df: pd.DataFrame,
    *,
    features: Sequence[str],
    target: str = DEFAULT_TARGET_COLUMN,
    positive_label: str = DEFAULT_POSITIVE_LABEL,
) -> LogisticRegressionSummary:
    """
    Fit ``target == positive_label`` on ``features``.

    Rows with a missing feature or target are excluded.
    """
    features = list(features)
    missing_cols = [c for c in features + [target] if c not in df.columns]
    if missing_cols:
        raise KeyError(f"Columns not found: {', '.join(missing_cols)}")

    data = df[features + [target]].copy()
    for col in features:
        data[col] = pd.to_numeric(data[col], errors="coerce")
    complete = data.dropna()
    n_dropped = len(data) - len(complete)

    y = (complete[target].astype(str) == positive_label).astype(int).to_numpy()
    if len(np.unique(y)) < 2:
        raise ValueError("Logistic regression needs both outcome classes in the data")

    model = Pipeline(
        steps=[
            ("scaler", StandardScaler()),
            ("logreg", LogisticRegression(max_iter=1000)),
        ]
    )
    X = complete[features].to_numpy(dtype=float)
    model.fit(X, y)

    logreg = model.named_steps["logreg"]
    accuracy = float(model.score(X, y))
    if n_dropped:
        logger.info("Logistic regression excluded %d row(s) with missing values", n_dropped)

    return LogisticRegressionSummary(
        features=features,
        coefficients={f: float(c) for f, c in zip(features, logreg.coef_[0])},
        intercept=float(logreg.intercept_[0]),
        accuracy=accuracy,
        n_obs=int(len(complete)),
        n_dropped=int(n_dropped),
        positive_label=positive_label,
    )


def default_regression_features(df: pd.DataFrame, value_column: str) -> List[str]:
    """The indicator plus whichever of ``DEFAULT_COVARIATES`` the frame carries."""
    return [value_column] + [
        c for c in DEFAULT_COVARIATES if c in df.columns and c != value_column
    ]


def build_analysis_outputs(
    df: pd.DataFrame,
    *,
    value_column: str,
    target: str = DEFAULT_TARGET_COLUMN,
    categorical_columns: Sequence[str] = DEFAULT_CATEGORICAL_COLUMNS,
    regression_features: Optional[Sequence[str]] = None,
    output_dir: Path | str = ANALYSIS_OUTPUT_DIR,
    storage: Optional[StorageAdapter] = None,
    key_prefix: str = "",
) -> List[Path]:
    """
    Write the frequency tables, crosstabs, plot and regression summary.

    When ``storage`` is None the artefacts go to ``output_dir`` on the local
    disk. When it is given, every artefact is written through
    ``StorageAdapter.write_raw`` under ``key_prefix``. Returns the stored
    locations.
    """
    storage = storage or LocalStorageAdapter(output_dir)
    paths: List[Path] = []

    columns = [c for c in categorical_columns if c in df.columns]
    if columns:
        freq = pd.concat([frequency_table(df, c) for c in columns], ignore_index=True)
        location = storage.write_raw(
            _key(key_prefix, FREQUENCY_CSV_NAME), _csv_bytes(freq, index=False)
        )
        paths.append(Path(location))

    if target in df.columns:
        for column in columns:
            if column == target:
                continue
            name = f"target_by_{column}.csv".replace(" ", "_").lower()
            crosstab = target_crosstab(df, column, target)
            location = storage.write_raw(_key(key_prefix, name), _csv_bytes(crosstab, index=True))
            paths.append(Path(location))

        try:
            paths.append(
                build_indicator_distribution_plot(
                    df,
                    value_column=value_column,
                    target=target,
                    storage=storage,
                    key_prefix=key_prefix,
                )
            )
        except RuntimeError as exc:
            logger.warning("Skipping distribution plot: %s", exc)

        if regression_features:
            features = list(regression_features)
        else:
            features = default_regression_features(df, value_column)
        try:
            summary = fit_dropout_logistic_regression(df, features=features, target=target)
        except ValueError as exc:
            logger.warning("Skipping logistic regression: %s", exc)
            return paths
        location = storage.write_raw(
            _key(key_prefix, REGRESSION_CSV_NAME),
            _csv_bytes(summary.to_dataframe(), index=False),
        )
        paths.append(Path(location))
        logger.info(
            "Logistic regression on %s: n=%d, accuracy=%.3f",
            ", ".join(features), summary.n_obs, summary.accuracy,
        )
    else:
        logger.warning("Target column %r not found; skipping crosstabs, plot and regression", target)

    return paths


__all__ = [
    "ANALYSIS_OUTPUT_DIR",
    "FREQUENCY_CSV_NAME",
    "REGRESSION_CSV_NAME",
    "DEFAULT_COVARIATES",
    "LogisticRegressionSummary",
    "frequency_table",
    "target_crosstab",
    "build_indicator_distribution_plot",
    "fit_dropout_logistic_regression",
    "default_regression_features",
    "build_analysis_outputs",
]
