"""
Analysis layer
--------------

Exploratory outputs generated from the merged student dataset:

- frequency_tables.csv
- target_by_<column>.csv
- <indicator>_by_target.png
- logistic_regression_summary.csv
"""

from .student_outcomes import (  # noqa: F401
    ANALYSIS_OUTPUT_DIR,
    DEFAULT_COVARIATES,
    FREQUENCY_CSV_NAME,
    REGRESSION_CSV_NAME,
    LogisticRegressionSummary,
    build_analysis_outputs,
    build_indicator_distribution_plot,
    default_regression_features,
    fit_dropout_logistic_regression,
    frequency_table,
    target_crosstab,
)

__all__ = [
    "ANALYSIS_OUTPUT_DIR",
    "DEFAULT_COVARIATES",
    "FREQUENCY_CSV_NAME",
    "REGRESSION_CSV_NAME",
    "LogisticRegressionSummary",
    "build_analysis_outputs",
    "build_indicator_distribution_plot",
    "default_regression_features",
    "fit_dropout_logistic_regression",
    "frequency_table",
    "target_crosstab",
]
