"""
Exception hierarchy for the indicator enrichment pipeline.

Fetch errors are split by recovery behaviour:

- NetworkError: API unreachable (timeout, refused connection, 5xx).
- NoDataError: API reachable, no observation for key/year. Expected outcome.
- MalformedResponseError: payload does not have the expected shape.

The aggregator records all three as a missing value for the affected key;
only the first and last are reported as failures.
"""


class PipelineBaseError(Exception):
    """Base exception for all pipeline-related errors."""

    pass


class ConfigurationError(PipelineBaseError):
    """Raised when an environment/CLI setting is missing or invalid."""

    pass


class InvalidCountryKeyError(PipelineBaseError, ValueError):
    """Raised for a country key that is not an uppercase ISO-3166 alpha-3 code."""

    pass


class InvalidYearError(PipelineBaseError, ValueError):
    """Raised for a year outside the range the indicator API publishes."""

    pass


class IndicatorFetchError(PipelineBaseError):
    """
    Base class for errors raised while fetching one indicator observation.

    Carries the country key so callers can report which key failed.
    """

    def __init__(self, message: str, *, country_code: str | None = None) -> None:
        super().__init__(message)
        self.country_code = country_code


class NetworkError(IndicatorFetchError):
    """Raised when the indicator API cannot be reached."""

    pass


class NoDataError(IndicatorFetchError):
    """Raised when the API has no observation for the key/year."""

    pass


class MalformedResponseError(IndicatorFetchError):
    """Raised when the API response cannot be parsed into a record."""

    pass


class PrimaryDatasetError(PipelineBaseError):
    """Raised when the primary dataset file is missing or lacks required columns."""

    pass


class MergeKeyError(PipelineBaseError):
    """
    Raised when the merge key column is unusable.

    Covers:
    - the foreign-key column missing from the primary dataset
    - the indicator value column already present in the primary dataset
    - missing/non-numeric key values when merging in strict mode
    """

    pass


__all__ = [
    "PipelineBaseError",
    "ConfigurationError",
    "InvalidCountryKeyError",
    "InvalidYearError",
    "IndicatorFetchError",
    "NetworkError",
    "NoDataError",
    "MalformedResponseError",
    "PrimaryDatasetError",
    "MergeKeyError",
]
