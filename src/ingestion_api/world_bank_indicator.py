"""
Single-observation fetch from the World Bank indicator API.

One call per (country, indicator, year):

    GET {base}/country/{ISO3}/indicator/{INDICATOR}?date={YEAR}&format=json

The JSON response is a two-element list ``[metadata, observations]``.
Invalid country codes come back as ``[{"message": [...]}]`` and
countries without an observation for the year as ``[metadata, null]``;
both are treated as "no data", not as failures.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import requests

from common.exceptions import (
    InvalidCountryKeyError,
    InvalidYearError,
    MalformedResponseError,
    NoDataError,
)
from common.retry import http_get_with_retries
from settings import WORLD_BANK_API_BASE_URL

logger = logging.getLogger(__name__)

USER_AGENT = "nationality-indicator-pipeline/0.1"

# First year published in the World Development Indicators.
MIN_INDICATOR_YEAR = 1960

STATUS_OK = "ok"
STATUS_NO_DATA = "no_data"
STATUS_FAILED = "failed"

_COUNTRY_KEY_RE = re.compile(r"^[A-Z]{3}$")


@dataclass(frozen=True)
class IndicatorRecord:
    """One indicator observation (or its absence) for a country/year."""

    country_code: str
    indicator_code: str
    year: int
    value: Optional[float]
    status: str = STATUS_OK
    error: Optional[str] = None

    @property
    def is_missing(self) -> bool:
        return self.value is None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "country_code": self.country_code,
            "indicator_code": self.indicator_code,
            "year": self.year,
            "value": self.value,
            "status": self.status,
            "error": self.error,
        }


def validate_country_key(key: str) -> str:
    """Return ``key`` if it is an uppercase ISO-3166 alpha-3 code."""
    if not isinstance(key, str) or not _COUNTRY_KEY_RE.match(key):
        raise InvalidCountryKeyError(f"Invalid ISO-3166 alpha-3 country code: {key!r}")
    return key


def validate_year(year: int) -> int:
    """Return ``year`` if the API can have data for it."""
    max_year = datetime.now(timezone.utc).year
    if isinstance(year, bool) or not isinstance(year, int):
        raise InvalidYearError(f"Year must be an integer, got {year!r}")
    if not MIN_INDICATOR_YEAR <= year <= max_year:
        raise InvalidYearError(
            f"Year {year} outside supported range [{MIN_INDICATOR_YEAR}, {max_year}]"
        )
    return year


def build_indicator_url(
    key: str,
    indicator_code: str,
    base_url: str = WORLD_BANK_API_BASE_URL,
) -> str:
    return f"{base_url.rstrip('/')}/country/{key}/indicator/{indicator_code}"


def _parse_value(raw: Any, key: str) -> float:
    if isinstance(raw, bool):
        raise MalformedResponseError(f"Non-numeric value {raw!r}", country_code=key)
    try:
        return float(raw)
    except (TypeError, ValueError) as exc:
        raise MalformedResponseError(f"Non-numeric value {raw!r}", country_code=key) from exc


def _echoed_country_code(observation: Dict[str, Any]) -> Optional[str]:
    code = observation.get("countryiso3code")
    if code:
        return str(code)
    country = observation.get("country")
    if isinstance(country, dict) and country.get("id"):
        return str(country["id"])
    return None


def _select_observation(
    observations: List[Any],
    key: str,
    year: int,
) -> Dict[str, Any]:
    for observation in observations:
        if not isinstance(observation, dict):
            raise MalformedResponseError(
                f"Unexpected observation entry: {observation!r}", country_code=key
            )

    for observation in observations:
        if str(observation.get("date")) == str(year):
            return observation

    if len(observations) == 1:
        return observations[0]

    raise NoDataError(f"No observation for year {year}", country_code=key)


def parse_indicator_payload(
    payload: Any,
    key: str,
    indicator_code: str,
    year: int,
) -> IndicatorRecord:
    """
    Flatten an API payload into an IndicatorRecord.

    Raises NoDataError when the API answered but has no value, and
    MalformedResponseError when the payload does not have the expected shape.
    """
    if not isinstance(payload, list) or not payload:
        raise MalformedResponseError(
            f"Unexpected response from World Bank API: {payload!r}", country_code=key
        )

    metadata = payload[0]
    if not isinstance(metadata, dict):
        raise MalformedResponseError(
            f"Unexpected response metadata: {metadata!r}", country_code=key
        )

    if "message" in metadata:
        # API-level error, e.g. "Invalid value" for an unknown country code.
        messages = metadata.get("message") or []
        detail = "; ".join(
            str(m.get("value") or m.get("key")) for m in messages if isinstance(m, dict)
        )
        raise NoDataError(f"API returned no data: {detail or 'unknown reason'}", country_code=key)

    if len(payload) != 2:
        raise MalformedResponseError(
            f"Unexpected response length {len(payload)}", country_code=key
        )

    observations = payload[1]
    if observations is None or observations == []:
        raise NoDataError(f"No observation for year {year}", country_code=key)
    if not isinstance(observations, list):
        raise MalformedResponseError(
            f"Unexpected observations structure: {observations!r}", country_code=key
        )

    observation = _select_observation(observations, key, year)

    echoed = _echoed_country_code(observation)
    if echoed is not None and echoed.upper() != key:
        logger.warning("API echoed country %s for requested key %s", echoed, key)

    raw_value = observation.get("value")
    if raw_value is None:
        raise NoDataError(f"Null value for year {year}", country_code=key)

    return IndicatorRecord(
        country_code=key,
        indicator_code=indicator_code,
        year=year,
        value=_parse_value(raw_value, key),
        status=STATUS_OK,
    )


def fetch_indicator_record(
    key: str,
    indicator_code: str,
    year: int,
    *,
    session: Optional[requests.Session] = None,
    base_url: str = WORLD_BANK_API_BASE_URL,
    timeout: float = 10,
    max_attempts: int = 1,
) -> IndicatorRecord:
    """
    Fetch the indicator value of one country for one year.

    A "no data" answer yields a record with ``value=None``. NetworkError and
    MalformedResponseError propagate so the caller can tell them apart.
    """
    validate_country_key(key)
    validate_year(year)

    url = build_indicator_url(key, indicator_code, base_url)
    params = {"date": year, "format": "json", "per_page": 50}
    response = http_get_with_retries(
        url,
        params=params,
        headers={"User-Agent": USER_AGENT},
        session=session,
        timeout=timeout,
        max_attempts=max_attempts,
    )

    try:
        payload = response.json()
    except ValueError as exc:
        if response.status_code >= 400:
            raise MalformedResponseError(
                f"HTTP {response.status_code} with non-JSON body", country_code=key
            ) from exc
        raise MalformedResponseError("Response body is not valid JSON", country_code=key) from exc

    try:
        return parse_indicator_payload(payload, key, indicator_code, year)
    except NoDataError as exc:
        logger.debug("No %s data for %s in %d: %s", indicator_code, key, year, exc)
        return IndicatorRecord(
            country_code=key,
            indicator_code=indicator_code,
            year=year,
            value=None,
            status=STATUS_NO_DATA,
        )


__all__ = [
    "USER_AGENT",
    "MIN_INDICATOR_YEAR",
    "STATUS_OK",
    "STATUS_NO_DATA",
    "STATUS_FAILED",
    "IndicatorRecord",
    "validate_country_key",
    "validate_year",
    "build_indicator_url",
    "parse_indicator_payload",
    "fetch_indicator_record",
]
