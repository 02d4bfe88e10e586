from __future__ import annotations

import logging
import random
import time
from typing import Mapping, Optional, Sequence

import requests

from .exceptions import NetworkError

logger = logging.getLogger(__name__)

TRANSIENT_STATUS_CODES = (429, 500, 502, 503, 504)


def _compute_sleep_seconds(
    attempt: int,
    *,
    backoff_base: float,
    backoff_max: float,
) -> float:
    # Exponential backoff with jitter
    base = backoff_base * (2 ** max(0, attempt - 1))
    jitter = random.uniform(0, backoff_base)
    return min(backoff_max, base + jitter)


def http_get_with_retries(
    url: str,
    *,
    params: Optional[Mapping[str, str | int]] = None,
    headers: Optional[Mapping[str, str]] = None,
    session: Optional[requests.Session] = None,
    timeout: float = 10,
    max_attempts: int = 1,
    backoff_base: float = 0.5,
    backoff_max: float = 8.0,
    status_forcelist: Sequence[int] = TRANSIENT_STATUS_CODES,
) -> requests.Response:
    """
    Perform a GET with a bounded timeout and an optional retry budget.

    With the default ``max_attempts=1`` this is a single request. Transient
    failures are:
    - connection/timeout errors raised by requests
    - HTTP status in `status_forcelist` (e.g., 429/5xx)

    Returns the response for any other status (caller decides how to read it).
    Raises NetworkError once the attempts are exhausted on transient failures.
    Any other requests error is raised as NetworkError straight away.
    """
    http = session if session is not None else requests
    attempt = 0
    last_error = "no attempt made"
    while attempt < max(1, max_attempts):
        attempt += 1
        try:
            resp = http.get(url, params=params, headers=headers, timeout=timeout)
        except (
            requests.exceptions.Timeout,
            requests.exceptions.ConnectionError,
            requests.exceptions.ChunkedEncodingError,
        ) as exc:
            last_error = f"{type(exc).__name__}: {exc}"
        except requests.exceptions.RequestException as exc:
            # Redirect loops, bad headers, undecodable bodies: retrying will not help.
            raise NetworkError(f"GET {url} failed: {type(exc).__name__}: {exc}") from exc
        else:
            if resp.status_code not in status_forcelist:
                return resp
            last_error = f"HTTP {resp.status_code}"
            retry_after = resp.headers.get("Retry-After")
            if retry_after is not None and attempt < max_attempts:
                try:
                    time.sleep(min(backoff_max, float(retry_after)))
                    continue
                except ValueError:
                    pass

        if attempt < max_attempts:
            sleep_sec = _compute_sleep_seconds(
                attempt, backoff_base=backoff_base, backoff_max=backoff_max
            )
            logger.debug(
                "GET %s failed (%s), retrying in %.2fs (attempt %d/%d)",
                url, last_error, sleep_sec, attempt, max_attempts,
            )
            time.sleep(sleep_sec)

    raise NetworkError(f"GET {url} failed after {attempt} attempt(s): {last_error}")


__all__ = ["TRANSIENT_STATUS_CODES", "http_get_with_retries"]
