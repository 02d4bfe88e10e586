"""
Runtime settings for the nationality indicator pipeline.

Values come from environment variables (a local ``.env`` is loaded first,
without overriding variables already set) and can be overridden by the
CLI flags of ``local_pipeline``.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Callable, Mapping, Optional, Tuple, TypeVar

from dotenv import load_dotenv

from common.exceptions import ConfigurationError

T = TypeVar("T")

WORLD_BANK_API_BASE_URL = "https://api.worldbank.org/v2"

# Life expectancy at birth, total (years)
LIFE_EXPECTANCY_INDICATOR = "SP.DYN.LE00.IN"

# ISO3 codes in the order of the dataset's "Nacionality" encoding (1..21):
# Portuguese, German, Spanish, Italian, Dutch, English, Lithuanian, Angolan,
# Cape Verdean, Guinean, Mozambican, Santomean, Turkish, Brazilian, Romanian,
# Moldovan, Mexican, Ukrainian, Russian, Cuban, Colombian.
DEFAULT_NATIONALITY_KEYS: Tuple[str, ...] = (
    "PRT", "DEU", "ESP", "ITA", "NLD", "GBR", "LTU",
    "AGO", "CPV", "GNB", "MOZ", "STP", "TUR", "BRA",
    "ROU", "MDA", "MEX", "UKR", "RUS", "CUB", "COL",
)


def _env(environ: Mapping[str, str], name: str, default: T, cast: Callable[[str], T]) -> T:
    raw = environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return cast(raw.strip())
    except ValueError as exc:
        raise ConfigurationError(f"Invalid value for {name}: {raw!r}") from exc


def _parse_keys(raw: str) -> Tuple[str, ...]:
    keys = tuple(k.strip().upper() for k in raw.split(",") if k.strip())
    if not keys:
        raise ValueError("empty key list")
    return keys


@dataclass(frozen=True)
class PipelineSettings:
    api_base_url: str = WORLD_BANK_API_BASE_URL
    indicator_code: str = LIFE_EXPECTANCY_INDICATOR
    year: int = 2019
    timeout: float = 10.0
    max_attempts: int = 1
    max_workers: int = 1
    country_keys: Tuple[str, ...] = field(default=DEFAULT_NATIONALITY_KEYS)
    primary_dataset_path: Path = Path("data") / "dataset.csv"
    primary_dataset_sep: str = ";"
    nationality_column: str = "Nacionality"
    value_column: str = "life_expectancy"
    target_column: str = "Target"
    output_dir: Path = Path("output")
    log_level: str = "INFO"
    log_file: Optional[str] = None

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        *,
        dotenv_path: Optional[str] = None,
    ) -> "PipelineSettings":
        """
        Build settings from environment variables.

        When ``environ`` is omitted, ``.env`` (or ``dotenv_path``) is loaded
        into ``os.environ`` first.
        """
        if environ is None:
            load_dotenv(dotenv_path, override=False)
            environ = os.environ

        defaults = cls()
        settings = cls(
            api_base_url=_env(environ, "INDICATOR_API_BASE_URL", defaults.api_base_url, str).rstrip("/"),
            indicator_code=_env(environ, "INDICATOR_CODE", defaults.indicator_code, str),
            year=_env(environ, "INDICATOR_YEAR", defaults.year, int),
            timeout=_env(environ, "INDICATOR_TIMEOUT", defaults.timeout, float),
            max_attempts=_env(environ, "INDICATOR_MAX_ATTEMPTS", defaults.max_attempts, int),
            max_workers=_env(environ, "INDICATOR_MAX_WORKERS", defaults.max_workers, int),
            country_keys=_env(environ, "INDICATOR_COUNTRY_KEYS", defaults.country_keys, _parse_keys),
            primary_dataset_path=_env(environ, "PRIMARY_DATASET_PATH", defaults.primary_dataset_path, Path),
            primary_dataset_sep=_env(environ, "PRIMARY_DATASET_SEP", defaults.primary_dataset_sep, str),
            nationality_column=_env(environ, "NATIONALITY_COLUMN", defaults.nationality_column, str),
            value_column=_env(environ, "INDICATOR_VALUE_COLUMN", defaults.value_column, str),
            target_column=_env(environ, "TARGET_COLUMN", defaults.target_column, str),
            output_dir=_env(environ, "OUTPUT_DIR", defaults.output_dir, Path),
            log_level=_env(environ, "LOG_LEVEL", defaults.log_level, str).upper(),
            log_file=_env(environ, "LOG_FILE", defaults.log_file, str),
        )
        settings.validate()
        return settings

    def validate(self) -> None:
        if self.timeout <= 0:
            raise ConfigurationError(f"timeout must be positive, got {self.timeout}")
        if self.max_attempts < 1:
            raise ConfigurationError(f"max_attempts must be >= 1, got {self.max_attempts}")
        if self.max_workers < 1:
            raise ConfigurationError(f"max_workers must be >= 1, got {self.max_workers}")
        if not self.indicator_code:
            raise ConfigurationError("indicator_code must not be empty")

    def with_overrides(self, **overrides) -> "PipelineSettings":
        """Return a copy with the non-None overrides applied (used by the CLI)."""
        values = {k: v for k, v in overrides.items() if v is not None}
        updated = replace(self, **values)
        updated.validate()
        return updated


__all__ = [
    "WORLD_BANK_API_BASE_URL",
    "LIFE_EXPECTANCY_INDICATOR",
    "DEFAULT_NATIONALITY_KEYS",
    "PipelineSettings",
]
