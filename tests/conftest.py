from __future__ import annotations

from typing import Any, Dict, List, Optional

import pytest

from ingestion_api.world_bank_indicator import STATUS_OK, IndicatorRecord

LIFE_EXPECTANCY = "SP.DYN.LE00.IN"


def wb_payload(code: str, year: int, value: Optional[float]) -> List[Any]:
    """A World Bank v2 JSON answer with a single observation."""
    return [
        {
            "page": 1,
            "pages": 1,
            "per_page": 50,
            "total": 1,
            "sourceid": "2",
            "lastupdated": "2024-06-28",
        },
        [
            {
                "indicator": {
                    "id": LIFE_EXPECTANCY,
                    "value": "Life expectancy at birth, total (years)",
                },
                "country": {"id": code[:2], "value": code},
                "countryiso3code": code,
                "date": str(year),
                "value": value,
                "unit": "",
                "obs_status": "",
                "decimal": 1,
            }
        ],
    ]


class FakeResponse:
    def __init__(self, payload: Any = None, status_code: int = 200, *, text: Optional[str] = None) -> None:
        self._payload = payload
        self.status_code = status_code
        self.text = text
        self.headers: Dict[str, str] = {}

    def json(self) -> Any:
        if self.text is not None:
            raise ValueError("No JSON object could be decoded")
        return self._payload


class FakeSession:
    """Stands in for requests.Session; answers are looked up by country code in the URL."""

    def __init__(self, answers: Dict[str, Any]) -> None:
        self.answers = answers
        self.calls: List[Dict[str, Any]] = []

    def get(self, url, params=None, headers=None, timeout=None):
        self.calls.append({"url": url, "params": params, "headers": headers, "timeout": timeout})
        code = url.split("/country/")[1].split("/")[0]
        answer = self.answers[code]
        if isinstance(answer, Exception):
            raise answer
        if isinstance(answer, FakeResponse):
            return answer
        return FakeResponse(answer)


def make_record(code: str, value: Optional[float], year: int = 2019, status: str = STATUS_OK) -> IndicatorRecord:
    return IndicatorRecord(
        country_code=code,
        indicator_code=LIFE_EXPECTANCY,
        year=year,
        value=value,
        status=status,
    )


@pytest.fixture(autouse=True)
def isolated_run_log(tmp_path, monkeypatch):
    """Keep the JSON run log out of the working directory."""
    path = tmp_path / "run_log" / "local_metadata.json"
    monkeypatch.setenv("METADATA_LOCAL_FILE", str(path))
    return path
