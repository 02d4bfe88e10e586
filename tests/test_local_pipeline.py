import numpy as np
import pandas as pd
import pytest

from adapters import LocalStorageAdapter
from common.exceptions import NetworkError, PrimaryDatasetError
from local_pipeline import MERGED_OUTPUT_KEY, run_local_pipeline
from metadata import INDICATOR_MERGE_SCOPE, get_last_run
from settings import PipelineSettings

from conftest import make_record

VALUES = {"PRT": 81.1, "DEU": 81.3}


def fetcher(key, indicator_code, year):
    if key == "ESP":
        raise NetworkError("read timed out", country_code=key)
    return make_record(key, VALUES.get(key), year=year)


@pytest.fixture
def primary_csv(tmp_path):
    n = 30
    df = pd.DataFrame(
        {
            "Marital status": [1] * n,
            "Nacionality": [i % 3 + 1 for i in range(n)],
            "Gender": [i % 2 for i in range(n)],
            "Age at enrollment": [18 + i for i in range(n)],
            "Target": ["Dropout" if i % 2 == 0 else "Graduate" for i in range(n)],
        }
    )
    path = tmp_path / "dataset.csv"
    df.to_csv(path, sep=";", index=False)
    return path


@pytest.fixture
def settings(tmp_path, primary_csv):
    return PipelineSettings(
        country_keys=("PRT", "DEU", "ESP"),
        primary_dataset_path=primary_csv,
        output_dir=tmp_path / "out",
    )


def test_pipeline_writes_merged_dataset(settings, primary_csv):
    artefacts = run_local_pipeline(settings, fetcher=fetcher)

    merged_path = settings.output_dir / MERGED_OUTPUT_KEY
    assert artefacts["merged"] == [merged_path]
    merged = pd.read_csv(merged_path, sep=";")
    primary = pd.read_csv(primary_csv, sep=";")

    assert len(merged) == len(primary)
    pd.testing.assert_frame_equal(merged.drop(columns=["life_expectancy"]), primary)
    expected = primary["Nacionality"].map({1: 81.1, 2: 81.3, 3: np.nan})
    np.testing.assert_allclose(merged["life_expectancy"].to_numpy(), expected.to_numpy())

    table = pd.read_csv(artefacts["indicator_table"][0])
    assert table["country_code"].tolist() == ["PRT", "DEU", "ESP"]
    assert table["nationality_id"].tolist() == [1, 2, 3]
    assert table["status"].tolist() == ["ok", "ok", "failed"]

    assert all(p.exists() for p in artefacts["analysis"])

    run = get_last_run(INDICATOR_MERGE_SCOPE)
    assert run["status"] == "SUCCESS"
    assert run["rows_processed"] == 30
    assert run["failed_keys"] == ["ESP"]
    assert run["missing_keys"] == ["ESP"]
    assert run["parameters"]["country_keys"] == ["PRT", "DEU", "ESP"]


def test_pipeline_skip_analysis(settings):
    artefacts = run_local_pipeline(settings, fetcher=fetcher, skip_analysis=True)
    assert "analysis" not in artefacts
    assert not (settings.output_dir / "analysis").exists()


def test_pipeline_failure_writes_nothing_and_logs_failed_run(settings, tmp_path):
    broken = settings.with_overrides(primary_dataset_path=tmp_path / "missing.csv")
    calls = []

    def tracking_fetcher(key, indicator_code, year):
        calls.append(key)
        return fetcher(key, indicator_code, year)

    with pytest.raises(PrimaryDatasetError):
        run_local_pipeline(broken, fetcher=tracking_fetcher)

    assert calls == []
    assert not (settings.output_dir / MERGED_OUTPUT_KEY).exists()
    run = get_last_run(INDICATOR_MERGE_SCOPE)
    assert run["status"] == "FAILED"
    assert "missing.csv" in run["error_message"]


def test_merged_file_keeps_primary_cells_verbatim(settings, tmp_path):
    lines = [
        "Nacionality;Grade;Code;Note",
        "1;12.50;007;NA",
        "2;13.0;010;",
        "3;9.75;042;n/a",
        "1;0.10;000;null",
    ]
    path = tmp_path / "verbatim.csv"
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")

    run_local_pipeline(
        settings.with_overrides(primary_dataset_path=path), fetcher=fetcher, skip_analysis=True
    )

    out = (settings.output_dir / MERGED_OUTPUT_KEY).read_text(encoding="utf-8").splitlines()
    assert out == [
        "Nacionality;Grade;Code;Note;life_expectancy",
        "1;12.50;007;NA;81.1",
        "2;13.0;010;;81.3",
        "3;9.75;042;n/a;",
        "1;0.10;000;null;81.1",
    ]


def test_all_artefacts_go_through_given_storage(settings, tmp_path):
    storage = LocalStorageAdapter(tmp_path / "elsewhere")
    artefacts = run_local_pipeline(settings, storage=storage, fetcher=fetcher)

    analysis_dir = tmp_path / "elsewhere" / "analysis"
    assert artefacts["analysis"]
    assert all(p.parent == analysis_dir and p.exists() for p in artefacts["analysis"])
    assert (tmp_path / "elsewhere" / MERGED_OUTPUT_KEY).exists()
    assert not settings.output_dir.exists()
