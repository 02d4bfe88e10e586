import pandas as pd
import pytest

from adapters import LocalStorageAdapter


def test_write_and_read_csv_roundtrip_with_separator(tmp_path):
    storage = LocalStorageAdapter(tmp_path)
    df = pd.DataFrame({"Nacionality": [1, 2], "life_expectancy": [81.1, None]})

    location = storage.write_csv(df, "merged/out.csv", sep=";")

    assert location == str(tmp_path / "merged" / "out.csv")
    assert (tmp_path / "merged" / "out.csv").read_text().splitlines()[0] == "Nacionality;life_expectancy"
    loaded = storage.read_csv("merged/out.csv", sep=";")
    pd.testing.assert_frame_equal(loaded, df)


def test_failed_write_keeps_previous_file_and_leaves_no_temp(tmp_path, monkeypatch):
    storage = LocalStorageAdapter(tmp_path)
    storage.write_raw("merged/out.csv", b"previous")

    def failing_replace(src, dst):
        raise OSError("disk full")

    monkeypatch.setattr("adapters.storage.os.replace", failing_replace)
    with pytest.raises(OSError):
        storage.write_raw("merged/out.csv", b"new content")

    assert storage.read_raw("merged/out.csv") == b"previous"
    assert [p.name for p in (tmp_path / "merged").iterdir()] == ["out.csv"]


def test_exists(tmp_path):
    storage = LocalStorageAdapter(tmp_path)
    assert not storage.exists("a/b.csv")
    storage.write_raw("a/b.csv", b"x")
    assert storage.exists("a/b.csv")
