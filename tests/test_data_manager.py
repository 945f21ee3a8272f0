import logging

import pandas as pd
import pytest

from env_cohorts import data_manager, pipeline


@pytest.fixture
def counting_pipeline(monkeypatch, raw_waves):
    calls = {"n": 0}
    real_run = pipeline.run_pipeline

    def fake_run_pipeline(sources=None, **kwargs):
        calls["n"] += 1
        return real_run(raw_waves, **kwargs)

    monkeypatch.setattr(pipeline, "run_pipeline", fake_run_pipeline)
    data_manager._compute_pipeline_payload.cache_clear()
    yield calls
    data_manager._compute_pipeline_payload.cache_clear()


def test_cache_paths_are_versioned(tmp_path):
    paths = data_manager.cache_paths(tmp_path)
    assert paths["by_cohort"] == tmp_path / f"by_cohort_{data_manager.CACHE_VERSION}.csv"
    assert set(paths) == set(data_manager.TABLES)


def test_load_payload_writes_then_reads_cache(tmp_path, counting_pipeline):
    computed = data_manager.load_payload(cache_dir=tmp_path)
    assert counting_pipeline["n"] == 1
    assert all(path.exists() for path in data_manager.cache_paths(tmp_path).values())

    data_manager._compute_pipeline_payload.cache_clear()
    cached = data_manager.load_payload(cache_dir=tmp_path)
    assert counting_pipeline["n"] == 1

    assert cached["waves"] == computed["waves"]
    assert cached["failed_waves"] == {}
    pd.testing.assert_frame_equal(cached["by_cohort"], computed["by_cohort"])
    assert len(cached["pooled"]) == len(computed["pooled"])


def test_force_recompute_ignores_cache(tmp_path, counting_pipeline):
    data_manager.load_payload(cache_dir=tmp_path)
    data_manager.load_payload(force_recompute=True, cache_dir=tmp_path)
    assert counting_pipeline["n"] == 2


def test_failed_waves_survive_the_cache(tmp_path):
    payload = {
        "pooled": pd.DataFrame(),
        "waves": [2016, 2020],
        "failed_waves": {2018: "KeyError: missing"},
    }
    meta = data_manager._meta_frame(payload)
    path = tmp_path / "meta.csv"
    data_manager._atomic_to_csv(meta, path)

    tables = {
        "pooled": pd.DataFrame(),
        "by_age": pd.DataFrame(),
        "by_cohort": pd.DataFrame(),
        "by_party": pd.DataFrame(),
        "meta": pd.read_csv(path),
    }
    restored = data_manager._payload_from_tables(tables)
    assert restored["waves"] == [2016, 2020]
    assert restored["failed_waves"] == {2018: "KeyError: missing"}


def test_payload_with_failed_waves_is_not_cached(tmp_path, monkeypatch, raw_waves):
    available = {2016: raw_waves[2016], 2020: raw_waves[2020]}
    calls = {"n": 0}
    real_run = pipeline.run_pipeline

    def fake_run_pipeline(sources=None, **kwargs):
        calls["n"] += 1
        return real_run(dict(available), **kwargs)

    monkeypatch.setattr(pipeline, "run_pipeline", fake_run_pipeline)
    data_manager._compute_pipeline_payload.cache_clear()

    # 2018 has not arrived yet
    available[2018] = tmp_path / "missing_2018.csv"
    first = data_manager.load_payload(cache_dir=tmp_path)
    assert list(first["failed_waves"]) == [2018]
    assert not any(path.exists() for path in data_manager.cache_paths(tmp_path).values())

    available[2018] = raw_waves[2018]
    second = data_manager.load_payload(cache_dir=tmp_path)
    assert calls["n"] == 2
    assert second["failed_waves"] == {}
    assert second["waves"] == [2016, 2018, 2020]
    assert all(path.exists() for path in data_manager.cache_paths(tmp_path).values())
    data_manager._compute_pipeline_payload.cache_clear()


def test_cached_payload_with_failed_waves_is_recomputed(tmp_path, counting_pipeline):
    paths = data_manager.cache_paths(tmp_path)
    stale = {
        "pooled": pd.DataFrame(),
        "waves": [2016, 2020],
        "failed_waves": {2018: "FileNotFoundError: missing"},
    }
    for name in ("pooled", "by_age", "by_cohort", "by_party"):
        data_manager._atomic_to_csv(pd.DataFrame({"party": ["Democrat"]}), paths[name])
    data_manager._atomic_to_csv(data_manager._meta_frame(stale), paths["meta"])

    payload = data_manager.load_payload(cache_dir=tmp_path)
    assert counting_pipeline["n"] == 1
    assert payload["failed_waves"] == {}
    assert payload["waves"] == [2016, 2018, 2020]


def test_try_load_payload_without_any_wave(tmp_path, monkeypatch, raw_waves, caplog):
    real_run = pipeline.run_pipeline
    monkeypatch.setattr(
        pipeline,
        "run_pipeline",
        lambda sources=None, **kwargs: real_run({1999: raw_waves[2016]}, **kwargs),
    )
    data_manager._compute_pipeline_payload.cache_clear()

    with pytest.raises(ValueError, match="No survey wave"):
        data_manager.load_payload(cache_dir=tmp_path)
    with caplog.at_level(logging.WARNING, logger="env_cohorts.data_manager"):
        assert data_manager.try_load_payload(cache_dir=tmp_path) is None
    assert "No pipeline payload available" in caplog.text
    data_manager._compute_pipeline_payload.cache_clear()
