"""Data manager for loading and caching pipeline results.

This module wraps :func:`pipeline.run_pipeline` with a small on-disk
cache so that the dashboard does not re-read and re-harmonize the survey
files on every start.  Cache files carry a version tag; bump
``CACHE_VERSION`` whenever the harmonization or aggregation rules change.
"""

import logging
import os
import tempfile
from functools import lru_cache
from pathlib import Path
from typing import Dict, Optional

import pandas as pd

from . import pipeline

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Cache setup
# ---------------------------------------------------------------------------
CACHE_VERSION: str = "v1"

TABLES = ("pooled", "by_age", "by_cohort", "by_party", "meta")


def _resolve_cache_dir() -> Path:
    """Select a writable directory for caching.

    The lookup order is:

    1. The ``DATA_CACHE_DIR`` environment variable, if set.
    2. A ``data/cache`` folder at the repository root.
    3. A temporary directory.

    The first candidate that accepts a sentinel file is returned.
    """
    candidates: list[Path] = []
    env = os.getenv("DATA_CACHE_DIR")
    if env:
        candidates.append(Path(env).expanduser().resolve())

    candidates.append(Path(__file__).resolve().parent.parent / "data" / "cache")
    candidates.append(Path(tempfile.gettempdir()) / "env_cohorts_cache")

    for path in candidates:
        try:
            path.mkdir(parents=True, exist_ok=True)
            test_file = path / ".write_test"
            test_file.write_text("ok", encoding="utf-8")
            test_file.unlink()
            return path
        except OSError:
            logger.debug("Cache directory %s is not writable", path)

    fallback = Path(tempfile.gettempdir()) / "env_cohorts_cache"
    fallback.mkdir(parents=True, exist_ok=True)
    return fallback


DATA_DIR: Path = _resolve_cache_dir()


def cache_paths(cache_dir: Optional[Path] = None) -> Dict[str, Path]:
    """Versioned cache file per payload table, e.g. ``by_cohort_v1.csv``."""
    base = cache_dir or DATA_DIR
    return {name: base / f"{name}_{CACHE_VERSION}.csv" for name in TABLES}


def _atomic_to_csv(df: pd.DataFrame, path: Path) -> None:
    """Write a DataFrame to CSV atomically via a temporary sibling file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    df.to_csv(tmp_path, index=False)
    tmp_path.replace(path)


def _meta_frame(payload: Dict[str, object]) -> pd.DataFrame:
    rows = [{"wave": wave, "status": "ok", "error": ""} for wave in payload["waves"]]
    rows += [
        {"wave": wave, "status": "failed", "error": message}
        for wave, message in payload["failed_waves"].items()
    ]
    return pd.DataFrame(rows, columns=["wave", "status", "error"])


def _payload_from_tables(tables: Dict[str, pd.DataFrame]) -> Dict[str, object]:
    meta = tables["meta"].fillna({"error": ""})
    ok = meta["status"] == "ok"
    return {
        "pooled": tables["pooled"],
        "by_age": tables["by_age"],
        "by_cohort": tables["by_cohort"],
        "by_party": tables["by_party"],
        "waves": sorted(int(wave) for wave in meta.loc[ok, "wave"]),
        "failed_waves": {
            wave: message
            for wave, message in meta.loc[~ok, ["wave", "error"]].itertuples(
                index=False, name=None
            )
        },
    }


@lru_cache(maxsize=1)
def _compute_pipeline_payload() -> Dict[str, object]:
    """Runs the pipeline against the configured wave files."""
    return pipeline.run_pipeline()


def load_payload(
    force_recompute: bool = False, cache_dir: Optional[Path] = None
) -> Dict[str, object]:
    """
    Load the payload from disk cache if available, otherwise compute and save.

    Parameters
    ----------
    force_recompute : bool, optional
        If ``True``, recompute the pipeline even if cache files exist.
    cache_dir : Path, optional
        Directory holding the cache files.  Defaults to ``DATA_DIR``.

    Returns
    -------
    Dict[str, object]
        The payload as returned by :func:`pipeline.run_pipeline`.  A payload
        with failed waves is returned but never cached, so a wave file that
        appears later is picked up by the next call.
    """
    paths = cache_paths(cache_dir)
    if not force_recompute and all(path.exists() for path in paths.values()):
        logger.info("Loading pipeline output from cache directory %s", paths["meta"].parent)
        try:
            tables = {name: pd.read_csv(path) for name, path in paths.items()}
            cached = _payload_from_tables(tables)
            if not cached["failed_waves"]:
                return cached
            logger.info(
                "Cached payload is missing waves %s; recomputing",
                sorted(cached["failed_waves"]),
            )
        except (OSError, ValueError, KeyError) as exc:
            logger.warning("Error reading cache files: %s; falling back to recompute", exc)

    if force_recompute:
        _compute_pipeline_payload.cache_clear()

    logger.info("Computing pipeline data from the survey waves")
    payload = _compute_pipeline_payload()

    if payload["failed_waves"]:
        # partial results are retried on the next call instead of cached
        _compute_pipeline_payload.cache_clear()
        logger.warning(
            "Not caching a payload with failed waves %s", sorted(payload["failed_waves"])
        )
        return payload

    try:
        for name in ("pooled", "by_age", "by_cohort", "by_party"):
            _atomic_to_csv(payload[name], paths[name])
        _atomic_to_csv(_meta_frame(payload), paths["meta"])
        logger.info("Cache updated in %s", paths["meta"].parent)
    except OSError as exc:
        logger.warning("Could not write cache files: %s", exc)

    return payload


def try_load_payload(**kwargs) -> Optional[Dict[str, object]]:
    """Like :func:`load_payload`, but ``None`` when no survey wave is available."""
    try:
        return load_payload(**kwargs)
    except ValueError as exc:
        logger.warning("No pipeline payload available: %s", exc)
        return None
