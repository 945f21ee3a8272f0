"""Core pipeline logic: pool survey waves and aggregate by party and cohort.

This module sequences the three stages of the analysis:

* Loading each wave's raw table (Stata ``.dta`` or CSV) and harmonizing it
  with :func:`harmonize.harmonize_wave`.
* Pooling the normalized waves with :func:`merge.merge_waves`.
* Aggregating weighted mean environmental support by party and age, once
  with single years of age capped at 85 and once with the four cohort
  bands.

The primary entry point is :func:`run_pipeline`.  A wave that cannot be
loaded or harmonized is reported under ``"failed_waves"`` and the remaining
waves are still processed; a cohort without data is simply absent from the
aggregate tables.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Dict, Mapping, Optional, Tuple, Union

import pandas as pd

from .aggregate import (
    aggregate,
    aggregate_by_party,
    cap_age,
    cohort_band,
    result_to_frame,
)
from .config import VALUE_COL, WAVE_FILES
from .harmonize import harmonize_wave
from .merge import merge_waves

# Module-level logger
logger = logging.getLogger(__name__)

WaveSource = Union[str, Path, pd.DataFrame]


# ---------------------------------------------------------------------------
# Data loaders
# ---------------------------------------------------------------------------


def load_wave(source: WaveSource) -> pd.DataFrame:
    """Load one wave's raw table.

    Parameters
    ----------
    source : str, Path or pd.DataFrame
        Path to a Stata ``.dta`` file or a CSV file.  A DataFrame is
        returned unchanged, which lets callers pass tables they already hold
        in memory.

    Returns
    -------
    pd.DataFrame
        The raw wave table.  Stata value labels are not applied, so coded
        answers stay numeric.
    """
    if isinstance(source, pd.DataFrame):
        return source
    path = Path(source)
    if path.suffix.lower() == ".dta":
        return pd.read_stata(path, convert_categoricals=False)
    return pd.read_csv(path, low_memory=False)


def harmonize_sources(
    sources: Mapping[int, WaveSource],
    *,
    loader: Callable[[WaveSource], pd.DataFrame] = load_wave,
    strict: bool = False,
) -> Tuple[Dict[int, pd.DataFrame], Dict[int, str]]:
    """Load and harmonize every wave independently.

    Parameters
    ----------
    sources : Mapping[int, WaveSource]
        Wave identifier to raw source.
    loader : Callable, optional
        Function turning a source into a raw DataFrame.  Defaults to
        :func:`load_wave`.
    strict : bool, optional
        If ``True``, the first failing wave raises.  Otherwise failures are
        logged and collected.

    Returns
    -------
    Tuple[Dict[int, pd.DataFrame], Dict[int, str]]
        Normalized tables by wave and error messages by failed wave.
    """
    normalized: Dict[int, pd.DataFrame] = {}
    failures: Dict[int, str] = {}
    for wave in sorted(sources, key=str):
        try:
            raw = loader(sources[wave])
            normalized[wave] = harmonize_wave(wave, raw)
        except (KeyError, ValueError, OSError) as exc:
            if strict:
                raise
            failures[wave] = f"{type(exc).__name__}: {exc}"
            logger.warning("Skipping wave %s: %s", wave, failures[wave])
    return normalized, failures


# ---------------------------------------------------------------------------
# Driver
# ---------------------------------------------------------------------------


def run_pipeline(
    sources: Optional[Mapping[int, WaveSource]] = None,
    *,
    strict: bool = False,
) -> Dict[str, object]:
    """Run the full pipeline and return the pooled data and aggregate views.

    Parameters
    ----------
    sources : Mapping[int, WaveSource], optional
        Wave identifier to raw source.  Defaults to
        ``config.WAVE_FILES``.
    strict : bool, optional
        Propagate the first wave failure instead of skipping the wave.

    Returns
    -------
    Dict[str, object]
        ``"pooled"``: the pooled normalized DataFrame.
        ``"by_age"`` / ``"by_cohort"``: DataFrames with columns ``party``,
        ``cohort`` and ``weighted_mean_env_scale`` for the capped-age and
        cohort-band views.
        ``"by_party"``: DataFrame with columns ``party`` and
        ``weighted_mean_env_scale``.
        ``"waves"``: the waves that were pooled.
        ``"failed_waves"``: error message per wave that could not be used.

    Raises
    ------
    ValueError
        If no wave could be harmonized.
    """
    if sources is None:
        sources = WAVE_FILES

    # 1. Load and harmonize each wave on its own
    normalized, failures = harmonize_sources(sources, strict=strict)
    if not normalized:
        raise ValueError(f"No survey wave could be harmonized: {failures}")

    # 2. Pool
    pooled = merge_waves(normalized)

    # 3. Aggregate
    by_age = result_to_frame(aggregate(pooled, cap_age))
    by_cohort = result_to_frame(aggregate(pooled, cohort_band))
    by_party = pd.DataFrame(
        sorted(aggregate_by_party(pooled).items()), columns=["party", VALUE_COL]
    )
    logger.info(
        "Aggregated %d respondents: %d age cells, %d cohort cells",
        len(pooled),
        len(by_age),
        len(by_cohort),
    )

    return {
        "pooled": pooled,
        "by_age": by_age,
        "by_cohort": by_cohort,
        "by_party": by_party,
        "waves": sorted(normalized),
        "failed_waves": failures,
    }
