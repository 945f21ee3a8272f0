"""Weighted environmental-support means by party and age cohort.

Two binning policies are provided for the cohort part of the key:

* :func:`cap_age` keeps single years of age but collapses everyone aged 85
  or older into 85, so sparse high-age cells do not dominate the chart.
* :func:`cohort_band` maps ages onto four ordered bands (18-38, 39-54,
  55-73, 74+).  Any known age outside the first three bands, including
  ages above 85 or below 18, falls into band 4.

Weighting policy: a record whose survey weight is missing, zero or negative
is excluded from its group's weighted mean.  A group left without any
eligible record is absent from the result rather than reported as NaN.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

import pandas as pd

from .config import AGE_CAP, COHORT_BANDS, COHORT_FALLBACK, PARTIES, VALUE_COL
from .harmonize import coerce_number, ensure_columns

logger = logging.getLogger(__name__)

AggregationKey = Tuple[str, int]
AggregateResult = Dict[AggregationKey, float]
Binning = Callable[[Any], Optional[int]]

REQUIRED_COLUMNS: List[str] = ["party", "age", "env_scale", "weight"]


# ---------------------------------------------------------------------------
# Binning policies
# ---------------------------------------------------------------------------


def cap_age(age: Any) -> Optional[int]:
    """Return the age as an integer, capped at ``AGE_CAP``; ``None`` if unknown."""
    number = coerce_number(age)
    if number is None:
        return None
    return int(min(number, AGE_CAP))


def cohort_band(age: Any) -> Optional[int]:
    """Return the cohort band label (1-4) for an age; ``None`` if unknown."""
    number = coerce_number(age)
    if number is None:
        return None
    for low, high, label in COHORT_BANDS:
        if low <= number <= high:
            return label
    return COHORT_FALLBACK


# ---------------------------------------------------------------------------
# Weighted means
# ---------------------------------------------------------------------------


def weighted_mean(
    values: Iterable[float], weights: Iterable[Optional[float]]
) -> Optional[float]:
    """Weighted arithmetic mean that skips missing and non-positive weights.

    Returns ``None`` when no pair has a usable weight.
    """
    total = 0.0
    weight_sum = 0.0
    for value, weight in zip(values, weights):
        w = coerce_number(weight)
        if w is None or w <= 0:
            continue
        total += float(value) * w
        weight_sum += w
    if weight_sum == 0:
        return None
    return total / weight_sum


def _weighted_mean_frame(df: pd.DataFrame, keys: List[str]) -> pd.DataFrame:
    """Group ``df`` by ``keys`` and compute the weighted mean of ``env_scale``."""
    weights = pd.to_numeric(df["weight"], errors="coerce")
    # Only rows with a positive weight take part; others drop out of the group
    mask = weights.notna() & (weights > 0)
    tmp = df.loc[mask, keys].copy()
    tmp["w"] = weights[mask]
    tmp["wx"] = df.loc[mask, "env_scale"].astype(float) * tmp["w"]

    excluded = int((~mask).sum())
    if excluded:
        logger.info("Excluded %d records without a positive survey weight", excluded)

    grouped = tmp.groupby(keys, as_index=False)[["wx", "w"]].sum()
    grouped[VALUE_COL] = grouped["wx"] / grouped["w"]
    return grouped.drop(columns=["wx", "w"])


# ---------------------------------------------------------------------------
# Aggregation views
# ---------------------------------------------------------------------------


def aggregate(pooled: pd.DataFrame, binning: Binning) -> AggregateResult:
    """Weighted mean ``env_scale`` for each (party, cohort) group.

    Parameters
    ----------
    pooled : pd.DataFrame
        Pooled normalized dataset (output of :func:`merge.merge_waves`).
    binning : Callable
        Maps an age to a cohort key, e.g. :func:`cap_age` or
        :func:`cohort_band`.  Must return ``None`` for unknown ages.

    Returns
    -------
    AggregateResult
        ``{(party, cohort): weighted_mean}``.  Records with unknown party or
        age are skipped, and groups with no positively weighted record are
        absent.

    Raises
    ------
    KeyError
        If ``pooled`` lacks one of the columns needed for aggregation.
    """
    ensure_columns(pooled, REQUIRED_COLUMNS)
    df = pooled.loc[pooled["party"].notna(), REQUIRED_COLUMNS].copy()
    df["cohort"] = df["age"].map(binning)
    df = df[df["cohort"].notna()].copy()
    df["cohort"] = df["cohort"].astype(int)

    grouped = _weighted_mean_frame(df, ["party", "cohort"])
    return {
        (str(party), int(cohort)): float(value)
        for party, cohort, value in grouped.itertuples(index=False, name=None)
    }


def aggregate_by_party(pooled: pd.DataFrame) -> Dict[str, float]:
    """Weighted mean ``env_scale`` per party, regardless of age."""
    ensure_columns(pooled, REQUIRED_COLUMNS)
    df = pooled.loc[pooled["party"].notna(), REQUIRED_COLUMNS]
    grouped = _weighted_mean_frame(df, ["party"])
    return {
        str(party): float(value)
        for party, value in grouped.itertuples(index=False, name=None)
    }


def result_to_frame(
    result: AggregateResult, *, value_col: str = VALUE_COL
) -> pd.DataFrame:
    """Tabulate an :data:`AggregateResult` as ``party, cohort, value_col``.

    Rows are sorted by party (Democrat, Independent, Republican) and then
    by cohort so that repeated runs render identically.
    """
    rows = sorted(
        ((party, cohort, value) for (party, cohort), value in result.items()),
        key=lambda row: (PARTIES.index(row[0]), row[1]),
    )
    return pd.DataFrame(rows, columns=["party", "cohort", value_col])
