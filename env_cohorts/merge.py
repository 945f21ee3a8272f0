"""Pool normalized survey waves into a single dataset."""

from __future__ import annotations

import logging
from collections import abc
from typing import Iterable, List, Mapping, Union

import pandas as pd

from .config import NORMALIZED_COLUMNS
from .harmonize import (
    NormalizedRecord,
    empty_frame,
    ensure_columns,
    party_column,
    records_to_frame,
)

logger = logging.getLogger(__name__)

WaveTable = Union[pd.DataFrame, Iterable[NormalizedRecord]]


def _as_frame(wave: WaveTable) -> pd.DataFrame:
    if isinstance(wave, pd.DataFrame):
        ensure_columns(wave, NORMALIZED_COLUMNS)
        return wave[NORMALIZED_COLUMNS]
    return records_to_frame(wave)


def merge_waves(
    waves: Union[Mapping[int, WaveTable], Iterable[WaveTable]],
) -> pd.DataFrame:
    """Concatenate per-wave normalized tables into the pooled dataset.

    Parameters
    ----------
    waves : Mapping[int, WaveTable] or Iterable[WaveTable]
        One normalized collection per wave, either a DataFrame produced by
        :func:`harmonize.harmonize_wave` or an iterable of
        :class:`NormalizedRecord`.  When a mapping is given its values are
        used.

    Returns
    -------
    pd.DataFrame
        Every input row exactly once, in the normalized column order, with a
        fresh ``RangeIndex``.  Respondents are not de-duplicated across
        waves.  An empty input yields an empty normalized table.
    """
    if isinstance(waves, abc.Mapping):
        waves = waves.values()

    frames: List[pd.DataFrame] = [_as_frame(wave) for wave in waves]
    frames = [frame for frame in frames if not frame.empty]
    if not frames:
        return empty_frame()

    pooled = pd.concat(frames, ignore_index=True)
    pooled["party"] = party_column(pooled["party"])
    logger.info("Pooled %d waves into %d respondents", len(frames), len(pooled))
    return pooled
