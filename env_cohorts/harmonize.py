"""Harmonize survey waves into a common respondent schema.

Each supported wave ships its own variable names and answer codes.  The
functions here translate one wave's raw rows into the normalized schema
described by :data:`config.NORMALIZED_COLUMNS`:

* ``party`` collapses the 7-point party identification scale into
  Democrat / Independent / Republican (or ``None``).
* ``env_1`` .. ``env_4`` flag whether the respondent gave the wave's
  pro-environment answer to each of the four policy questions, and
  ``env_scale`` counts them.
* ``age`` is the survey year minus the reported birth year.

Malformed values never raise: they fall back to a non-matching indicator or
an absent ``age`` / ``party`` / ``weight``.  Only an unknown wave identifier
(:class:`UnsupportedWaveError`) or a table missing a configured column
(``KeyError``) is treated as an error.
"""

from __future__ import annotations

import logging
import math
from dataclasses import asdict, dataclass
from typing import Any, Iterable, List, Mapping, Optional

import numpy as np
import pandas as pd

from .config import (
    ENV_COLUMNS,
    NORMALIZED_COLUMNS,
    PARTIES,
    PARTY_CODES,
    WAVES,
    WaveConfig,
)

logger = logging.getLogger(__name__)


class UnsupportedWaveError(KeyError):
    """Raised when a wave identifier has no entry in ``config.WAVES``."""

    def __init__(self, wave: Any) -> None:
        super().__init__(wave)
        self.wave = wave

    def __str__(self) -> str:
        return f"Unsupported survey wave {self.wave!r}; expected one of {sorted(WAVES)}"


@dataclass(frozen=True)
class NormalizedRecord:
    year: int
    state_fips: Optional[float]
    age: Optional[float]
    party: Optional[str]
    env_1: int
    env_2: int
    env_3: int
    env_4: int
    env_scale: int
    weight: Optional[float]

    def __post_init__(self) -> None:
        indicators = (self.env_1, self.env_2, self.env_3, self.env_4)
        if any(value not in (0, 1) for value in indicators):
            raise ValueError(f"Indicators must be 0 or 1, got {indicators}")
        if self.env_scale != sum(indicators):
            raise ValueError(
                f"env_scale {self.env_scale} does not equal indicator sum {sum(indicators)}"
            )
        if self.party is not None and self.party not in PARTIES:
            raise ValueError(f"Unknown party label {self.party!r}")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def ensure_columns(df: pd.DataFrame, required: List[str]) -> None:
    """Raise an error if the DataFrame lacks any of the required columns."""
    missing = [col for col in required if col not in df.columns]
    if missing:
        raise KeyError(f"Missing expected columns: {missing}")


def party_column(series: pd.Series) -> pd.Series:
    """Return party labels as an object column with ``None`` for unknown party.

    Newer pandas infers a string dtype for label columns, which stores a
    missing label as ``nan``; the normalized schema uses ``None``.
    """
    labels = [value if isinstance(value, str) else None for value in series]
    return pd.Series(labels, index=series.index, dtype=object, name=series.name)


def coerce_number(value: Any) -> Optional[float]:
    """Coerce a raw coded answer to a finite float, or ``None``."""
    if value is None or isinstance(value, (bool, np.bool_)):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return number


def get_wave_config(wave: Any) -> WaveConfig:
    """Return the configuration for ``wave`` or raise :class:`UnsupportedWaveError`."""
    try:
        return WAVES[wave]
    except (KeyError, TypeError):
        raise UnsupportedWaveError(wave) from None


# ---------------------------------------------------------------------------
# Field policies
# ---------------------------------------------------------------------------


def classify_party(code: Any) -> Optional[str]:
    """Map a 7-point party identification code to a party label.

    Codes 1-3 are Democrats, 4 Independents and 5-7 Republicans.  Anything
    else (missing, "not sure", out-of-range or non-numeric) is ``None``.
    The mapping is the same for every wave.
    """
    number = coerce_number(code)
    if number is None or not number.is_integer():
        return None
    return PARTY_CODES.get(int(number))


def derive_indicator(value: Any, supportive_code: int) -> int:
    """Return 1 when ``value`` equals the supportive code, otherwise 0."""
    number = coerce_number(value)
    return int(number is not None and number == supportive_code)


def derive_age(wave_year: int, birth_year: Any) -> Optional[float]:
    """Age at the time of the survey.

    ``None`` for missing, non-integral or impossible (future) birth years, so
    every known age is a whole number of years.
    """
    number = coerce_number(birth_year)
    if number is None or not number.is_integer() or number > wave_year:
        return None
    return float(wave_year - number)


# ---------------------------------------------------------------------------
# Harmonizers
# ---------------------------------------------------------------------------


def harmonize_record(wave: Any, raw: Mapping[str, Any]) -> NormalizedRecord:
    """Normalize a single respondent's raw answers.

    Parameters
    ----------
    wave : int
        Survey year identifying the wave configuration.
    raw : Mapping[str, Any]
        Raw coded answers keyed by the wave's variable names.  Absent keys
        are treated as missing answers.

    Returns
    -------
    NormalizedRecord
        The respondent in the common schema.

    Raises
    ------
    UnsupportedWaveError
        If ``wave`` is not configured.  Nothing is read from ``raw`` first.
    """
    config = get_wave_config(wave)

    indicators = [
        derive_indicator(raw.get(field), code) for field, code in config.env_fields
    ]
    return NormalizedRecord(
        year=int(wave),
        state_fips=coerce_number(raw.get(config.state_field)),
        age=derive_age(wave, raw.get(config.birth_year_field)),
        party=classify_party(raw.get(config.party_field)),
        env_1=indicators[0],
        env_2=indicators[1],
        env_3=indicators[2],
        env_4=indicators[3],
        env_scale=sum(indicators),
        weight=coerce_number(raw.get(config.weight_field)),
    )


def harmonize_wave(wave: Any, raw: pd.DataFrame) -> pd.DataFrame:
    """Normalize a whole wave table.

    Applies the same field policies as :func:`harmonize_record` column by
    column.

    Parameters
    ----------
    wave : int
        Survey year identifying the wave configuration.
    raw : pd.DataFrame
        The wave's raw table with one row per respondent.

    Returns
    -------
    pd.DataFrame
        A new DataFrame with the :data:`config.NORMALIZED_COLUMNS` schema
        and a fresh ``RangeIndex``.  ``party`` holds ``None`` for unknown
        affiliations; ``age``, ``state_fips`` and ``weight`` hold NaN when
        absent.

    Raises
    ------
    UnsupportedWaveError
        If ``wave`` is not configured.
    KeyError
        If ``raw`` lacks one of the wave's configured columns.
    """
    config = get_wave_config(wave)
    ensure_columns(raw, config.columns)

    df = raw.reset_index(drop=True)
    out = pd.DataFrame(index=df.index)
    out["year"] = int(wave)
    out["state_fips"] = df[config.state_field].map(coerce_number).astype(float)
    out["age"] = (
        df[config.birth_year_field]
        .map(lambda birth: derive_age(wave, birth))
        .astype(float)
    )
    out["party"] = party_column(df[config.party_field].map(classify_party))

    for env_col, (field, code) in zip(ENV_COLUMNS, config.env_fields):
        out[env_col] = (
            df[field].map(lambda value, code=code: derive_indicator(value, code))
            .astype(int)
        )
    out["env_scale"] = out[ENV_COLUMNS].sum(axis=1).astype(int)
    out["weight"] = df[config.weight_field].map(coerce_number).astype(float)

    logger.info(
        "Harmonized wave %s: %d respondents, %d without a party, %d without an age",
        wave,
        len(out),
        int(out["party"].isna().sum()),
        int(out["age"].isna().sum()),
    )
    return out[NORMALIZED_COLUMNS]


def records_to_frame(records: Iterable[NormalizedRecord]) -> pd.DataFrame:
    """Build a normalized table from :class:`NormalizedRecord` objects."""
    rows = [asdict(record) for record in records]
    if not rows:
        return empty_frame()
    df = pd.DataFrame(rows, columns=NORMALIZED_COLUMNS)
    for col in ("state_fips", "age", "weight"):
        df[col] = df[col].astype(float)
    df["party"] = party_column(df["party"])
    return df


def empty_frame() -> pd.DataFrame:
    """An empty table with the normalized schema and dtypes."""
    return pd.DataFrame(
        {
            "year": pd.Series(dtype="int64"),
            "state_fips": pd.Series(dtype=float),
            "age": pd.Series(dtype=float),
            "party": pd.Series(dtype=object),
            **{col: pd.Series(dtype="int64") for col in ENV_COLUMNS},
            "env_scale": pd.Series(dtype="int64"),
            "weight": pd.Series(dtype=float),
        }
    )[NORMALIZED_COLUMNS]
