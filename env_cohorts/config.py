"""
Configuration constants for the environmental-attitudes cohort pipeline.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Tuple

# ======================================================
#  DATA SOURCES / CONSTANTS
# ======================================================
SURVEY_DATA_DIR: Path = Path(
    os.getenv("SURVEY_DATA_DIR", Path(__file__).resolve().parent.parent / "data")
).expanduser()


@dataclass(frozen=True)
class WaveConfig:
    """Raw field names and supportive codes for one survey wave."""

    birth_year_field: str
    party_field: str
    state_field: str
    weight_field: str
    # Exactly four (field, supportive code) pairs, in env_1..env_4 order
    env_fields: Tuple[Tuple[str, int], ...]

    def __post_init__(self) -> None:
        if len(self.env_fields) != 4:
            raise ValueError(
                f"Expected exactly 4 environmental fields, got {len(self.env_fields)}."
            )

    @property
    def columns(self) -> List[str]:
        return [
            self.birth_year_field,
            self.party_field,
            self.state_field,
            self.weight_field,
            *(field for field, _ in self.env_fields),
        ]


# Supported waves. Support=1 / Oppose=2 unless noted; the 2020 Paris item is
# pro-environment when opposed.
WAVES: Dict[int, WaveConfig] = {
    2016: WaveConfig(
        birth_year_field="birthyr",
        party_field="pid7",
        state_field="inputstate",
        weight_field="commonweight",
        env_fields=(
            ("CC16_333a", 1),  # EPA regulates carbon dioxide
            ("CC16_333b", 1),  # raise fuel efficiency standards
            ("CC16_333c", 1),  # minimum renewable fuel requirement
            ("CC16_333d", 1),  # strengthen Clean Air / Clean Water enforcement
        ),
    ),
    2018: WaveConfig(
        birth_year_field="birthyr",
        party_field="pid7",
        state_field="inputstate",
        weight_field="commonweight",
        env_fields=(
            ("CC18_415a", 1),
            ("CC18_415b", 1),
            ("CC18_415c", 1),
            ("CC18_415d", 1),
        ),
    ),
    2020: WaveConfig(
        birth_year_field="birthyr",
        party_field="pid7",
        state_field="inputstate",
        weight_field="commonweight",
        env_fields=(
            ("CC20_333a", 1),
            ("CC20_333b", 1),
            ("CC20_333c", 1),
            ("CC20_333d", 2),  # withdraw from the Paris agreement
        ),
    ),
}

WAVE_FILES: Dict[int, Path] = {
    2016: SURVEY_DATA_DIR / "CCES16_Common_OUTPUT_Feb2018_VV.dta",
    2018: SURVEY_DATA_DIR / "cces18_common_vv.dta",
    2020: SURVEY_DATA_DIR / "CES20_Common_OUTPUT_vv.dta",
}

# ======================================================
#  HARMONIZED SCHEMA / POLICIES
# ======================================================
DEMOCRAT: str = "Democrat"
INDEPENDENT: str = "Independent"
REPUBLICAN: str = "Republican"
PARTIES: List[str] = [DEMOCRAT, INDEPENDENT, REPUBLICAN]

# 7-point party identification scale
PARTY_CODES: Dict[int, str] = {
    1: DEMOCRAT,
    2: DEMOCRAT,
    3: DEMOCRAT,
    4: INDEPENDENT,
    5: REPUBLICAN,
    6: REPUBLICAN,
    7: REPUBLICAN,
}

ENV_COLUMNS: List[str] = ["env_1", "env_2", "env_3", "env_4"]
NORMALIZED_COLUMNS: List[str] = [
    "year",
    "state_fips",
    "age",
    "party",
    *ENV_COLUMNS,
    "env_scale",
    "weight",
]

AGE_CAP: int = 85

# Inclusive (low, high, label) bands, evaluated in order
COHORT_BANDS: List[Tuple[int, int, int]] = [
    (18, 38, 1),
    (39, 54, 2),
    (55, 73, 3),
]
COHORT_FALLBACK: int = 4

VALUE_COL: str = "weighted_mean_env_scale"

# ======================================================
#  UI DEFAULTS
# ======================================================
VIEW_OPTIONS: List[Tuple[str, str]] = [
    ("Age (capped at 85)", "by_age"),
    ("Age cohort bands", "by_cohort"),
]
DEFAULT_VIEW: str = "by_cohort"

COHORT_LABELS: Dict[int, str] = {
    1: "18-38",
    2: "39-54",
    3: "55-73",
    4: "74+",
}

PARTY_COLORS: Dict[str, str] = {
    DEMOCRAT: "#1f77b4",
    INDEPENDENT: "#9467bd",
    REPUBLICAN: "#d62728",
}
