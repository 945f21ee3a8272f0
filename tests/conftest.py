import pandas as pd
import pytest

from env_cohorts.config import WAVES


def make_raw_wave(wave, rows):
    """Build a raw wave table from compact row tuples.

    Each row is ``(birth_year, pid7, weight, answers)`` where ``answers``
    holds the four raw environmental codes in configured order.
    """
    config = WAVES[wave]
    records = []
    for i, (birth_year, pid7, weight, answers) in enumerate(rows):
        record = {
            config.birth_year_field: birth_year,
            config.party_field: pid7,
            config.state_field: 6 + i,
            config.weight_field: weight,
        }
        for (field, _), answer in zip(config.env_fields, answers):
            record[field] = answer
        records.append(record)
    return pd.DataFrame(records, columns=config.columns)


def supportive_answers(wave):
    return tuple(code for _, code in WAVES[wave].env_fields)


@pytest.fixture
def raw_waves():
    """Three small raw waves with mixed parties, ages and weights."""
    return {
        2016: make_raw_wave(
            2016,
            [
                (1990, 1, 1.0, (1, 1, 1, 1)),
                (1950, 7, 2.0, (2, 2, 2, 2)),
                (1970, 4, 1.0, (1, 2, 1, 2)),
                (None, 2, 1.0, (1, 1, 2, 2)),
            ],
        ),
        2018: make_raw_wave(
            2018,
            [
                (1980, 3, 0.5, (1, 1, 1, 2)),
                (1940, 6, 1.5, (2, 1, 2, 2)),
                (1995, 8, 1.0, (1, 1, 1, 1)),
            ],
        ),
        2020: make_raw_wave(
            2020,
            [
                (2000, 1, 1.0, (1, 1, 1, 2)),
                (1930, 5, 1.0, (2, 2, 2, 1)),
            ],
        ),
    }
