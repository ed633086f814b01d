"""
Shared Modeling Utilities Module

Centralizes the types and helpers used by the interpolation, convergence,
demand and scenario modules so every stage reads inputs the same way.

Key utilities:
- Household-forming cohort bands and age-to-cohort mapping
- Year series normalisation (string years from JSON, numeric checks)
- Population and headship year records
- Missing-cohort lookups (absent cohorts count as zero)
"""

import math
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple, Union

from loguru import logger


# ==============================================================================
# ERRORS
# ==============================================================================

class InvalidInputError(ValueError):
    """Raised when a series or scenario input is empty or malformed."""


# ==============================================================================
# COHORT CONSTANTS AND MAPPINGS
# ==============================================================================

# Household-forming age bands, ordered by lower age bound
COHORTS: Tuple[str, ...] = (
    "15-19", "20-24", "25-29", "30-34", "35-39", "40-44",
    "45-49", "50-54", "55-59", "60-64", "65+",
)

OPEN_ENDED_COHORT = "65+"
OPEN_ENDED_COHORT_MIN_AGE = 65
MIN_HOUSEHOLD_AGE = 15
COHORT_WIDTH = 5

SCENARIO_ID_SEPARATOR = "-"

Number = Union[int, float]


def age_to_cohort(age: int) -> str:
    """
    Map a single age to its five-year band.

    Ages at or above 65 fall into the open-ended top band. Ages below 15
    return their band label (e.g. "0-4") even though it is not household
    forming; callers filter with COHORTS.
    """
    if age < 0:
        raise InvalidInputError(f"Age must not be negative, got {age}")

    if age >= OPEN_ENDED_COHORT_MIN_AGE:
        return OPEN_ENDED_COHORT

    lower = (age // COHORT_WIDTH) * COHORT_WIDTH
    return f"{lower}-{lower + COHORT_WIDTH - 1}"


def aggregate_ages_to_cohorts(counts_by_age: Mapping[int, Number]) -> Dict[str, float]:
    """
    Sum single-age counts into household-forming cohorts.

    Args:
        counts_by_age: Mapping of age -> population count

    Returns:
        Mapping of cohort -> summed count, in COHORTS order, for cohorts with data
    """
    totals: Dict[str, float] = {}
    dropped = 0

    for age, count in counts_by_age.items():
        cohort = age_to_cohort(int(age))
        if cohort not in COHORTS:
            dropped += 1
            continue
        totals[cohort] = totals.get(cohort, 0.0) + float(count)

    if dropped:
        logger.debug(f"Dropped {dropped} single-age rows below age {MIN_HOUSEHOLD_AGE}")

    return {cohort: totals[cohort] for cohort in COHORTS if cohort in totals}


def validate_cohort_keys(values: Mapping[str, Any], context: str = "") -> Dict[str, float]:
    """
    Check that every key is a known cohort and every value is numeric.

    Raises:
        InvalidInputError: On an unknown cohort key or non-numeric value
    """
    unknown = [key for key in values if key not in COHORTS]
    if unknown:
        where = f" in {context}" if context else ""
        raise InvalidInputError(
            f"Unknown cohort key(s){where}: {', '.join(map(str, unknown))}. "
            f"Expected one of: {', '.join(COHORTS)}"
        )

    return {key: to_float(value, f"cohort {key}") for key, value in values.items()}


def cohort_value(values: Optional[Mapping[str, float]], cohort: str) -> float:
    """Return a cohort's value, treating a missing cohort or missing map as 0."""
    if not values:
        return 0.0
    value = values.get(cohort)
    if value is None:
        return 0.0
    return float(value)


# ==============================================================================
# YEAR SERIES
# ==============================================================================

def to_float(value: Any, label: str) -> float:
    if isinstance(value, bool):
        raise InvalidInputError(f"Value for {label} must be numeric, got {value!r}")
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise InvalidInputError(f"Value for {label} must be numeric, got {value!r}") from exc
    if math.isnan(number):
        raise InvalidInputError(f"Value for {label} is NaN")
    return number


def _to_year(key: Any) -> int:
    if isinstance(key, bool):
        raise InvalidInputError(f"Year keys must be integers, got {key!r}")
    if isinstance(key, int):
        return key
    if isinstance(key, float) and key.is_integer():
        return int(key)
    if isinstance(key, str) and key.strip().lstrip('-').isdigit():
        return int(key.strip())
    raise InvalidInputError(f"Year keys must be integers, got {key!r}")


def normalize_year_keys(data: Mapping[Any, Any]) -> Dict[int, Any]:
    """
    Convert year keys to int and return a mapping sorted by year.

    JSON inputs arrive with string years ("2022"); a series holding both
    "2022" and 2022 is ambiguous and rejected.
    """
    result: Dict[int, Any] = {}
    for key, value in data.items():
        year = _to_year(key)
        if year in result:
            raise InvalidInputError(f"Duplicate year {year} in series")
        result[year] = value
    return dict(sorted(result.items()))


def normalize_year_series(data: Mapping[Any, Any]) -> Dict[int, float]:
    """Return a year -> float mapping sorted by year, validating keys and values."""
    return {
        year: to_float(value, f"year {year}")
        for year, value in normalize_year_keys(data).items()
    }


# ==============================================================================
# YEAR RECORDS
# ==============================================================================

@dataclass(frozen=True)
class PopulationYear:
    """One year's population: a total and an optional per-cohort breakdown.

    The cohort breakdown need not sum to the total; the two come from
    separate aggregation pipelines.
    """
    total: float
    cohorts: Optional[Dict[str, float]] = None


@dataclass(frozen=True)
class HeadshipYear:
    """One year's headship: an aggregate rate and/or per-cohort rates."""
    aggregate: Optional[float] = None
    cohorts: Optional[Dict[str, float]] = None


def coerce_population_year(value: Any, year: Optional[int] = None) -> PopulationYear:
    """Accept a PopulationYear, a bare total, or a {'total', 'cohorts'} mapping."""
    label = f"population {year}" if year is not None else "population"

    if isinstance(value, PopulationYear):
        return value

    if isinstance(value, Mapping):
        if 'total' not in value:
            raise InvalidInputError(f"{label} is missing 'total'")
        cohorts = value.get('cohorts')
        return PopulationYear(
            total=to_float(value['total'], label),
            cohorts=validate_cohort_keys(cohorts, label) if cohorts is not None else None,
        )

    return PopulationYear(total=to_float(value, label))


def coerce_headship_year(value: Any, year: Optional[int] = None) -> HeadshipYear:
    """Accept a HeadshipYear, a bare aggregate rate, or an {'aggregate'/'cohorts'} mapping."""
    label = f"headship {year}" if year is not None else "headship"

    if isinstance(value, HeadshipYear):
        return value

    if isinstance(value, Mapping):
        aggregate = value.get('aggregate')
        cohorts = value.get('cohorts')
        if aggregate is None and cohorts is None:
            raise InvalidInputError(f"{label} needs an 'aggregate' rate or 'cohorts' rates")
        return HeadshipYear(
            aggregate=to_float(aggregate, label) if aggregate is not None else None,
            cohorts=validate_cohort_keys(cohorts, label) if cohorts is not None else None,
        )

    return HeadshipYear(aggregate=to_float(value, label))


def coerce_population_series(data: Mapping[Any, Any]) -> Dict[int, PopulationYear]:
    return {
        year: coerce_population_year(value, year)
        for year, value in normalize_year_keys(data).items()
    }


def coerce_headship_series(data: Mapping[Any, Any]) -> Dict[int, HeadshipYear]:
    return {
        year: coerce_headship_year(value, year)
        for year, value in normalize_year_keys(data).items()
    }


def iter_year_pairs(years: Iterable[int]):
    """Yield (previous_year, year) for each adjacent pair of sorted years."""
    ordered = sorted(years)
    return zip(ordered[:-1], ordered[1:])
