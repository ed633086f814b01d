"""
Series Interpolation Module

Fills gaps in sparse year -> value inputs with piecewise-linear
interpolation so every integer year between the first and last observation
has a value. Observed years are passed through untouched; nothing is
extrapolated beyond the observed span.
"""

from bisect import bisect_left
from typing import Any, Dict, Mapping

from loguru import logger

import sys
from pathlib import Path
sys.path.append(str(Path(__file__).parent.parent.parent))
from src.utils.modeling_utils import (
    COHORTS,
    HeadshipYear,
    InvalidInputError,
    PopulationYear,
    coerce_headship_series,
    coerce_population_series,
    normalize_year_series,
)


def interpolate_year_series(data: Mapping[Any, Any]) -> Dict[int, float]:
    """
    Produce one value per integer year across the span of a sparse series.

    For a missing year the nearest known year below (lower) and at or above
    (upper) are blended: v(lower) + t * (v(upper) - v(lower)) with
    t = (year - lower) / (upper - lower).

    Args:
        data: Mapping of year -> numeric value (year keys may be strings)

    Returns:
        Dense mapping of year -> float, ascending by year

    Raises:
        InvalidInputError: If the series is empty or malformed
    """
    if not data:
        raise InvalidInputError("Cannot interpolate an empty year series")

    series = normalize_year_series(data)
    known_years = list(series)
    first, last = known_years[0], known_years[-1]

    result: Dict[int, float] = {}
    for year in range(first, last + 1):
        if year in series:
            result[year] = series[year]
            continue

        upper_idx = bisect_left(known_years, year)
        lower = known_years[upper_idx - 1]
        upper = known_years[upper_idx]
        t = (year - lower) / (upper - lower)
        result[year] = series[lower] + t * (series[upper] - series[lower])

    filled = len(result) - len(series)
    if filled:
        logger.debug(f"Interpolated {filled} missing years between {first} and {last}")

    return result


def interpolate_population_years(data: Mapping[Any, Any]) -> Dict[int, PopulationYear]:
    """
    Densify population observations, interpolating totals and each cohort separately.

    A cohort is only filled across the span where that cohort was observed;
    years outside its span carry no value for it (read as 0 downstream).
    """
    if not data:
        raise InvalidInputError("Cannot interpolate an empty population series")

    observations = coerce_population_series(data)
    totals = interpolate_year_series({year: obs.total for year, obs in observations.items()})
    cohort_series = _interpolate_cohorts({
        year: obs.cohorts for year, obs in observations.items() if obs.cohorts is not None
    })

    return {
        year: PopulationYear(total=total, cohorts=cohort_series.get(year))
        for year, total in totals.items()
    }


def interpolate_headship_years(data: Mapping[Any, Any]) -> Dict[int, HeadshipYear]:
    """Densify headship observations (aggregate rates and/or per-cohort rates)."""
    if not data:
        raise InvalidInputError("Cannot interpolate an empty headship series")

    observations = coerce_headship_series(data)

    aggregates = {
        year: obs.aggregate for year, obs in observations.items() if obs.aggregate is not None
    }
    aggregate_series = interpolate_year_series(aggregates) if aggregates else {}
    cohort_series = _interpolate_cohorts({
        year: obs.cohorts for year, obs in observations.items() if obs.cohorts is not None
    })

    years = sorted(set(aggregate_series) | set(cohort_series))
    return {
        year: HeadshipYear(aggregate=aggregate_series.get(year), cohorts=cohort_series.get(year))
        for year in years
    }


def _interpolate_cohorts(cohorts_by_year: Mapping[int, Mapping[str, float]]) -> Dict[int, Dict[str, float]]:
    if not cohorts_by_year:
        return {}

    by_year: Dict[int, Dict[str, float]] = {}
    for cohort in COHORTS:
        sparse = {
            year: values[cohort]
            for year, values in cohorts_by_year.items()
            if cohort in values
        }
        if not sparse:
            continue
        for year, value in interpolate_year_series(sparse).items():
            by_year.setdefault(year, {})[cohort] = value

    return dict(sorted(by_year.items()))
