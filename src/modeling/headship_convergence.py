"""
Headship Convergence Module

Models how headship (household-formation) rates move from a current rate
set to a target rate set. Each cohort is interpolated independently, so
cohorts with larger gaps move faster in absolute terms but every cohort
reaches its target in the same year.

Pathways:
1. static: rates held at current levels for every year
2. converging: linear transition over a fixed horizon, clamped outside it
"""

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Union

from loguru import logger

import sys
from pathlib import Path
sys.path.append(str(Path(__file__).parent.parent.parent))
from config.config import ProjectionSettings
from src.utils.modeling_utils import (
    COHORTS,
    HeadshipYear,
    InvalidInputError,
    cohort_value,
    validate_cohort_keys,
)

RateSet = Union[float, Mapping[str, float]]


@dataclass(frozen=True)
class HeadshipPathway:
    """
    A named headship assumption for the cohort model.

    A static pathway keeps current rates forever. A converging pathway
    reaches target rates horizon_years after the base year.
    """
    key: str
    label: str
    description: str = ""
    static: bool = False
    horizon_years: Optional[int] = None

    def __post_init__(self):
        if self.static:
            return
        if self.horizon_years is None or self.horizon_years <= 0:
            raise InvalidInputError(
                f"Headship pathway '{self.key}' needs a positive convergence horizon "
                f"(got {self.horizon_years}); use static=True for fixed rates"
            )


def converge_rates(
    current: RateSet,
    target: RateSet,
    base_year: int,
    horizon_years: int,
    year: int,
) -> RateSet:
    """
    Linearly interpolate from current to target rates for a given year.

    Args:
        current: Aggregate rate or cohort -> rate mapping at the base year
        target: Rate set of the same shape reached at base_year + horizon_years
        base_year: Year at which current rates apply
        horizon_years: Years taken to reach the target (must be > 0)
        year: Year to evaluate

    Returns:
        Rates for the year, same shape as the inputs
    """
    if horizon_years <= 0:
        raise InvalidInputError(f"Convergence horizon must be positive, got {horizon_years}")

    scalar_current = not isinstance(current, Mapping)
    scalar_target = not isinstance(target, Mapping)
    if scalar_current != scalar_target:
        raise InvalidInputError("Current and target rate sets must have the same shape")

    if scalar_current:
        if year <= base_year:
            return float(current)
        if year >= base_year + horizon_years:
            return float(target)
        t = (year - base_year) / horizon_years
        return float(current) + t * (float(target) - float(current))

    current_rates = validate_cohort_keys(current, "current rates")
    target_rates = validate_cohort_keys(target, "target rates")

    if year <= base_year:
        return dict(current_rates)
    if year >= base_year + horizon_years:
        return dict(target_rates)

    t = (year - base_year) / horizon_years
    result: Dict[str, float] = {}
    for cohort in COHORTS:
        if cohort not in current_rates and cohort not in target_rates:
            continue
        start = cohort_value(current_rates, cohort)
        end = cohort_value(target_rates, cohort)
        result[cohort] = start + t * (end - start)

    return result


class RateConvergenceModel:
    """
    Produces year-by-year headship rates for a set of pathways.

    Holds the current/target rate sets and the base year; pathways supply
    the horizon (or the static flag).
    """

    def __init__(self, current_rates: RateSet, target_rates: RateSet, base_year: int):
        if isinstance(current_rates, Mapping) != isinstance(target_rates, Mapping):
            raise InvalidInputError("Current and target rate sets must have the same shape")

        if isinstance(current_rates, Mapping):
            self.current_rates: RateSet = validate_cohort_keys(current_rates, "current rates")
            self.target_rates: RateSet = validate_cohort_keys(target_rates, "target rates")
        else:
            self.current_rates = float(current_rates)
            self.target_rates = float(target_rates)

        self.base_year = int(base_year)

    def rates_for_year(self, pathway: HeadshipPathway, year: int) -> RateSet:
        """Return the rates a pathway implies for a year."""
        if pathway.static:
            if isinstance(self.current_rates, Mapping):
                return dict(self.current_rates)
            return self.current_rates

        return converge_rates(
            self.current_rates,
            self.target_rates,
            self.base_year,
            pathway.horizon_years,
            year,
        )

    def headship_year(self, pathway: HeadshipPathway, year: int) -> HeadshipYear:
        rates = self.rates_for_year(pathway, year)
        if isinstance(rates, Mapping):
            return HeadshipYear(cohorts=rates)
        return HeadshipYear(aggregate=rates)

    def build_headship_projection(
        self,
        pathway: HeadshipPathway,
        start_year: int,
        end_year: int,
    ) -> Dict[int, HeadshipYear]:
        """
        Pre-compute rates for every year in [start_year, end_year].

        Returns:
            Dense year -> HeadshipYear mapping usable by the cohort demand model
        """
        if start_year > end_year:
            raise InvalidInputError(f"Start year {start_year} is after end year {end_year}")

        projection = {
            year: self.headship_year(pathway, year)
            for year in range(start_year, end_year + 1)
        }
        logger.debug(
            f"Built headship projection '{pathway.key}' for {start_year}-{end_year} "
            f"({'static' if pathway.static else f'{pathway.horizon_years}-year convergence'})"
        )
        return projection


def build_headship_pathways(
    pathway_config: Mapping[str, Mapping[str, Any]],
    settings: ProjectionSettings,
) -> Dict[str, HeadshipPathway]:
    """
    Turn config entries into HeadshipPathway objects.

    Each entry has a label, optional description and a 'convergence' value
    of null (static), 'fast', 'gradual' or an explicit number of years.
    """
    pathways: Dict[str, HeadshipPathway] = {}

    for key, entry in pathway_config.items():
        convergence = entry.get('convergence')
        if convergence is None:
            pathways[key] = HeadshipPathway(
                key=key,
                label=entry.get('label', key),
                description=entry.get('description', ''),
                static=True,
            )
            continue

        if isinstance(convergence, str):
            horizon = settings.convergence_years(convergence)
        else:
            horizon = int(convergence)

        pathways[key] = HeadshipPathway(
            key=key,
            label=entry.get('label', key),
            description=entry.get('description', ''),
            horizon_years=horizon,
        )

    return pathways
