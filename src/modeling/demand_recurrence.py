"""
Demand Recurrence Module

Turns population and headship trajectories into annual housing demand.

Demand for each projected year has two parts:
- new households: growth in the number of households between two years
- replacement: the share of the existing stock lost to obsolescence

The stock is carried forward year by year (stock += demand), so the
projection is a strict left fold over the sorted years. The first year is
the base year and produces no output point.

Two variants share this design:
1. aggregate: one headship rate per year applied to total population
2. cohort: households summed over age cohorts, each with its own rate

No rounding or unit scaling happens here; that belongs to reporting.
"""

from dataclasses import dataclass
from functools import reduce
from typing import Any, Callable, List, Mapping, NamedTuple, Optional, Tuple

from loguru import logger

import sys
from pathlib import Path
sys.path.append(str(Path(__file__).parent.parent.parent))
from src.modeling.headship_convergence import HeadshipPathway, RateConvergenceModel
from src.utils.modeling_utils import (
    COHORTS,
    HeadshipYear,
    InvalidInputError,
    PopulationYear,
    coerce_headship_series,
    coerce_population_series,
    cohort_value,
    iter_year_pairs,
)


@dataclass(frozen=True)
class DemandComponents:
    """Breakdown of one year's demand in the aggregate model."""
    total: float
    new_households: float
    replacement: float
    population_change: float
    headship_change: float
    new_households_from_pop_growth: float
    new_households_from_existing_pop: float


@dataclass(frozen=True)
class TimeSeriesPoint:
    """One projected year (aggregate model)."""
    year: int
    demand: float
    new_households: float
    replacement: float
    housing_stock: float


@dataclass(frozen=True)
class CohortTimeSeriesPoint:
    """One projected year (cohort model)."""
    year: int
    demand: float
    household_growth: float
    replacement: float
    total_households: float
    housing_stock: float

    @property
    def new_households(self) -> float:
        return self.household_growth


@dataclass(frozen=True)
class RecurrenceState:
    """Accumulator carried through the fold: current stock and points so far."""
    housing_stock: float
    points: Tuple[Any, ...] = ()


class AggregateStep(NamedTuple):
    year: int
    population: float
    prev_population: float
    headship_rate: float
    prev_headship_rate: float


class CohortStep(NamedTuple):
    year: int
    total_households: float
    prev_total_households: float


def calculate_annual_demand(
    population: float,
    prev_population: float,
    headship_rate: float,
    prev_headship_rate: float,
    housing_stock: float,
    obsolescence_rate: float,
) -> DemandComponents:
    """
    Calculate one year's housing demand in the aggregate model.

    Households grow because population grows (at this year's rate) and
    because the rate itself changes for last year's population.
    """
    population_change = population - prev_population
    from_pop_growth = population_change * headship_rate
    headship_change = headship_rate - prev_headship_rate
    from_existing_pop = prev_population * headship_change
    new_households = from_pop_growth + from_existing_pop
    replacement = housing_stock * obsolescence_rate

    return DemandComponents(
        total=new_households + replacement,
        new_households=new_households,
        replacement=replacement,
        population_change=population_change,
        headship_change=headship_change,
        new_households_from_pop_growth=from_pop_growth,
        new_households_from_existing_pop=from_existing_pop,
    )


def calculate_total_households(
    population_by_cohort: Optional[Mapping[str, float]],
    headship_rates: Optional[Mapping[str, float]],
) -> float:
    """Sum population * rate over cohorts; a missing cohort on either side adds 0."""
    if not population_by_cohort:
        return 0.0

    total = 0.0
    for cohort in COHORTS:
        total += cohort_value(population_by_cohort, cohort) * cohort_value(headship_rates, cohort)
    return total


def advance_aggregate(state: RecurrenceState, step: AggregateStep, obsolescence_rate: float) -> RecurrenceState:
    """Apply one aggregate-model year to the accumulator."""
    components = calculate_annual_demand(
        step.population,
        step.prev_population,
        step.headship_rate,
        step.prev_headship_rate,
        state.housing_stock,
        obsolescence_rate,
    )
    new_stock = state.housing_stock + components.total
    point = TimeSeriesPoint(
        year=step.year,
        demand=components.total,
        new_households=components.new_households,
        replacement=components.replacement,
        housing_stock=new_stock,
    )
    return RecurrenceState(housing_stock=new_stock, points=state.points + (point,))


def advance_cohort(state: RecurrenceState, step: CohortStep, obsolescence_rate: float) -> RecurrenceState:
    """Apply one cohort-model year to the accumulator."""
    household_growth = step.total_households - step.prev_total_households
    replacement = state.housing_stock * obsolescence_rate
    demand = household_growth + replacement
    new_stock = state.housing_stock + demand
    point = CohortTimeSeriesPoint(
        year=step.year,
        demand=demand,
        household_growth=household_growth,
        replacement=replacement,
        total_households=step.total_households,
        housing_stock=new_stock,
    )
    return RecurrenceState(housing_stock=new_stock, points=state.points + (point,))


def _covered_years(
    population_years: Mapping[int, PopulationYear],
    headship_years: Mapping[int, HeadshipYear],
    has_rate: Callable[[HeadshipYear], bool],
) -> List[int]:
    """Population years for which the headship series also supplies a usable rate."""
    covered = [
        year for year in population_years
        if year in headship_years and has_rate(headship_years[year])
    ]
    dropped = len(population_years) - len(covered)
    if dropped:
        logger.debug(
            f"Headship data covers {len(covered)} of {len(population_years)} population years; "
            f"projecting over the overlap only"
        )
    return covered


def project_aggregate_demand(
    population: Mapping[Any, Any],
    headship: Mapping[Any, Any],
    obsolescence_rate: float,
    base_housing_stock: float,
) -> Tuple[TimeSeriesPoint, ...]:
    """
    Project annual demand from total population and aggregate headship rates.

    Args:
        population: Dense year -> total (or PopulationYear) mapping
        headship: year -> aggregate rate (or HeadshipYear)
        obsolescence_rate: Share of stock replaced each year
        base_housing_stock: Stock at the first projected year

    Returns:
        One point per covered year after the first, ascending. Only years
        present in both series are projected; the result is empty when
        fewer than two such years exist.

    Raises:
        InvalidInputError: If the headship series carries no aggregate rates at all
    """
    population_years = coerce_population_series(population)
    if len(population_years) < 2:
        logger.debug("Fewer than two population years; returning an empty projection")
        return ()

    headship_years = coerce_headship_series(headship)
    if headship_years and all(obs.aggregate is None for obs in headship_years.values()):
        raise InvalidInputError(
            "Headship data has no aggregate rates; per-cohort rates need the cohort model"
        )

    years = _covered_years(population_years, headship_years, lambda obs: obs.aggregate is not None)
    if len(years) < 2:
        logger.debug("Fewer than two years covered by both series; returning an empty projection")
        return ()

    steps = [
        AggregateStep(
            year=year,
            population=population_years[year].total,
            prev_population=population_years[prev_year].total,
            headship_rate=headship_years[year].aggregate,
            prev_headship_rate=headship_years[prev_year].aggregate,
        )
        for prev_year, year in iter_year_pairs(years)
    ]

    final = reduce(
        lambda state, step: advance_aggregate(state, step, obsolescence_rate),
        steps,
        RecurrenceState(housing_stock=float(base_housing_stock)),
    )
    return final.points


def project_cohort_demand(
    population: Mapping[Any, Any],
    headship: Mapping[Any, Any],
    obsolescence_rate: float,
    base_housing_stock: float,
) -> Tuple[CohortTimeSeriesPoint, ...]:
    """
    Project annual demand from cohort populations and cohort headship rates.

    Total households for a year are sum(population[c] * rate[c]); demand is
    the change in total households plus replacement of the prior stock.

    Args:
        population: year -> PopulationYear (or {'total', 'cohorts'}) mapping
        headship: year -> HeadshipYear (or {'cohorts'}) mapping
        obsolescence_rate: Share of stock replaced each year
        base_housing_stock: Stock at the first projected year

    Returns:
        One point per covered year after the first, ascending; empty when
        fewer than two years appear in both series
    """
    population_years = coerce_population_series(population)
    if len(population_years) < 2:
        logger.debug("Fewer than two population years; returning an empty projection")
        return ()

    headship_years = coerce_headship_series(headship)
    years = _covered_years(population_years, headship_years, lambda obs: True)
    if len(years) < 2:
        logger.debug("Fewer than two years covered by both series; returning an empty projection")
        return ()

    households = {
        year: calculate_total_households(population_years[year].cohorts, headship_years[year].cohorts)
        for year in years
    }

    steps = [
        CohortStep(
            year=year,
            total_households=households[year],
            prev_total_households=households[prev_year],
        )
        for prev_year, year in iter_year_pairs(years)
    ]

    final = reduce(
        lambda state, step: advance_cohort(state, step, obsolescence_rate),
        steps,
        RecurrenceState(housing_stock=float(base_housing_stock)),
    )
    return final.points


def project_cohort_demand_with_convergence(
    population: Mapping[Any, Any],
    convergence_model: RateConvergenceModel,
    pathway: HeadshipPathway,
    obsolescence_rate: float,
    base_housing_stock: float,
) -> Tuple[CohortTimeSeriesPoint, ...]:
    """Cohort projection with rates taken from a convergence pathway for each population year."""
    population_years = coerce_population_series(population)
    headship = {
        year: convergence_model.headship_year(pathway, year)
        for year in population_years
    }
    return project_cohort_demand(population_years, headship, obsolescence_rate, base_housing_stock)
