"""
Scenario Matrix Module

Generates the full cross-product of population, headship and obsolescence
assumptions and runs the demand recurrence once per combination.

Results come back in nested iteration order (population, then headship,
then obsolescence) and each carries a unique id built from its keys plus
the labels copied from its constituent scenario definitions.
"""

from concurrent.futures import ProcessPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from loguru import logger

import sys
from pathlib import Path
sys.path.append(str(Path(__file__).parent.parent.parent))
from src.modeling.demand_recurrence import project_aggregate_demand, project_cohort_demand
from src.modeling.headship_convergence import HeadshipPathway, RateConvergenceModel
from src.modeling.series_interpolation import (
    interpolate_headship_years,
    interpolate_population_years,
)
from src.utils.modeling_utils import (
    SCENARIO_ID_SEPARATOR,
    HeadshipYear,
    InvalidInputError,
    PopulationYear,
    coerce_headship_series,
    coerce_population_series,
)


# ============================================================================
# SCENARIO DEFINITIONS
# ============================================================================

@dataclass(frozen=True)
class PopulationScenario:
    """A named population (migration) trajectory."""
    key: str
    label: str
    data: Mapping[int, PopulationYear]
    description: str = ""

    @classmethod
    def from_mapping(cls, key: str, raw: Mapping[str, Any], interpolate: bool = True) -> 'PopulationScenario':
        """Build from a {'label', 'description', 'data'} entry, densifying sparse years."""
        data = raw.get('data') or {}
        series = interpolate_population_years(data) if interpolate else coerce_population_series(data)
        return cls(key=key, label=raw.get('label', key), data=series, description=raw.get('description', ''))


@dataclass(frozen=True)
class HeadshipScenario:
    """A named headship trajectory (aggregate or per-cohort rates by year)."""
    key: str
    label: str
    data: Mapping[int, HeadshipYear]
    description: str = ""

    @classmethod
    def from_mapping(cls, key: str, raw: Mapping[str, Any], interpolate: bool = True) -> 'HeadshipScenario':
        data = raw.get('data') or {}
        series = interpolate_headship_years(data) if interpolate else coerce_headship_series(data)
        return cls(key=key, label=raw.get('label', key), data=series, description=raw.get('description', ''))


@dataclass(frozen=True)
class ObsolescenceScenario:
    key: str
    label: str
    rate: float

    @classmethod
    def from_mapping(cls, key: str, raw: Mapping[str, Any]) -> 'ObsolescenceScenario':
        if 'rate' not in raw:
            raise InvalidInputError(f"Obsolescence scenario '{key}' has no rate")
        return cls(key=key, label=raw.get('label', key), rate=float(raw['rate']))


@dataclass(frozen=True)
class ScenarioResult:
    """One combination's projection (aggregate model)."""
    id: str
    population: str
    headship: str
    obsolescence: str
    population_label: str
    headship_label: str
    obsolescence_label: str
    time_series: Tuple[Any, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class CohortScenarioResult:
    """One combination's projection (cohort model)."""
    id: str
    migration: str
    headship: str
    migration_label: str
    headship_label: str
    time_series: Tuple[Any, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class ResolvedKey:
    """Outcome of resolving a requested scenario key against the available set."""
    requested: Optional[str]
    key: str
    fallback_used: bool


def validate_scenario_key(key: Any, source: str = "") -> str:
    """
    Check a scenario key can be part of an id.

    Keys must be non-empty strings without the separator, which keeps ids
    unique across the cross-product.
    """
    where = f" in {source}" if source else ""
    if not isinstance(key, str) or not key:
        raise InvalidInputError(f"Scenario keys{where} must be non-empty strings, got {key!r}")
    if SCENARIO_ID_SEPARATOR in key:
        raise InvalidInputError(
            f"Scenario key '{key}'{where} contains the id separator '{SCENARIO_ID_SEPARATOR}'; "
            f"rename it (e.g. '{key.replace(SCENARIO_ID_SEPARATOR, '_')}')"
        )
    return key


def scenario_id(*keys: str) -> str:
    """Join validated component keys into a scenario id."""
    return SCENARIO_ID_SEPARATOR.join(validate_scenario_key(key) for key in keys)


def resolve_selection(requested: Optional[str], available: Sequence[str]) -> ResolvedKey:
    """
    Resolve a requested key, falling back to the first available key.

    The fallback is reported through ResolvedKey.fallback_used; surfacing it
    is the caller's job.
    """
    if not available:
        raise InvalidInputError("No scenarios available to select from")

    if requested in available:
        return ResolvedKey(requested=requested, key=requested, fallback_used=False)

    return ResolvedKey(requested=requested, key=available[0], fallback_used=True)


# ============================================================================
# MATRIX GENERATION
# ============================================================================

def _project_aggregate_worker(args):
    """Worker wrapper to enable parallel execution in ProcessPool."""
    return project_aggregate_demand(*args)


def _project_cohort_worker(args):
    """Worker wrapper to enable parallel execution in ProcessPool."""
    return project_cohort_demand(*args)


def _run_projections(worker, args_list: List[tuple], max_workers: Optional[int]) -> List[Tuple[Any, ...]]:
    if max_workers is None or max_workers <= 1 or len(args_list) <= 1:
        return [worker(args) for args in args_list]

    logger.debug(f"Projecting {len(args_list)} scenarios across {max_workers} workers")
    with ProcessPoolExecutor(max_workers=max_workers) as executor:
        return list(executor.map(worker, args_list))


def generate_all_scenarios(
    population_scenarios: Mapping[str, PopulationScenario],
    headship_scenarios: Mapping[str, HeadshipScenario],
    obsolescence_scenarios: Mapping[str, ObsolescenceScenario],
    base_housing_stock: float,
    max_workers: Optional[int] = None,
) -> List[ScenarioResult]:
    """
    Project every (population, headship, obsolescence) combination.

    Args:
        population_scenarios: Dense population scenarios keyed by id
        headship_scenarios: Dense aggregate headship scenarios keyed by id
        obsolescence_scenarios: Obsolescence rates keyed by id
        base_housing_stock: Stock at the first population year
        max_workers: Process count for parallel projection; sequential when None

    Returns:
        ScenarioResult list in nested (population, headship, obsolescence) order
    """
    combos = []
    args_list = []
    for pop_key, population in population_scenarios.items():
        for headship_key, headship in headship_scenarios.items():
            for obs_key, obsolescence in obsolescence_scenarios.items():
                combos.append((scenario_id(pop_key, headship_key, obs_key), pop_key, headship_key, obs_key))
                args_list.append((population.data, headship.data, obsolescence.rate, base_housing_stock))

    series_list = _run_projections(_project_aggregate_worker, args_list, max_workers)

    results = [
        ScenarioResult(
            id=combo_id,
            population=pop_key,
            headship=headship_key,
            obsolescence=obs_key,
            population_label=population_scenarios[pop_key].label,
            headship_label=headship_scenarios[headship_key].label,
            obsolescence_label=obsolescence_scenarios[obs_key].label,
            time_series=series,
        )
        for (combo_id, pop_key, headship_key, obs_key), series in zip(combos, series_list)
    ]

    logger.debug(
        f"Generated {len(results)} scenarios "
        f"({len(population_scenarios)} population x {len(headship_scenarios)} headship "
        f"x {len(obsolescence_scenarios)} obsolescence)"
    )
    return results


def generate_all_cohort_scenarios(
    population_scenarios: Mapping[str, PopulationScenario],
    headship_scenarios: Mapping[str, HeadshipScenario],
    obsolescence_rate: float,
    base_housing_stock: float,
    max_workers: Optional[int] = None,
) -> List[CohortScenarioResult]:
    """
    Project every (migration, headship) combination with the cohort model.

    A single obsolescence rate and base stock apply to all combinations.
    """
    combos = []
    args_list = []
    for migration_key, population in population_scenarios.items():
        for headship_key, headship in headship_scenarios.items():
            combos.append((scenario_id(migration_key, headship_key), migration_key, headship_key))
            args_list.append((population.data, headship.data, obsolescence_rate, base_housing_stock))

    series_list = _run_projections(_project_cohort_worker, args_list, max_workers)

    return [
        CohortScenarioResult(
            id=combo_id,
            migration=migration_key,
            headship=headship_key,
            migration_label=population_scenarios[migration_key].label,
            headship_label=headship_scenarios[headship_key].label,
            time_series=series,
        )
        for (combo_id, migration_key, headship_key), series in zip(combos, series_list)
    ]


def pathway_headship_scenarios(
    convergence_model: RateConvergenceModel,
    pathways: Mapping[str, HeadshipPathway],
    start_year: int,
    end_year: int,
) -> Dict[str, HeadshipScenario]:
    """Pre-compute a HeadshipScenario per pathway over [start_year, end_year]."""
    return {
        key: HeadshipScenario(
            key=key,
            label=pathway.label,
            description=pathway.description,
            data=convergence_model.build_headship_projection(pathway, start_year, end_year),
        )
        for key, pathway in pathways.items()
    }
