"""
Housing Demand Modeling Module

Orchestrates projection runs on top of the pure engine modules:
- builds typed scenario inputs from loaded JSON/YAML structures
- runs the aggregate and cohort scenario matrices
- resolves a user selection (with a logged fallback for unknown keys)
- derives the envelope and comparison summaries
- saves results for reporting
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import pandas as pd
from loguru import logger

import sys
sys.path.append(str(Path(__file__).parent.parent.parent))
from config.config import (
    ProjectionSettings,
    get_projection_settings,
    get_cohort_headship_rates,
    get_headship_pathways,
    DATA_OUTPUTS_DIR,
)
from src.analysis.scenario_aggregation import (
    RangePoint,
    get_scenario_range,
    range_to_frame,
    scenarios_to_frame,
    summarize_periods,
)
from src.modeling.headship_convergence import RateConvergenceModel, build_headship_pathways
from src.modeling.scenario_matrix import (
    HeadshipScenario,
    ObsolescenceScenario,
    PopulationScenario,
    ResolvedKey,
    generate_all_cohort_scenarios,
    generate_all_scenarios,
    pathway_headship_scenarios,
    resolve_selection,
    scenario_id,
    validate_scenario_key,
)
from src.utils.modeling_utils import InvalidInputError, normalize_year_series


@dataclass(frozen=True)
class AggregateInputs:
    """Typed inputs for the aggregate (total population) scenario matrix."""
    population_scenarios: Dict[str, PopulationScenario]
    headship_scenarios: Dict[str, HeadshipScenario]
    obsolescence_scenarios: Dict[str, ObsolescenceScenario]
    base_housing_stock: float


@dataclass(frozen=True)
class SelectionProjection:
    """A selected scenario's series alongside the envelope of all scenarios."""
    selected: Any
    scenario_range: List[RangePoint]
    all_scenarios: List[Any]
    resolved: Dict[str, ResolvedKey] = field(default_factory=dict)

    @property
    def fallback_used(self) -> bool:
        return any(r.fallback_used for r in self.resolved.values())


class HousingDemandModeler:
    """
    Runs housing demand scenario projections for one set of settings.
    """

    def __init__(self, settings: Optional[ProjectionSettings] = None, max_workers: Optional[int] = None):
        """
        Initialize the modeler.

        Args:
            settings: Projection settings; loaded from config.yaml when omitted
            max_workers: Process count for scenario matrices (sequential when None)
        """
        self.settings = settings or get_projection_settings()
        self.max_workers = max_workers
        self.results: Dict[str, List[Any]] = {}
        self.selections: Dict[str, SelectionProjection] = {}

        logger.info("Initialized Housing Demand Modeler")
        logger.info(
            f"Base year {self.settings.base_year}, window "
            f"{self.settings.start_year}-{self.settings.end_year}"
        )

    # ------------------------------------------------------------------
    # Inputs
    # ------------------------------------------------------------------

    def build_aggregate_inputs(self, scenarios_file: Mapping[str, Any]) -> AggregateInputs:
        """
        Build typed inputs from a scenarios file structure.

        Expected keys: populationScenarios, headshipScenarios (sparse
        year -> value data, densified here), obsolescenceScenarios
        ({key: {label, rate}}) and housingStock ({year: units}).
        """
        for section in ('populationScenarios', 'headshipScenarios', 'obsolescenceScenarios'):
            if not scenarios_file.get(section):
                raise InvalidInputError(f"Scenarios file has no '{section}' entries")
            for key in scenarios_file[section]:
                validate_scenario_key(key, section)

        population = {
            key: PopulationScenario.from_mapping(key, raw)
            for key, raw in scenarios_file['populationScenarios'].items()
        }
        headship = {
            key: HeadshipScenario.from_mapping(key, raw)
            for key, raw in scenarios_file['headshipScenarios'].items()
        }
        obsolescence = {
            key: ObsolescenceScenario.from_mapping(key, raw)
            for key, raw in scenarios_file['obsolescenceScenarios'].items()
        }

        logger.info(
            f"Loaded {len(population)} population, {len(headship)} headship and "
            f"{len(obsolescence)} obsolescence scenarios"
        )

        return AggregateInputs(
            population_scenarios=population,
            headship_scenarios=headship,
            obsolescence_scenarios=obsolescence,
            base_housing_stock=self._base_housing_stock(scenarios_file.get('housingStock')),
        )

    def _base_housing_stock(self, housing_stock: Optional[Mapping[Any, Any]]) -> float:
        if not housing_stock:
            logger.info(f"No housing stock supplied; using configured {self.settings.base_housing_stock:,.0f}")
            return self.settings.base_housing_stock

        stock_by_year = normalize_year_series(housing_stock)
        if self.settings.base_year not in stock_by_year:
            raise InvalidInputError(
                f"Housing stock has no figure for base year {self.settings.base_year}"
            )
        return stock_by_year[self.settings.base_year]

    def build_cohort_population(self, population_file: Mapping[str, Any]) -> Dict[str, PopulationScenario]:
        """Build migration scenarios from a {key: {label, description, data}} structure."""
        if not population_file:
            raise InvalidInputError("Cohort population file has no scenarios")
        for key in population_file:
            validate_scenario_key(key, "cohort population file")
        return {
            key: PopulationScenario.from_mapping(key, raw)
            for key, raw in population_file.items()
        }

    def build_pathway_headship(self, start_year: int, end_year: int) -> Dict[str, HeadshipScenario]:
        """Pre-compute configured headship pathways (current/gradual/fast) for a year range."""
        rates = get_cohort_headship_rates()
        model = RateConvergenceModel(rates['current'], rates['target'], self.settings.base_year)
        pathways = build_headship_pathways(get_headship_pathways(), self.settings)
        return pathway_headship_scenarios(model, pathways, start_year, end_year)

    # ------------------------------------------------------------------
    # Matrices
    # ------------------------------------------------------------------

    def model_aggregate_scenarios(self, inputs: AggregateInputs) -> List[Any]:
        """Project every aggregate-model combination."""
        logger.info("Modeling aggregate scenario matrix...")
        results = generate_all_scenarios(
            inputs.population_scenarios,
            inputs.headship_scenarios,
            inputs.obsolescence_scenarios,
            inputs.base_housing_stock,
            max_workers=self.max_workers,
        )
        self._log_empty_projections(results)
        self.results['aggregate'] = results
        logger.info(f"Projected {len(results)} aggregate scenarios")
        return results

    def model_cohort_scenarios(
        self,
        population_scenarios: Mapping[str, PopulationScenario],
        headship_scenarios: Optional[Mapping[str, HeadshipScenario]] = None,
        obsolescence_rate: Optional[float] = None,
        base_housing_stock: Optional[float] = None,
    ) -> List[Any]:
        """
        Project every (migration, headship) combination with the cohort model.

        Headship defaults to the configured convergence pathways covering the
        population years; rate and stock default to the settings.
        """
        if headship_scenarios is None:
            years = sorted({year for s in population_scenarios.values() for year in s.data})
            if not years:
                raise InvalidInputError("Cohort population scenarios contain no years")
            headship_scenarios = self.build_pathway_headship(years[0], years[-1])

        rate = self.settings.default_obsolescence_rate if obsolescence_rate is None else obsolescence_rate
        stock = self.settings.base_housing_stock if base_housing_stock is None else base_housing_stock

        logger.info("Modeling cohort scenario matrix...")
        results = generate_all_cohort_scenarios(
            population_scenarios,
            headship_scenarios,
            rate,
            stock,
            max_workers=self.max_workers,
        )
        self._log_empty_projections(results)
        self.results['cohort'] = results
        logger.info(f"Projected {len(results)} cohort scenarios")
        return results

    def _log_empty_projections(self, results: List[Any]):
        empty = [r.id for r in results if not r.time_series]
        if empty:
            logger.info(
                f"{len(empty)} scenario(s) produced an empty projection "
                f"(fewer than two population years): {', '.join(empty)}"
            )

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    def _resolve(self, dimension: str, requested: Optional[str], available: List[str]) -> ResolvedKey:
        resolved = resolve_selection(requested, available)
        if resolved.fallback_used:
            logger.warning(
                f"Unknown {dimension} scenario '{requested}'; falling back to '{resolved.key}'"
            )
        return resolved

    def project_selection(
        self,
        inputs: AggregateInputs,
        population: Optional[str],
        headship: Optional[str],
        obsolescence: Optional[str],
    ) -> SelectionProjection:
        """
        Project one selected combination plus the envelope over all combinations.
        """
        resolved = {
            'population': self._resolve('population', population, list(inputs.population_scenarios)),
            'headship': self._resolve('headship', headship, list(inputs.headship_scenarios)),
            'obsolescence': self._resolve('obsolescence', obsolescence, list(inputs.obsolescence_scenarios)),
        }

        all_scenarios = self.model_aggregate_scenarios(inputs)
        selected_id = scenario_id(*(r.key for r in resolved.values()))
        selected = next(s for s in all_scenarios if s.id == selected_id)

        projection = SelectionProjection(
            selected=selected,
            scenario_range=get_scenario_range(all_scenarios),
            all_scenarios=all_scenarios,
            resolved=resolved,
        )
        self.selections['aggregate'] = projection
        return projection

    def project_cohort_selection(
        self,
        population_scenarios: Mapping[str, PopulationScenario],
        migration: Optional[str],
        headship: Optional[str],
        headship_scenarios: Optional[Mapping[str, HeadshipScenario]] = None,
    ) -> SelectionProjection:
        """Project one (migration, headship) cohort combination plus the envelope."""
        all_scenarios = self.model_cohort_scenarios(population_scenarios, headship_scenarios)

        headship_keys = list(dict.fromkeys(s.headship for s in all_scenarios))
        resolved = {
            'migration': self._resolve('migration', migration, list(population_scenarios)),
            'headship': self._resolve('headship', headship, headship_keys),
        }

        selected_id = scenario_id(resolved['migration'].key, resolved['headship'].key)
        selected = next(s for s in all_scenarios if s.id == selected_id)

        projection = SelectionProjection(
            selected=selected,
            scenario_range=get_scenario_range(all_scenarios),
            all_scenarios=all_scenarios,
            resolved=resolved,
        )
        self.selections['cohort'] = projection
        return projection

    # ------------------------------------------------------------------
    # Outputs
    # ------------------------------------------------------------------

    def comparison_summary(self, variant: str = 'aggregate') -> pd.DataFrame:
        """Selected scenario vs min/max/average across all scenarios for a variant."""
        if variant not in self.selections:
            raise ValueError(f"No selection has been projected for the '{variant}' model")
        projection = self.selections[variant]
        return summarize_periods(projection.selected, projection.all_scenarios, self.settings)

    def save_results(self, output_dir: Optional[Path] = None) -> Dict[str, Optional[Path]]:
        """
        Save scenario series and envelopes as CSV.

        Args:
            output_dir: Directory for outputs (defaults to data/outputs)

        Returns:
            Dictionary of artefact paths keyed by name
        """
        output_dir = Path(output_dir or DATA_OUTPUTS_DIR)
        output_dir.mkdir(parents=True, exist_ok=True)
        paths: Dict[str, Optional[Path]] = {}

        for variant, results in self.results.items():
            series_path = output_dir / f"{variant}_scenario_timeseries.csv"
            scenarios_to_frame(results).to_csv(series_path, index=False)
            logger.info(f"Scenario time series saved to: {series_path}")
            paths[f"{variant}_timeseries"] = series_path

            range_path = output_dir / f"{variant}_scenario_range.csv"
            range_to_frame(get_scenario_range(results)).to_csv(range_path, index=False)
            logger.info(f"Scenario envelope saved to: {range_path}")
            paths[f"{variant}_range"] = range_path

        return paths
