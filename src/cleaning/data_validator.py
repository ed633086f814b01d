"""
Projection Input Validation Module

Quality checks for population and headship scenario inputs before they are
handed to the projection engine. The engine itself is permissive (missing
cohorts count as zero, cohort sums are never reconciled with totals); this
validator lets the calling layer find and report such issues.
"""

import numpy as np
import pandas as pd
from typing import Any, Dict, List, Mapping, Optional, Tuple
from loguru import logger

import sys
from pathlib import Path
sys.path.append(str(Path(__file__).parent.parent.parent))
from config.config import get_data_quality_thresholds
from src.utils.modeling_utils import COHORTS, normalize_year_keys, to_float, InvalidInputError


class ProjectionInputValidator:
    """
    Validates raw scenario inputs and records the issues found.
    """

    def __init__(self, thresholds: Optional[Dict[str, Any]] = None, check_cohort_totals: bool = False):
        """
        Initialize the validator with quality thresholds.

        Args:
            thresholds: Overrides for config data_quality thresholds
            check_cohort_totals: Also compare cohort sums with reported totals
        """
        self.quality_thresholds = thresholds if thresholds is not None else get_data_quality_thresholds()
        self.check_cohort_totals = check_cohort_totals
        self.issues: List[Dict[str, Any]] = []
        self.validation_report = {
            'scenarios_checked': 0,
            'malformed_series': 0,
            'negative_populations': 0,
            'rates_out_of_range': 0,
            'unknown_cohorts': 0,
            'cohort_total_mismatches': 0,
            'issues_found': 0,
        }

        logger.info("Initialized Projection Input Validator")

    def _record(self, counter: str, scenario: str, year: Optional[int], message: str):
        self.validation_report[counter] += 1
        self.issues.append({
            'check': counter,
            'scenario': scenario,
            'year': year,
            'message': message,
        })

    def _years(self, scenario: str, data: Mapping[Any, Any]) -> Optional[Dict[int, Any]]:
        if not data:
            self._record('malformed_series', scenario, None, "Series is empty")
            return None
        try:
            return normalize_year_keys(data)
        except InvalidInputError as exc:
            self._record('malformed_series', scenario, None, str(exc))
            return None

    def _number(self, scenario: str, year: int, value: Any, label: str) -> Optional[float]:
        """Convert a value to float, recording it as malformed instead of raising."""
        try:
            return to_float(value, f"{label} in {year}")
        except InvalidInputError as exc:
            self._record('malformed_series', scenario, year, str(exc))
            return None

    def _numbers(self, scenario: str, year: int, values: Any, label: str) -> Dict[str, float]:
        """Numeric entries of a cohort mapping; other entries are recorded as malformed."""
        if not isinstance(values, Mapping):
            self._record('malformed_series', scenario, year, f"{label} must be a mapping, got {values!r}")
            return {}

        numbers = {}
        for cohort, value in values.items():
            number = self._number(scenario, year, value, f"{label} {cohort}")
            if number is not None:
                numbers[cohort] = number
        return numbers

    def _check_cohorts(self, scenario: str, year: int, cohorts: Mapping[str, Any]):
        unknown = [key for key in cohorts if key not in COHORTS]
        for key in unknown:
            self._record('unknown_cohorts', scenario, year, f"Unknown cohort '{key}'")

    def validate_population(self, scenarios: Mapping[str, Mapping[str, Any]]) -> List[Dict[str, Any]]:
        """
        Check population scenarios ({key: {'data': {year: total | {'total', 'cohorts'}}}}).

        Returns:
            Issues recorded for these scenarios
        """
        start = len(self.issues)
        tolerance = float(self.quality_thresholds.get('cohort_total_tolerance', 0.01))

        for key, scenario in scenarios.items():
            self.validation_report['scenarios_checked'] += 1
            years = self._years(key, scenario.get('data', {}))
            if years is None:
                continue

            for year, value in years.items():
                if isinstance(value, Mapping):
                    total = None
                    if value.get('total') is not None:
                        total = self._number(key, year, value['total'], "population total")
                    cohorts = self._numbers(key, year, value.get('cohorts') or {}, "population")
                else:
                    total = self._number(key, year, value, "population total")
                    cohorts = {}

                if total is not None and total < 0:
                    self._record('negative_populations', key, year, f"Negative total {total}")

                self._check_cohorts(key, year, cohorts)
                negative = [c for c, v in cohorts.items() if v < 0]
                for cohort in negative:
                    self._record('negative_populations', key, year, f"Negative population for {cohort}")

                if self.check_cohort_totals and cohorts and total:
                    cohort_sum = sum(v for c, v in cohorts.items() if c in COHORTS)
                    if not np.isclose(cohort_sum, total, rtol=tolerance, atol=0):
                        self._record(
                            'cohort_total_mismatches', key, year,
                            f"Cohort sum {cohort_sum:,.0f} differs from total {total:,.0f}"
                        )

        return self.issues[start:]

    def validate_headship(self, scenarios: Mapping[str, Mapping[str, Any]]) -> List[Dict[str, Any]]:
        """Check headship scenarios for rates outside the configured range and unknown cohorts."""
        start = len(self.issues)
        min_rate = float(self.quality_thresholds.get('min_rate', 0.0))
        max_rate = float(self.quality_thresholds.get('max_rate', 1.0))

        for key, scenario in scenarios.items():
            self.validation_report['scenarios_checked'] += 1
            years = self._years(key, scenario.get('data', {}))
            if years is None:
                continue

            for year, value in years.items():
                if isinstance(value, Mapping):
                    rates = self._numbers(key, year, value.get('cohorts') or {}, "rate")
                    self._check_cohorts(key, year, rates)
                    if value.get('aggregate') is not None:
                        aggregate = self._number(key, year, value['aggregate'], "aggregate rate")
                        if aggregate is not None:
                            rates['aggregate'] = aggregate
                else:
                    aggregate = self._number(key, year, value, "aggregate rate")
                    rates = {'aggregate': aggregate} if aggregate is not None else {}

                for name, rate in rates.items():
                    if not min_rate <= rate <= max_rate:
                        self._record(
                            'rates_out_of_range', key, year,
                            f"Rate {name}={rate:.4f} outside [{min_rate}, {max_rate}]"
                        )

        return self.issues[start:]

    def validate_inputs(
        self,
        population_scenarios: Mapping[str, Mapping[str, Any]],
        headship_scenarios: Mapping[str, Mapping[str, Any]],
    ) -> Tuple[pd.DataFrame, Dict[str, int]]:
        """
        Run all checks.

        Returns:
            Tuple of (issues DataFrame, validation report)
        """
        self.validate_population(population_scenarios)
        self.validate_headship(headship_scenarios)
        self.validation_report['issues_found'] = len(self.issues)
        self.log_validation_summary()

        issues_df = pd.DataFrame(self.issues, columns=['check', 'scenario', 'year', 'message'])
        return issues_df, self.validation_report

    def log_validation_summary(self):
        logger.info("Input validation summary:")
        for key, value in self.validation_report.items():
            logger.info(f"  {key}: {value}")

        if self.validation_report['issues_found']:
            logger.warning(f"{self.validation_report['issues_found']} input issue(s) found")
