"""
Scenario Aggregation Module

Reduces a set of projected scenarios to summary figures:
- envelope: per-year min/max demand across all scenarios
- period statistics: average and total demand over an inclusive year window
- comparison summary: a selected scenario against the spread of all scenarios

All functions are pure reducers. Scenarios may cover different or partially
overlapping year ranges.
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Sequence, Tuple

import pandas as pd
from loguru import logger

import sys
from pathlib import Path
sys.path.append(str(Path(__file__).parent.parent.parent))
from config.config import ProjectionSettings


@dataclass(frozen=True)
class RangePoint:
    year: int
    min: float
    max: float


@dataclass(frozen=True)
class PeriodStatistics:
    start_year: int
    end_year: int
    average: float
    total: float
    n_years: int


def _year_demand(point: Any) -> Tuple[int, float]:
    if isinstance(point, dict):
        return int(point['year']), float(point['demand'])
    return int(point.year), float(point.demand)


def _time_series(scenario: Any) -> Sequence[Any]:
    """Accept a scenario result (with .time_series) or a bare sequence of points."""
    return getattr(scenario, 'time_series', scenario)


def filter_time_series(time_series: Iterable[Any], start_year: int, end_year: int) -> List[Any]:
    """Keep points whose year falls in [start_year, end_year]."""
    return [
        point for point in time_series
        if start_year <= _year_demand(point)[0] <= end_year
    ]


def calculate_period_total(time_series: Iterable[Any], start_year: int, end_year: int) -> float:
    """Sum demand over the inclusive window; 0 when no points fall inside it."""
    return sum(
        (_year_demand(point)[1] for point in filter_time_series(time_series, start_year, end_year)),
        0.0,
    )


def calculate_period_average(time_series: Iterable[Any], start_year: int, end_year: int) -> float:
    """Mean demand over the inclusive window; 0 when no points fall inside it."""
    selected = filter_time_series(time_series, start_year, end_year)
    if not selected:
        return 0.0
    return sum((_year_demand(point)[1] for point in selected), 0.0) / len(selected)


def period_statistics(time_series: Iterable[Any], start_year: int, end_year: int) -> PeriodStatistics:
    selected = filter_time_series(time_series, start_year, end_year)
    return PeriodStatistics(
        start_year=start_year,
        end_year=end_year,
        average=calculate_period_average(selected, start_year, end_year),
        total=calculate_period_total(selected, start_year, end_year),
        n_years=len(selected),
    )


def get_scenario_range(scenarios: Iterable[Any]) -> List[RangePoint]:
    """
    Per-year min/max demand across scenarios.

    Years that no scenario covers are absent (no zero fill).

    Returns:
        RangePoint list ascending by year
    """
    records = [
        _year_demand(point)
        for scenario in scenarios
        for point in _time_series(scenario)
    ]
    if not records:
        return []

    df = pd.DataFrame(records, columns=['year', 'demand'])
    envelope = df.groupby('year')['demand'].agg(['min', 'max']).sort_index()

    return [
        RangePoint(year=int(year), min=float(row['min']), max=float(row['max']))
        for year, row in envelope.iterrows()
    ]


def range_to_frame(envelope: Iterable[RangePoint]) -> pd.DataFrame:
    return pd.DataFrame(
        [{'year': p.year, 'min': p.min, 'max': p.max} for p in envelope],
        columns=['year', 'min', 'max'],
    )


def scenarios_to_frame(scenarios: Iterable[Any]) -> pd.DataFrame:
    """
    Flatten scenario results to one row per (scenario, year).

    Scenario metadata fields (id, keys, labels) are repeated on every row
    next to the point's own fields.
    """
    rows = []
    for scenario in scenarios:
        meta = {
            key: value for key, value in vars(scenario).items()
            if key != 'time_series'
        }
        meta['scenario_id'] = meta.pop('id')
        for point in scenario.time_series:
            rows.append({**meta, **vars(point)})

    return pd.DataFrame(rows)


def projection_stats(
    time_series: Iterable[Any],
    start_year: int,
    end_year: int,
    reference_supply: float,
) -> Dict[str, float]:
    """
    Headline figures for one scenario: average annual need, total units,
    window length and the gap between average need and reference supply.
    """
    points = list(time_series)
    average = calculate_period_average(points, start_year, end_year)
    return {
        'average_annual_demand': average,
        'total_demand': calculate_period_total(points, start_year, end_year),
        'period_years': end_year - start_year + 1,
        'gap_vs_reference_supply': average - reference_supply,
    }


COMPARISON_COLUMNS = ['row', 'early_period_average', 'late_period_average', 'window_total']


def summarize_periods(
    selected: Any,
    scenarios: Sequence[Any],
    settings: ProjectionSettings,
) -> pd.DataFrame:
    """
    Compare a selected scenario with the spread of all scenarios.

    Periods come from settings: early = start_year..period_break,
    late = period_break+1..end_year, total = start_year..end_year.
    Figures are multiplied by settings.output_scale.

    Returns:
        DataFrame with rows selected/minimum/maximum/average
    """
    scale = settings.output_scale
    early = (settings.start_year, settings.period_break)
    late = (settings.period_break + 1, settings.end_year)
    window = (settings.start_year, settings.end_year)

    def stats_for(series) -> Dict[str, float]:
        points = list(_time_series(series))
        return {
            'early_period_average': calculate_period_average(points, *early) * scale,
            'late_period_average': calculate_period_average(points, *late) * scale,
            'window_total': calculate_period_total(points, *window) * scale,
        }

    selected_stats = {'row': 'selected', **stats_for(selected)}
    rows = [selected_stats]

    if scenarios:
        all_stats = pd.DataFrame([stats_for(s) for s in scenarios])
        rows.append({'row': 'minimum', **all_stats.min().to_dict()})
        rows.append({'row': 'maximum', **all_stats.max().to_dict()})
        rows.append({'row': 'average', **all_stats.mean().to_dict()})
    else:
        logger.debug("No scenarios supplied; comparison summary holds the selection only")

    return pd.DataFrame(rows, columns=COMPARISON_COLUMNS)
