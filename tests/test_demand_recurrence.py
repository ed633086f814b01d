import sys
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).parent.parent))

from src.modeling.demand_recurrence import (
    calculate_annual_demand,
    calculate_total_households,
    project_aggregate_demand,
    project_cohort_demand,
    project_cohort_demand_with_convergence,
)
from src.modeling.headship_convergence import HeadshipPathway, RateConvergenceModel
from src.utils.modeling_utils import COHORTS, HeadshipYear, InvalidInputError


def _cohort_population(per_cohort_by_year):
    return {
        year: {"total": value * len(COHORTS), "cohorts": {c: value for c in COHORTS}}
        for year, value in per_cohort_by_year.items()
    }


def _cohort_headship(rate, years):
    return {year: {"cohorts": {c: rate for c in COHORTS}} for year in years}


def test_annual_demand_components():
    components = calculate_annual_demand(
        population=10_100_000,
        prev_population=10_000_000,
        headship_rate=0.41,
        prev_headship_rate=0.40,
        housing_stock=2_000_000,
        obsolescence_rate=0.0025,
    )

    assert components.new_households_from_pop_growth == pytest.approx(41_000)
    assert components.new_households_from_existing_pop == pytest.approx(100_000)
    assert components.new_households == pytest.approx(141_000)
    assert components.replacement == pytest.approx(5_000)
    assert components.total == pytest.approx(146_000)


def test_aggregate_projection_single_step():
    series = project_aggregate_demand(
        {2022: 10_000_000, 2023: 10_100_000},
        {2022: 0.40, 2023: 0.41},
        0.0025,
        2_000_000,
    )

    assert len(series) == 1
    point = series[0]
    assert point.year == 2023
    assert point.demand == pytest.approx(146_000)
    assert point.housing_stock == pytest.approx(2_146_000)


def test_aggregate_stock_carries_forward():
    series = project_aggregate_demand(
        {2022: 10_000_000, 2023: 10_100_000, 2024: 10_200_000},
        {2022: 0.40, 2023: 0.41, 2024: 0.41},
        0.0025,
        2_000_000,
    )

    assert [p.year for p in series] == [2023, 2024]
    assert series[1].replacement == pytest.approx(2_146_000 * 0.0025)
    assert series[1].demand == pytest.approx(41_000 + 5_365)
    for prev, point in zip(series, series[1:]):
        assert point.housing_stock == pytest.approx(prev.housing_stock + point.demand)


def test_fewer_than_two_years_gives_empty_projection():
    assert project_aggregate_demand({2022: 100}, {2022: 0.4}, 0.01, 50) == ()
    assert project_cohort_demand({}, {}, 0.01, 50) == ()


def test_zero_growth_and_obsolescence_gives_zero_demand():
    series = project_aggregate_demand(
        {2022: 1000, 2023: 1000, 2024: 1000},
        {2022: 0.5, 2023: 0.5, 2024: 0.5},
        0.0,
        400,
    )

    assert all(p.demand == 0 for p in series)
    assert all(p.housing_stock == 400 for p in series)


def test_single_overlapping_year_gives_empty_projection():
    assert project_aggregate_demand({2022: 100, 2023: 110}, {2022: 0.4}, 0.01, 50) == ()
    assert project_cohort_demand(
        _cohort_population({2022: 10, 2023: 11}), _cohort_headship(0.5, [2023]), 0.01, 50
    ) == ()


def test_projection_runs_over_years_covered_by_both_series():
    series = project_aggregate_demand(
        {2022: 1000, 2023: 1100, 2024: 1200, 2025: 1300},
        {2022: 0.5, 2023: 0.5, 2024: 0.5},
        0.0,
        0,
    )

    assert [p.year for p in series] == [2023, 2024]
    assert [p.demand for p in series] == pytest.approx([50, 50])


def test_cohort_projection_runs_over_years_covered_by_both_series():
    series = project_cohort_demand(
        _cohort_population({2022: 100, 2023: 110, 2024: 120, 2025: 130}),
        _cohort_headship(0.5, [2023, 2024, 2025]),
        0.0,
        0,
    )

    assert [p.year for p in series] == [2024, 2025]


def test_cohort_only_headship_is_rejected_by_aggregate_model():
    headship = {
        2022: HeadshipYear(cohorts={"20-24": 0.2}),
        2023: HeadshipYear(cohorts={"20-24": 0.2}),
    }
    with pytest.raises(InvalidInputError, match="aggregate"):
        project_aggregate_demand({2022: 100, 2023: 110}, headship, 0.01, 50)


def test_total_households_treats_missing_cohorts_as_zero():
    population = {"20-24": 1000, "25-29": 2000}
    rates = {"20-24": 0.1, "65+": 0.6}

    assert calculate_total_households(population, rates) == pytest.approx(100)
    assert calculate_total_households(None, rates) == 0.0
    assert calculate_total_households({}, rates) == 0.0


def test_cohort_projection_known_values():
    years = [2022, 2023, 2024]
    series = project_cohort_demand(
        _cohort_population({2022: 10_000, 2023: 11_000, 2024: 12_000}),
        _cohort_headship(0.5, years),
        0.01,
        100_000,
    )

    first, second = series
    assert first.year == 2023
    assert first.household_growth == pytest.approx(5_500)
    assert first.replacement == pytest.approx(1_000)
    assert first.demand == pytest.approx(6_500)
    assert first.total_households == pytest.approx(60_500)
    assert first.housing_stock == pytest.approx(106_500)

    assert second.household_growth == pytest.approx(5_500)
    assert second.replacement == pytest.approx(1_065)
    assert second.demand == pytest.approx(6_565)


def test_cohort_stock_carries_forward_every_year():
    years = list(range(2022, 2032))
    series = project_cohort_demand(
        _cohort_population({year: 10_000 + 250 * i for i, year in enumerate(years)}),
        _cohort_headship(0.45, years),
        0.0025,
        200_000,
    )

    assert len(series) == len(years) - 1
    assert series[0].housing_stock == pytest.approx(200_000 + series[0].demand)
    for prev, point in zip(series, series[1:]):
        assert point.replacement == pytest.approx(prev.housing_stock * 0.0025)
        assert point.housing_stock == pytest.approx(prev.housing_stock + point.demand)


def test_repeated_projections_are_identical():
    population = {2022: 5_000_000, 2026: 5_200_000, 2023: 5_050_000}
    headship = {2026: 0.41, 2022: 0.40, 2023: 0.402}

    reordered_population = dict(reversed(list(population.items())))
    reordered_headship = dict(reversed(list(headship.items())))

    first = project_aggregate_demand(population, headship, 0.0025, 2_000_000)
    second = project_aggregate_demand(reordered_population, reordered_headship, 0.0025, 2_000_000)

    assert first == second
    assert [p.year for p in first] == [2023, 2026]

    cohort_population = _cohort_population({2022: 10_000, 2023: 10_300, 2024: 10_500})
    cohort_headship = _cohort_headship(0.5, [2022, 2023, 2024])
    first = project_cohort_demand(cohort_population, cohort_headship, 0.01, 100_000)
    second = project_cohort_demand(cohort_population, cohort_headship, 0.01, 100_000)

    assert first == second
    assert len(first) == 2


def test_cohort_projection_ignores_reported_total():
    population = {
        2022: {"total": 1, "cohorts": {"30-34": 1000}},
        2023: {"total": 999_999, "cohorts": {"30-34": 1100}},
    }
    headship = _cohort_headship(0.5, [2022, 2023])

    series = project_cohort_demand(population, headship, 0.0, 0)

    assert series[0].household_growth == pytest.approx(50)


def test_static_pathway_matches_fixed_rate_projection():
    population = _cohort_population({2022: 10_000, 2023: 11_000, 2024: 12_000})
    model = RateConvergenceModel({c: 0.5 for c in COHORTS}, {c: 0.7 for c in COHORTS}, 2022)
    static = HeadshipPathway(key="current", label="Current", static=True)

    via_pathway = project_cohort_demand_with_convergence(population, model, static, 0.01, 100_000)
    fixed = project_cohort_demand(population, _cohort_headship(0.5, [2022, 2023, 2024]), 0.01, 100_000)

    assert via_pathway == fixed


def test_converging_rates_add_households_from_existing_population():
    population = _cohort_population({2022: 10_000, 2023: 10_000})
    model = RateConvergenceModel({c: 0.5 for c in COHORTS}, {c: 0.6 for c in COHORTS}, 2022)
    fast = HeadshipPathway(key="fast", label="Fast", horizon_years=1)

    series = project_cohort_demand_with_convergence(population, model, fast, 0.0, 0)

    assert series[0].household_growth == pytest.approx(0.1 * 10_000 * len(COHORTS))
