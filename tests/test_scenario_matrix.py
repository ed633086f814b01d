import sys
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).parent.parent))

from src.modeling.headship_convergence import HeadshipPathway, RateConvergenceModel
from src.modeling.scenario_matrix import (
    HeadshipScenario,
    ObsolescenceScenario,
    PopulationScenario,
    generate_all_cohort_scenarios,
    generate_all_scenarios,
    pathway_headship_scenarios,
    resolve_selection,
    scenario_id,
)
from src.utils.modeling_utils import COHORTS, InvalidInputError


def _population_scenarios():
    return {
        key: PopulationScenario.from_mapping(key, {
            'label': f"Population {key}",
            'data': {"2022": 5_000_000, "2030": 5_000_000 + growth * 8},
        })
        for key, growth in (("M1", 60_000), ("M2", 40_000), ("M3", 20_000))
    }


def _headship_scenarios():
    return {
        key: HeadshipScenario.from_mapping(key, {
            'label': f"Headship {key}",
            'data': {"2022": 0.38, "2030": end_rate},
        })
        for key, end_rate in (("flat", 0.38), ("rise", 0.40), ("fall", 0.37))
    }


def _obsolescence_scenarios():
    return {
        "low": ObsolescenceScenario(key="low", label="0.25%", rate=0.0025),
        "high": ObsolescenceScenario(key="high", label="0.5%", rate=0.005),
    }


def test_matrix_covers_every_combination_in_nested_order():
    results = generate_all_scenarios(
        _population_scenarios(), _headship_scenarios(), _obsolescence_scenarios(), 2_000_000
    )

    ids = [r.id for r in results]
    assert len(results) == 18
    assert len(set(ids)) == 18
    assert ids[:3] == ["M1-flat-low", "M1-flat-high", "M1-rise-low"]
    assert ids[-1] == "M3-fall-high"


def test_results_carry_labels_and_full_series():
    results = generate_all_scenarios(
        _population_scenarios(), _headship_scenarios(), _obsolescence_scenarios(), 2_000_000
    )

    first = results[0]
    assert first.population == "M1"
    assert first.population_label == "Population M1"
    assert first.headship_label == "Headship flat"
    assert first.obsolescence_label == "0.25%"
    assert [p.year for p in first.time_series] == list(range(2023, 2031))


def test_parallel_matrix_matches_sequential():
    args = (_population_scenarios(), _headship_scenarios(), _obsolescence_scenarios(), 2_000_000)

    sequential = generate_all_scenarios(*args)
    parallel = generate_all_scenarios(*args, max_workers=2)

    assert parallel == sequential


def test_short_headship_scenario_does_not_sink_the_matrix():
    population = {
        "M1": PopulationScenario.from_mapping("M1", {'data': {"2022": 1_000_000, "2026": 1_040_000}}),
    }
    headship = {
        "ok": HeadshipScenario.from_mapping("ok", {'data': {"2022": 0.4, "2026": 0.4}}),
        "short": HeadshipScenario.from_mapping("short", {'data': {"2022": 0.4, "2024": 0.4}}),
        "stub": HeadshipScenario.from_mapping("stub", {'data': {"2022": 0.4}}),
    }
    obsolescence = {"low": ObsolescenceScenario(key="low", label="0.25%", rate=0.0025)}

    results = {r.id: r for r in generate_all_scenarios(population, headship, obsolescence, 500_000)}

    assert [p.year for p in results["M1-ok-low"].time_series] == [2023, 2024, 2025, 2026]
    assert [p.year for p in results["M1-short-low"].time_series] == [2023, 2024]
    assert results["M1-stub-low"].time_series == ()


def test_empty_dimension_gives_empty_matrix():
    results = generate_all_scenarios(_population_scenarios(), {}, _obsolescence_scenarios(), 2_000_000)
    assert results == []


def test_scenario_id_rejects_keys_containing_separator():
    assert scenario_id("M1", "fast") == "M1-fast"
    with pytest.raises(InvalidInputError):
        scenario_id("high-migration", "fast")
    with pytest.raises(InvalidInputError):
        scenario_id("", "fast")


def test_obsolescence_scenario_requires_rate():
    with pytest.raises(InvalidInputError):
        ObsolescenceScenario.from_mapping("x", {'label': "No rate"})


def test_resolve_selection_falls_back_to_first_key():
    exact = resolve_selection("M2", ["M1", "M2"])
    assert exact.key == "M2"
    assert not exact.fallback_used

    fallback = resolve_selection("M9", ["M1", "M2"])
    assert fallback.key == "M1"
    assert fallback.fallback_used

    with pytest.raises(InvalidInputError):
        resolve_selection("M1", [])


def test_cohort_matrix_with_convergence_pathways():
    population = {
        key: PopulationScenario.from_mapping(key, {
            'label': key,
            'data': {
                "2022": {"total": 0, "cohorts": {c: 10_000 for c in COHORTS}},
                "2026": {"total": 0, "cohorts": {c: 10_000 + step for c in COHORTS}},
            },
        })
        for key, step in (("M1", 800), ("M2", 400))
    }
    model = RateConvergenceModel({c: 0.5 for c in COHORTS}, {c: 0.6 for c in COHORTS}, 2022)
    pathways = {
        "current": HeadshipPathway(key="current", label="Irish Current", static=True),
        "fast": HeadshipPathway(key="fast", label="Fast Convergence", horizon_years=2),
    }
    headship = pathway_headship_scenarios(model, pathways, 2022, 2026)

    results = generate_all_cohort_scenarios(population, headship, 0.0025, 2_300_000)

    assert [r.id for r in results] == ["M1-current", "M1-fast", "M2-current", "M2-fast"]
    assert results[1].headship_label == "Fast Convergence"

    current_total = sum(p.demand for p in results[0].time_series)
    fast_total = sum(p.demand for p in results[1].time_series)
    assert fast_total > current_total
