"""Tests for comparison reporting outputs."""

import pandas as pd
import pytest

from config.config import ProjectionSettings
from src.modeling.demand_model import HousingDemandModeler
from src.reporting.comparisons import ComparisonReporter


SETTINGS = ProjectionSettings(
    base_year=2022,
    start_year=2023,
    end_year=2025,
    period_break=2024,
    fast_convergence_years=11,
    gradual_convergence_years=26,
    default_obsolescence_rate=0.0025,
    base_housing_stock=2_000_000,
    reference_supply=33_000,
    reference_need=52_000,
)


def _projection(population='central', headship='flat', obsolescence='none'):
    modeler = HousingDemandModeler(SETTINGS)
    inputs = modeler.build_aggregate_inputs({
        'populationScenarios': {
            'central': {'label': "Central", 'data': {"2022": 1_000_000, "2025": 1_300_000}},
            'low': {'label': "Low", 'data': {"2022": 1_000_000, "2025": 1_150_000}},
        },
        'headshipScenarios': {
            'flat': {'label': "Flat", 'data': {"2022": 0.5, "2025": 0.5}},
        },
        'obsolescenceScenarios': {
            'none': {'label': "None", 'rate': 0.0},
        },
    })
    return modeler.project_selection(inputs, population, headship, obsolescence)


def test_comparison_outputs_created(tmp_path):
    reporter = ComparisonReporter(outputs_dir=tmp_path, settings=SETTINGS)

    comparison_df = reporter.generate_comparisons(_projection(), name="aggregate")

    csv_path = tmp_path / 'comparisons' / 'aggregate_comparison.csv'
    snippet_path = tmp_path / 'comparisons' / 'aggregate_report_snippet.md'

    assert csv_path.exists(), "Comparison CSV should be written"
    assert snippet_path.exists(), "Markdown snippet should be written"
    assert not comparison_df.empty, "Comparison dataframe should not be empty"

    csv = pd.read_csv(csv_path)
    assert list(csv['row']) == ['selected', 'minimum', 'maximum', 'average']
    assert {'early_period_average', 'late_period_average', 'window_total'} <= set(csv.columns)


def test_headline_stats_against_reference_benchmarks(tmp_path):
    reporter = ComparisonReporter(outputs_dir=tmp_path, settings=SETTINGS)

    stats = reporter.headline_stats(_projection())

    # 100k people a year at a 0.5 rate
    assert stats['average_annual_demand'] == pytest.approx(50_000)
    assert stats['total_demand'] == pytest.approx(150_000)
    assert stats['period_years'] == 3
    assert stats['gap_vs_reference_supply'] == pytest.approx(17_000)
    assert stats['gap_vs_reference_need'] == pytest.approx(-2_000)


def test_snippet_is_utf8_and_mentions_selection(tmp_path):
    reporter = ComparisonReporter(outputs_dir=tmp_path, settings=SETTINGS)
    reporter.generate_comparisons(_projection(), name="aggregate")

    text = (tmp_path / 'comparisons' / 'aggregate_report_snippet.md').read_text(encoding='utf-8')

    assert "2023–2025" in text
    assert "Central + Flat + None" in text
    assert "Warning" not in text


def test_snippet_flags_fallback_selection(tmp_path):
    reporter = ComparisonReporter(outputs_dir=tmp_path, settings=SETTINGS)
    reporter.generate_comparisons(_projection(population='unknown'), name="fallback")

    text = (tmp_path / 'comparisons' / 'fallback_report_snippet.md').read_text(encoding='utf-8')

    assert "'unknown' was not found" in text
    assert "'central' was used instead" in text
