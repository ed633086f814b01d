import sys
from pathlib import Path

sys.path.append(str(Path(__file__).parent.parent))

from src.cleaning.data_validator import ProjectionInputValidator


THRESHOLDS = {'cohort_total_tolerance': 0.01, 'min_rate': 0.0, 'max_rate': 1.0}


def test_clean_inputs_report_no_issues():
    validator = ProjectionInputValidator(thresholds=THRESHOLDS, check_cohort_totals=True)

    issues_df, report = validator.validate_inputs(
        {'M1': {'data': {"2022": {"total": 300, "cohorts": {"20-24": 100, "25-29": 200}}}}},
        {'flat': {'data': {"2022": 0.4, "2030": 0.45}}},
    )

    assert issues_df.empty
    assert report['scenarios_checked'] == 2
    assert report['issues_found'] == 0


def test_negative_population_and_unknown_cohort_flagged():
    validator = ProjectionInputValidator(thresholds=THRESHOLDS)

    issues = validator.validate_population({
        'bad': {'data': {
            "2022": {"total": -5, "cohorts": {"20-24": -1, "90-94": 3}},
        }},
    })

    checks = sorted(issue['check'] for issue in issues)
    assert checks == ['negative_populations', 'negative_populations', 'unknown_cohorts']
    assert validator.validation_report['negative_populations'] == 2


def test_cohort_total_mismatch_only_checked_when_enabled():
    population = {
        'M1': {'data': {"2022": {"total": 1000, "cohorts": {"20-24": 100, "25-29": 200}}}},
    }

    relaxed = ProjectionInputValidator(thresholds=THRESHOLDS)
    assert relaxed.validate_population(population) == []

    strict = ProjectionInputValidator(thresholds=THRESHOLDS, check_cohort_totals=True)
    issues = strict.validate_population(population)
    assert [issue['check'] for issue in issues] == ['cohort_total_mismatches']
    assert issues[0]['year'] == 2022


def test_rates_out_of_range_flagged():
    validator = ProjectionInputValidator(thresholds=THRESHOLDS)

    issues = validator.validate_headship({
        'odd': {'data': {
            "2022": {"aggregate": 1.2, "cohorts": {"20-24": -0.1, "25-29": 0.3}},
        }},
    })

    assert [issue['check'] for issue in issues] == ['rates_out_of_range', 'rates_out_of_range']


def test_malformed_series_recorded_not_raised():
    validator = ProjectionInputValidator(thresholds=THRESHOLDS)

    issues_df, report = validator.validate_inputs(
        {'empty': {'data': {}}, 'dup': {'data': {"2022": 1, 2022: 2}}},
        {},
    )

    assert report['malformed_series'] == 2
    assert set(issues_df['scenario']) == {'empty', 'dup'}


def test_non_numeric_values_recorded_not_raised():
    validator = ProjectionInputValidator(thresholds=THRESHOLDS, check_cohort_totals=True)

    issues_df, report = validator.validate_inputs(
        {
            'text_total': {'data': {"2022": {"total": "n/a"}}},
            'text_cohort': {'data': {"2022": {"total": 100, "cohorts": {"20-24": "lots", "25-29": 100}}}},
            'bare_none': {'data': {"2022": None}},
        },
        {
            'null_rate': {'data': {"2022": None}},
            'text_rate': {'data': {"2022": {"aggregate": "high", "cohorts": {"65+": 0.6}}}},
        },
    )

    assert report['malformed_series'] == 5
    assert report['cohort_total_mismatches'] == 0
    assert set(issues_df.loc[issues_df['check'] == 'malformed_series', 'scenario']) == {
        'text_total', 'text_cohort', 'bare_none', 'null_rate', 'text_rate'
    }
    assert set(issues_df['year'].dropna()) == {2022}
