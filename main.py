"""
Main Pipeline for Housing Demand Projections

Runs the scenario projection workflow: load inputs, validate them, project
the aggregate and cohort scenario matrices, and write comparison outputs.
"""

import argparse
import json
from pathlib import Path
from loguru import logger
import sys

# Add src directory to path
sys.path.append(str(Path(__file__).parent))

from config.config import DATA_OUTPUTS_DIR, ensure_directories, get_projection_settings
from src.cleaning.data_validator import ProjectionInputValidator
from src.modeling.demand_model import HousingDemandModeler
from src.reporting.comparisons import ComparisonReporter
from src.utils.analysis_logger import AnalysisLogger


def setup_logging(log_file: Path = None):
    """
    Configure logging for the pipeline.

    Args:
        log_file: Optional path to log file
    """
    logger.remove()  # Remove default handler

    # Console logging
    logger.add(
        sys.stderr,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <level>{message}</level>",
        level="INFO"
    )

    # File logging
    if log_file:
        logger.add(
            log_file,
            format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {message}",
            level="DEBUG",
            rotation="10 MB"
        )


def load_json(path: Path) -> dict:
    if not path.exists():
        raise FileNotFoundError(f"Input file not found: {path}")
    with open(path, 'r', encoding='utf-8') as f:
        return json.load(f)


def run_aggregate_phase(args, modeler, reporter, run_log):
    """Project the aggregate (total population) scenario matrix."""
    logger.info("=" * 70)
    logger.info("AGGREGATE SCENARIO MATRIX")
    logger.info("=" * 70)

    run_log.start_phase("Aggregate Matrix", "Population x headship x obsolescence projections")
    scenarios_file = load_json(args.scenarios)

    validator = ProjectionInputValidator(check_cohort_totals=args.check_cohort_totals)
    issues_df, report = validator.validate_inputs(
        scenarios_file.get('populationScenarios', {}),
        scenarios_file.get('headshipScenarios', {}),
    )
    run_log.add_metric('input_issues', report['issues_found'], "Issues flagged by input validation")

    inputs = modeler.build_aggregate_inputs(scenarios_file)
    projection = modeler.project_selection(inputs, args.migration, args.headship, args.obsolescence)

    run_log.add_metric('scenarios_generated', len(projection.all_scenarios))
    run_log.add_metric('selected_scenario', projection.selected.id)
    run_log.add_metric('fallback_used', projection.fallback_used, "Unknown selection key replaced by default")

    summary = reporter.generate_comparisons(projection, name="aggregate")
    run_log.add_output(reporter.comparisons_dir / "aggregate_comparison.csv", "csv", "Selected vs all scenarios")
    run_log.complete_phase(success=True)
    return summary


def run_cohort_phase(args, modeler, reporter, run_log):
    """Project the cohort (migration x headship pathway) scenario matrix."""
    logger.info("\n" + "=" * 70)
    logger.info("COHORT SCENARIO MATRIX")
    logger.info("=" * 70)

    run_log.start_phase("Cohort Matrix", "Migration x headship convergence projections")
    population = modeler.build_cohort_population(load_json(args.population_by_cohort))
    migration = args.cohort_migration or args.migration
    projection = modeler.project_cohort_selection(population, migration, args.cohort_headship)

    run_log.add_metric('scenarios_generated', len(projection.all_scenarios))
    run_log.add_metric('selected_scenario', projection.selected.id)
    run_log.add_metric('fallback_used', projection.fallback_used, "Unknown selection key replaced by default")

    summary = reporter.generate_comparisons(projection, name="cohort")
    run_log.add_output(reporter.comparisons_dir / "cohort_comparison.csv", "csv", "Selected vs all scenarios")
    run_log.complete_phase(success=True)
    return summary


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Housing demand scenario projections")
    parser.add_argument('--scenarios', type=Path, help="Aggregate scenarios JSON file")
    parser.add_argument('--population-by-cohort', type=Path, help="Cohort population projections JSON file")
    parser.add_argument('--migration', default=None, help="Selected population/migration scenario key")
    parser.add_argument('--headship', default=None, help="Selected headship scenario key (scenarios file)")
    parser.add_argument('--cohort-migration', default=None,
                        help="Selected migration scenario for the cohort model (defaults to --migration)")
    parser.add_argument('--cohort-headship', default=None,
                        help="Selected headship pathway for the cohort model (current, gradual, fast)")
    parser.add_argument('--obsolescence', default=None, help="Selected obsolescence scenario key")
    parser.add_argument('--output-dir', type=Path, default=DATA_OUTPUTS_DIR)
    parser.add_argument('--workers', type=int, default=None, help="Processes for scenario matrices")
    parser.add_argument('--check-cohort-totals', action='store_true',
                        help="Flag cohort sums that disagree with population totals")
    parser.add_argument('--log-file', type=Path, default=None)
    return parser


def main():
    parser = build_parser()
    args = parser.parse_args()

    setup_logging(args.log_file)
    ensure_directories()

    if not args.scenarios and not args.population_by_cohort:
        parser.error("Provide --scenarios and/or --population-by-cohort")

    settings = get_projection_settings()
    modeler = HousingDemandModeler(settings, max_workers=args.workers)
    reporter = ComparisonReporter(outputs_dir=args.output_dir, settings=settings)
    run_log = AnalysisLogger(output_dir=args.output_dir)
    run_log.set_metadata('base_year', settings.base_year)
    run_log.set_metadata('window', f"{settings.start_year}-{settings.end_year}")

    try:
        if args.scenarios:
            run_aggregate_phase(args, modeler, reporter, run_log)
        else:
            run_log.skip_phase("Aggregate Matrix", "No scenarios file supplied")

        if args.population_by_cohort:
            run_cohort_phase(args, modeler, reporter, run_log)
        else:
            run_log.skip_phase("Cohort Matrix", "No cohort population file supplied")

        run_log.start_phase("Save Results")
        for name, path in modeler.save_results(args.output_dir).items():
            run_log.add_output(path, "csv", name)
        run_log.complete_phase(success=True)
    except Exception as exc:
        logger.error(f"Projection run failed: {exc}")
        run_log.complete_phase(success=False, message=str(exc))
        raise
    finally:
        run_log.save_log()

    logger.info("Projection run complete!")


if __name__ == "__main__":
    main()
