"""
Comparison reporting utilities for housing demand scenarios.

Generates a CSV and a markdown snippet comparing a selected scenario with
the minimum, maximum and average across the full scenario set, plus
headline figures against the reference supply and need benchmarks.
"""

from pathlib import Path
from typing import Dict, Optional

import numpy as np
import pandas as pd
from loguru import logger

from config.config import DATA_OUTPUTS_DIR, ProjectionSettings, get_projection_settings
from src.analysis.scenario_aggregation import projection_stats, summarize_periods
from src.modeling.demand_model import SelectionProjection


def _format_units(value: float) -> str:
    if value is None or np.isnan(value):
        return "N/A"
    return f"{round(value):,}"


class ComparisonReporter:
    """Generate comparison artefacts for a selected scenario against all scenarios."""

    def __init__(self, outputs_dir: Optional[Path] = None, settings: Optional[ProjectionSettings] = None):
        self.outputs_dir = Path(outputs_dir or DATA_OUTPUTS_DIR)
        self.outputs_dir.mkdir(parents=True, exist_ok=True)
        self.comparisons_dir = self.outputs_dir / "comparisons"
        self.comparisons_dir.mkdir(parents=True, exist_ok=True)

        self.settings = settings or get_projection_settings()

    def _selection_label(self, projection: SelectionProjection) -> str:
        selected = projection.selected
        labels = [
            getattr(selected, attr) for attr in (
                'population_label', 'migration_label', 'headship_label', 'obsolescence_label'
            )
            if hasattr(selected, attr)
        ]
        return " + ".join(labels)

    def headline_stats(self, projection: SelectionProjection) -> Dict[str, float]:
        """Average need, total units and gap vs reference supply for the selection (scaled)."""
        stats = projection_stats(
            projection.selected.time_series,
            self.settings.start_year,
            self.settings.end_year,
            self.settings.reference_supply / self.settings.output_scale,
        )
        scale = self.settings.output_scale
        return {
            'average_annual_demand': stats['average_annual_demand'] * scale,
            'total_demand': stats['total_demand'] * scale,
            'period_years': stats['period_years'],
            'gap_vs_reference_supply': stats['gap_vs_reference_supply'] * scale,
            'gap_vs_reference_need': stats['average_annual_demand'] * scale - self.settings.reference_need,
        }

    def _write_markdown(self, projection: SelectionProjection, summary: pd.DataFrame, name: str) -> Path:
        snippet_path = self.comparisons_dir / f"{name}_report_snippet.md"
        s = self.settings
        headline = self.headline_stats(projection)
        rows = summary.set_index('row')

        lines = [
            "# Housing demand scenario comparison",
            "",
            f"**Selected scenario:** {self._selection_label(projection)} (`{projection.selected.id}`)",
            f"**Scenarios compared:** {len(projection.all_scenarios)}",
            "",
            "## Headline figures",
            f"- Average annual need {s.start_year}–{s.end_year}: {_format_units(headline['average_annual_demand'])} units/year",
            f"- Total units needed: {_format_units(headline['total_demand'])} over {headline['period_years']} years",
            f"- Gap vs reference supply ({_format_units(s.reference_supply)}/year): "
            f"{headline['gap_vs_reference_supply']:+,.0f}",
            f"- Gap vs reference need ({_format_units(s.reference_need)}/year): "
            f"{headline['gap_vs_reference_need']:+,.0f}",
            "",
            f"## Period comparison (early {s.start_year}–{s.period_break}, late {s.period_break + 1}–{s.end_year})",
            "",
            "| | Early avg/year | Late avg/year | Total |",
            "|---|---|---|---|",
        ]

        for row_name, row in rows.iterrows():
            lines.append(
                f"| {row_name.capitalize()} | {_format_units(row['early_period_average'])} | "
                f"{_format_units(row['late_period_average'])} | {_format_units(row['window_total'])} |"
            )

        resolved = [r for r in projection.resolved.values() if r.fallback_used]
        if resolved:
            lines.append("")
            for r in resolved:
                lines.append(f"> Warning: scenario '{r.requested}' was not found; '{r.key}' was used instead.")

        snippet_path.write_text("\n".join(lines), encoding="utf-8")
        logger.info(f"Wrote markdown snippet to {snippet_path}")
        return snippet_path

    def generate_comparisons(self, projection: SelectionProjection, name: str = "demand") -> pd.DataFrame:
        """Generate CSV and markdown comparing the selected scenario with all scenarios."""
        summary = summarize_periods(projection.selected, projection.all_scenarios, self.settings)

        csv_path = self.comparisons_dir / f"{name}_comparison.csv"
        summary.to_csv(csv_path, index=False)
        logger.info(f"Saved comparison CSV to {csv_path}")

        self._write_markdown(projection, summary, name)

        if summary['row'].eq('minimum').any():
            rows = summary.set_index('row')
            if np.isclose(rows.loc['minimum', 'window_total'], rows.loc['maximum', 'window_total']):
                logger.warning("All scenarios produce the same total demand; check scenario inputs.")

        return summary
