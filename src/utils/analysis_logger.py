"""
Projection Run Logger - Tracks projection phases, metrics and outputs
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Dict, Any, List, Optional
import json
import numpy as np
from loguru import logger


def convert_to_json_serializable(obj: Any) -> Any:
    """
    Recursively convert numpy, datetime and path values to JSON-serializable types.

    Args:
        obj: Object to convert

    Returns:
        JSON-serializable version of the object
    """
    if isinstance(obj, np.integer):
        return int(obj)
    elif isinstance(obj, np.floating):
        return float(obj)
    elif isinstance(obj, np.ndarray):
        return obj.tolist()
    elif isinstance(obj, (Path, datetime)):
        return str(obj) if isinstance(obj, Path) else obj.isoformat()
    elif isinstance(obj, dict):
        return {key: convert_to_json_serializable(value) for key, value in obj.items()}
    elif isinstance(obj, (list, tuple)):
        return [convert_to_json_serializable(item) for item in obj]
    else:
        return obj


@dataclass
class PhaseRecord:
    """One phase of a projection run (e.g. the aggregate scenario matrix)."""
    number: int
    name: str
    description: str = ""
    status: str = "in_progress"
    message: str = ""
    started: datetime = field(default_factory=datetime.now)
    finished: Optional[datetime] = None
    metrics: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    outputs: List[Dict[str, str]] = field(default_factory=list)

    @property
    def duration_seconds(self) -> float:
        if self.finished is None:
            return 0.0
        return (self.finished - self.started).total_seconds()


class AnalysisLogger:
    """
    Records the phases of a projection run with their metrics and output
    files, and writes the run log as text and JSON.
    """

    def __init__(self, output_dir: Path = None):
        if output_dir is None:
            from config.config import DATA_OUTPUTS_DIR
            output_dir = DATA_OUTPUTS_DIR

        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)

        self.start_time = datetime.now()
        self.phases: List[PhaseRecord] = []
        self.current_phase: Optional[PhaseRecord] = None
        self.metadata: Dict[str, Any] = {'run_start': self.start_time.isoformat()}

    def start_phase(self, phase_name: str, description: str = ""):
        """Open a phase; a phase still in progress is closed as successful first."""
        if self.current_phase is not None:
            self.complete_phase(success=True, message="Auto-completed")

        self.current_phase = PhaseRecord(
            number=len(self.phases) + 1,
            name=phase_name,
            description=description,
        )
        logger.info(f"Starting phase {self.current_phase.number}: {phase_name}")

    def add_metric(self, key: str, value: Any, description: str = ""):
        """Add a metric (e.g. scenarios_generated) to the current phase."""
        if self.current_phase is None:
            logger.warning(f"Cannot add metric '{key}' - no active phase")
            return
        self.current_phase.metrics[key] = {'value': value, 'description': description}

    def add_output(self, output_path: str, output_type: str = "file", description: str = ""):
        """Record a file written during the current phase."""
        if self.current_phase is None:
            logger.warning(f"Cannot add output '{output_path}' - no active phase")
            return
        self.current_phase.outputs.append({
            'path': str(output_path),
            'type': output_type,
            'description': description,
        })

    def complete_phase(self, success: bool = True, message: str = ""):
        """
        Close the current phase.

        Args:
            success: Whether the phase completed successfully
            message: Optional completion message or error description
        """
        phase = self.current_phase
        if phase is None:
            logger.warning("Cannot complete phase - no active phase")
            return

        phase.finished = datetime.now()
        phase.status = 'completed' if success else 'failed'
        phase.message = message
        self.phases.append(phase)
        self.current_phase = None

        log = logger.info if success else logger.error
        log(f"Phase {phase.number} {phase.status}: {phase.name} ({phase.duration_seconds:.1f}s)")

    def skip_phase(self, phase_name: str, reason: str = ""):
        """Record a phase that was not run (e.g. no cohort population file)."""
        now = datetime.now()
        self.phases.append(PhaseRecord(
            number=len(self.phases) + 1,
            name=phase_name,
            status='skipped',
            message=reason,
            started=now,
            finished=now,
        ))
        logger.info(f"Phase skipped: {phase_name} - {reason}")

    def set_metadata(self, key: str, value: Any):
        self.metadata[key] = value

    @staticmethod
    def _format_metric_value(value: Any) -> str:
        if isinstance(value, bool):
            return "yes" if value else "no"
        if isinstance(value, float):
            return f"{value:,.0f}" if abs(value) >= 1000 else f"{value:.4f}"
        if isinstance(value, int):
            return f"{value:,}"
        return str(value)

    def generate_text_summary(self) -> str:
        """Render the run as a phase table followed by per-phase metrics and outputs."""
        stats = self.get_summary_stats()
        lines = ["Housing demand projection run", ""]
        lines.extend(f"  {key:<24} {value}" for key, value in self.metadata.items())

        lines += ["", f"{'#':>3}  {'Phase':<28}{'Status':<12}{'Seconds':>8}"]
        lines.append("  " + "-" * 51)
        for phase in self.phases:
            lines.append(
                f"{phase.number:>3}  {phase.name:<28}{phase.status:<12}{phase.duration_seconds:>8.1f}"
            )

        for phase in self.phases:
            if not (phase.metrics or phase.outputs or phase.message):
                continue
            lines += ["", f"[{phase.number}] {phase.name}"]
            if phase.message:
                lines.append(f"    note: {phase.message}")
            for key, metric in phase.metrics.items():
                suffix = f"  ({metric['description']})" if metric.get('description') else ""
                lines.append(f"    {key} = {self._format_metric_value(metric['value'])}{suffix}")
            for output in phase.outputs:
                lines.append(f"    -> {output['path']} [{output['type']}]")

        lines += [
            "",
            f"{stats['successful_phases']} succeeded, {stats['failed_phases']} failed, "
            f"{stats['skipped_phases']} skipped in {stats['total_duration_seconds']:.1f}s",
        ]
        return "\n".join(lines)

    def save_log(self, filename: str = "projection_run_log.txt") -> Path:
        """Write the text log and a JSON twin next to it; returns the text log path."""
        self.metadata['run_end'] = datetime.now().isoformat()

        log_path = self.output_dir / filename
        log_path.write_text(self.generate_text_summary(), encoding='utf-8')

        payload = {
            'metadata': self.metadata,
            'summary': self.get_summary_stats(),
            'phases': [
                {**asdict(phase), 'duration_seconds': phase.duration_seconds}
                for phase in self.phases
            ],
        }
        json_path = log_path.with_suffix('.json')
        json_path.write_text(
            json.dumps(convert_to_json_serializable(payload), indent=2),
            encoding='utf-8',
        )

        logger.info(f"Run log saved to: {log_path} (+ {json_path.name})")
        return log_path

    def get_summary_stats(self) -> Dict[str, Any]:
        """Counts of successful, failed and skipped phases plus total time."""
        statuses = [phase.status for phase in self.phases]
        successful = statuses.count('completed')
        failed = statuses.count('failed')

        return {
            'total_phases': len(self.phases),
            'successful_phases': successful,
            'failed_phases': failed,
            'skipped_phases': statuses.count('skipped'),
            'total_duration_seconds': sum(phase.duration_seconds for phase in self.phases),
            'overall_success': failed == 0 and successful > 0,
        }
