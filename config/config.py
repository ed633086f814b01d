"""
Configuration loader for the Housing Demand Projections project.
"""

import yaml
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Any, Optional

# Get project root directory
PROJECT_ROOT = Path(__file__).parent.parent

# Define paths
CONFIG_DIR = PROJECT_ROOT / "config"
DATA_DIR = PROJECT_ROOT / "data"
DATA_RAW_DIR = DATA_DIR / "raw"
DATA_PROCESSED_DIR = DATA_DIR / "processed"
DATA_OUTPUTS_DIR = DATA_DIR / "outputs"


@dataclass(frozen=True)
class ProjectionSettings:
    """Immutable projection assumptions shared by one modelling run."""
    base_year: int
    start_year: int
    end_year: int
    period_break: int
    fast_convergence_years: int
    gradual_convergence_years: int
    default_obsolescence_rate: float
    base_housing_stock: float
    reference_supply: float
    reference_need: float
    output_scale: float = 1.0

    def convergence_years(self, speed: str) -> int:
        """Return the horizon for a named convergence speed ('fast' or 'gradual')."""
        if speed == 'fast':
            return self.fast_convergence_years
        if speed == 'gradual':
            return self.gradual_convergence_years
        raise ValueError(f"Unknown convergence speed '{speed}'. Available: fast, gradual")


def load_config(config_file: str = "config.yaml") -> Dict[str, Any]:
    """
    Load configuration from YAML file.

    Args:
        config_file: Name of the configuration file

    Returns:
        Dictionary containing configuration parameters
    """
    config_path = CONFIG_DIR / config_file

    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, 'r') as f:
        config = yaml.safe_load(f)

    return config


def _require_number(section: Dict[str, Any], key: str, kind=float):
    value = section.get(key)
    if value is None:
        raise ValueError(f"Missing projection parameter (config['projection']['{key}']).")

    try:
        return kind(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Projection parameter '{key}' must be numeric, got {value!r}.") from exc


def get_projection_settings(config: Optional[Dict[str, Any]] = None) -> ProjectionSettings:
    """
    Build validated projection settings from config.

    Args:
        config: Already-loaded configuration; loads config.yaml when omitted

    Returns:
        Frozen ProjectionSettings instance
    """
    if config is None:
        config = load_config()
    projection = config.get('projection', {})

    settings = ProjectionSettings(
        base_year=_require_number(projection, 'base_year', int),
        start_year=_require_number(projection, 'start_year', int),
        end_year=_require_number(projection, 'end_year', int),
        period_break=_require_number(projection, 'period_break', int),
        fast_convergence_years=_require_number(projection, 'fast_convergence_years', int),
        gradual_convergence_years=_require_number(projection, 'gradual_convergence_years', int),
        default_obsolescence_rate=_require_number(projection, 'default_obsolescence_rate'),
        base_housing_stock=_require_number(projection, 'base_housing_stock'),
        reference_supply=_require_number(projection, 'reference_supply'),
        reference_need=_require_number(projection, 'reference_need'),
        output_scale=float(projection.get('output_scale', 1.0)),
    )

    if settings.fast_convergence_years <= 0 or settings.gradual_convergence_years <= 0:
        raise ValueError("Convergence horizons must be greater than zero.")

    if settings.start_year > settings.end_year:
        raise ValueError(
            f"Projection start year {settings.start_year} is after end year {settings.end_year}."
        )

    if not settings.start_year <= settings.period_break <= settings.end_year:
        raise ValueError(
            f"Period break {settings.period_break} must fall within "
            f"{settings.start_year}-{settings.end_year}."
        )

    if settings.base_housing_stock < 0:
        raise ValueError("Base housing stock must not be negative.")

    if settings.output_scale <= 0:
        raise ValueError(f"Output scale must be greater than zero, got {settings.output_scale}.")

    return settings


def get_obsolescence_scenarios() -> Dict[str, Dict[str, Any]]:
    """Get named obsolescence rates from config."""
    config = load_config()
    scenarios = config.get('obsolescence_scenarios', {})
    if not scenarios:
        raise ValueError("Missing obsolescence scenarios (config['obsolescence_scenarios']).")
    return scenarios


def get_headship_pathways() -> Dict[str, Dict[str, Any]]:
    """Get cohort headship pathway definitions (current/gradual/fast) from config."""
    config = load_config()
    return config.get('headship_pathways', {})


def get_cohort_headship_rates() -> Dict[str, Dict[str, float]]:
    """Get the current and target per-cohort headship rates from config."""
    config = load_config()
    rates = config.get('headship_rates', {})

    for variant in ('current', 'target'):
        if variant not in rates:
            raise ValueError(f"Missing headship rate set '{variant}' in config.headship_rates.")

    return {
        'current': {str(k): float(v) for k, v in rates['current'].items()},
        'target': {str(k): float(v) for k, v in rates['target'].items()},
    }


def get_data_quality_thresholds() -> Dict[str, Any]:
    """Get input data quality thresholds from config."""
    config = load_config()
    return config.get('data_quality', {})


def ensure_directories():
    """Create necessary directories if they don't exist."""
    directories = [
        DATA_RAW_DIR,
        DATA_PROCESSED_DIR,
        DATA_OUTPUTS_DIR,
        DATA_OUTPUTS_DIR / "comparisons",
    ]

    for directory in directories:
        directory.mkdir(parents=True, exist_ok=True)


if __name__ == "__main__":
    # Test configuration loading
    config = load_config()
    print("Configuration loaded successfully!")
    print(f"Project: {config['project']['name']}")
    print(f"Projection settings: {get_projection_settings(config)}")

    ensure_directories()
    print("Directory structure verified!")
