"""
Centralized settings and path configuration for the pricing simulator.
"""
from pathlib import Path
from dataclasses import dataclass
from typing import Optional

from ..engine.units import ONE_TIME_UNITS


def get_project_root() -> Path:
    """Get the project root directory (where pyproject.toml lives)."""
    current = Path(__file__).resolve()
    for parent in current.parents:
        if (parent / 'pyproject.toml').exists():
            return parent
    # Fallback to 3 levels up from this file
    return Path(__file__).resolve().parent.parent.parent.parent


@dataclass
class Settings:
    """Application settings with sensible defaults."""

    # Project paths
    project_root: Path

    # Catalog Provider inputs
    catalog_source: Path
    tiers_source: Path

    # Built catalog
    catalog_json: Path
    build_report: Path

    # Auto-add rule files
    rules_csv: Optional[Path] = None
    compiled_rules: Optional[Path] = None

    # Bucketing
    setup_category: str = 'setup'
    one_time_units: tuple = ONE_TIME_UNITS

    @classmethod
    def load(cls, project_root: Optional[Path] = None) -> 'Settings':
        """Load settings from the project structure."""
        root = project_root or get_project_root()
        package_dir = root / 'src' / 'pricing_simulator'

        return cls(
            project_root=root,
            catalog_source=package_dir / 'data' / 'catalog.csv',
            tiers_source=package_dir / 'data' / 'tiers.csv',
            catalog_json=package_dir / 'data' / 'outputs' / 'catalog.json',
            build_report=package_dir / 'data' / 'outputs' / 'build_report.json',
            rules_csv=package_dir / 'rules' / 'auto_add_rules.csv',
            compiled_rules=package_dir / 'rules' / 'compiled_rules.json',
        )


# Default settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings.load()
    return _settings
