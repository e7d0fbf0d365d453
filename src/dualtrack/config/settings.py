"""Application settings and configuration management."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml


def _default_config_dir() -> Path:
    """Return the default configuration directory."""
    return Path.home() / ".dualtrack"


def _default_db_path() -> Path:
    """Return the default database path."""
    return _default_config_dir() / "dualtrack.db"


@dataclass
class DatabaseConfig:
    """Database configuration."""

    path: Path = field(default_factory=_default_db_path)


@dataclass
class AnalysisConfig:
    """Plan analysis parameters passed explicitly to the engine."""

    tolerance_percent: float = 3.0  # default for new plans
    noise_floor_kg_per_week: float = 0.05
    trend_days: int = 30  # window for the landing-point trend
    actual_weight_days: int = 7  # rolling average for today's weight


@dataclass
class DefaultsConfig:
    """Default values for various operations."""

    trend_range: str = "7d"


@dataclass
class Settings:
    """Main application settings."""

    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    analysis: AnalysisConfig = field(default_factory=AnalysisConfig)
    defaults: DefaultsConfig = field(default_factory=DefaultsConfig)

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> "Settings":
        """Load settings from YAML file or return defaults.

        Args:
            config_path: Path to config.yaml. If None, uses ~/.dualtrack/config.yaml

        Returns:
            Settings instance
        """
        if config_path is None:
            config_path = _default_config_dir() / "config.yaml"

        if not config_path.exists():
            return cls()

        with open(config_path) as f:
            data = yaml.safe_load(f) or {}

        settings = cls()

        # Parse database config
        if "database" in data:
            db_data = data["database"] or {}
            if "path" in db_data:
                settings.database.path = Path(db_data["path"]).expanduser()

        # Parse analysis config
        if "analysis" in data:
            an_data = data["analysis"] or {}
            if "tolerance_percent" in an_data:
                settings.analysis.tolerance_percent = float(an_data["tolerance_percent"])
            if "noise_floor_kg_per_week" in an_data:
                settings.analysis.noise_floor_kg_per_week = float(
                    an_data["noise_floor_kg_per_week"]
                )
            if "trend_days" in an_data:
                settings.analysis.trend_days = int(an_data["trend_days"])
            if "actual_weight_days" in an_data:
                settings.analysis.actual_weight_days = int(an_data["actual_weight_days"])

        # Parse defaults
        if "defaults" in data:
            def_data = data["defaults"] or {}
            if "trend_range" in def_data:
                settings.defaults.trend_range = str(def_data["trend_range"])

        return settings

    def save(self, config_path: Optional[Path] = None) -> None:
        """Save current settings to YAML file.

        Args:
            config_path: Path to save config.yaml. If None, uses ~/.dualtrack/config.yaml
        """
        if config_path is None:
            config_path = _default_config_dir() / "config.yaml"

        config_path.parent.mkdir(parents=True, exist_ok=True)

        data = {
            "database": {
                "path": str(self.database.path),
            },
            "analysis": {
                "tolerance_percent": self.analysis.tolerance_percent,
                "noise_floor_kg_per_week": self.analysis.noise_floor_kg_per_week,
                "trend_days": self.analysis.trend_days,
                "actual_weight_days": self.analysis.actual_weight_days,
            },
            "defaults": {
                "trend_range": self.defaults.trend_range,
            },
        }

        with open(config_path, "w") as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)


# Global settings instance (lazy loaded)
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the global settings instance, loading from disk if needed."""
    global _settings
    if _settings is None:
        _settings = Settings.load()
    return _settings


def reload_settings() -> Settings:
    """Force reload settings from disk."""
    global _settings
    _settings = Settings.load()
    return _settings
