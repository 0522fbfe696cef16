"""Configuration management for cesta."""

import os
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .category import DEFAULT_CATEGORY


@dataclass
class DataConfig:
    """Data storage configuration."""

    storage_dir: Path
    backend: str = "json"


@dataclass
class DefaultsConfig:
    """Default values configuration."""

    category: str = DEFAULT_CATEGORY
    store: str | None = None


@dataclass
class MatchingConfig:
    """Product name matching configuration."""

    threshold: float = 0.3
    max_suggestions: int = 5


@dataclass
class ComparisonConfig:
    """List comparison configuration."""

    max_workers: int = 4


@dataclass
class RecognitionConfig:
    """Receipt and voice recognition service configuration."""

    api_key: str | None = None
    model: str = "gemini-2.0-flash"
    base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    timeout: float = 30.0

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key) and len(self.api_key) >= 10


@dataclass
class BudgetConfig:
    """Budget configuration."""

    monthly_limit: float = 0.0


@dataclass
class Config:
    """Complete application configuration."""

    data: DataConfig
    defaults: DefaultsConfig
    matching: MatchingConfig
    comparison: ComparisonConfig
    recognition: RecognitionConfig
    budget: BudgetConfig


class ConfigManager:
    """Manages application configuration from TOML files."""

    def __init__(self, config_path: Path | None = None):
        """Initialize configuration manager.

        Args:
            config_path: Optional explicit path to config file.
                        If not provided, searches standard locations.
        """
        self.config_path = config_path or self._find_config()
        self._config = self._load_config()

    @property
    def data(self) -> DataConfig:
        """Get data configuration."""
        return self._config.data

    @property
    def defaults(self) -> DefaultsConfig:
        """Get defaults configuration."""
        return self._config.defaults

    @property
    def matching(self) -> MatchingConfig:
        """Get matching configuration."""
        return self._config.matching

    @property
    def comparison(self) -> ComparisonConfig:
        """Get comparison configuration."""
        return self._config.comparison

    @property
    def recognition(self) -> RecognitionConfig:
        """Get recognition service configuration."""
        return self._config.recognition

    @property
    def budget(self) -> BudgetConfig:
        """Get budget configuration."""
        return self._config.budget

    def _find_config(self) -> Path:
        """Find config file in standard locations."""
        locations = [
            Path.cwd() / "config.toml",
            Path.home() / ".config" / "cesta" / "config.toml",
            Path.home() / ".cesta" / "config.toml",
        ]

        for loc in locations:
            if loc.exists():
                return loc

        # Return default location if none found
        return Path.home() / ".config" / "cesta" / "config.toml"

    def _load_config(self) -> Config:
        """Load configuration from TOML file."""
        if not self.config_path.exists():
            return self._default_config()

        with open(self.config_path, "rb") as f:
            data = tomllib.load(f)

        recognition = data.get("recognition", {})

        return Config(
            data=DataConfig(
                storage_dir=Path(
                    data.get("data", {}).get("storage_dir", "~/cesta/data")
                ).expanduser(),
                backend=data.get("data", {}).get("backend", "json"),
            ),
            defaults=DefaultsConfig(
                category=data.get("defaults", {}).get("category", DEFAULT_CATEGORY),
                store=data.get("defaults", {}).get("store"),
            ),
            matching=MatchingConfig(
                threshold=data.get("matching", {}).get("threshold", 0.3),
                max_suggestions=data.get("matching", {}).get("max_suggestions", 5),
            ),
            comparison=ComparisonConfig(
                max_workers=data.get("comparison", {}).get("max_workers", 4),
            ),
            recognition=RecognitionConfig(
                api_key=os.environ.get("GEMINI_API_KEY") or recognition.get("api_key"),
                model=recognition.get("model", "gemini-2.0-flash"),
                base_url=recognition.get(
                    "base_url", "https://generativelanguage.googleapis.com/v1beta"
                ),
                timeout=recognition.get("timeout", 30.0),
            ),
            budget=BudgetConfig(
                monthly_limit=data.get("budget", {}).get("monthly_limit", 0.0),
            ),
        )

    def _default_config(self) -> Config:
        """Return default configuration."""
        return Config(
            data=DataConfig(storage_dir=Path.home() / "cesta" / "data"),
            defaults=DefaultsConfig(),
            matching=MatchingConfig(),
            comparison=ComparisonConfig(),
            recognition=RecognitionConfig(api_key=os.environ.get("GEMINI_API_KEY")),
            budget=BudgetConfig(),
        )

    def get(self, key_path: str, default: Any = None) -> Any:
        """Get config value by dot-notation path.

        Args:
            key_path: Dot-separated path like 'data.storage_dir'
            default: Default value if path not found

        Returns:
            Configuration value or default
        """
        keys = key_path.split(".")
        value: Any = self._config

        for key in keys:
            if not hasattr(value, key):
                return default
            value = getattr(value, key)

        return value if value is not None else default
