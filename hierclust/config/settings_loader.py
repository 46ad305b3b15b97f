"""
settings_loader.py

Configuration management for the hierarchical clustering engine.
Loads and validates settings from YAML configuration with environment variable substitution.

Features:
- YAML configuration loading with validation
- Environment variable substitution (${VAR_NAME} syntax)
- Singleton pattern for global settings access
- Type-safe configuration with Pydantic models
- Default values when no configuration file is present
"""

import os
import re
import yaml
import logging
from typing import Any, Optional
from pydantic import BaseModel, Field, ValidationError, field_validator
from pathlib import Path

from hierclust.schemas.data_models import ClusterAlgorithm, LinkageMethod
from hierclust.utils.error_handling import ConfigurationError

logger = logging.getLogger(__name__)


# =============================================================================
# Configuration Models (Pydantic)
# =============================================================================

class ServiceSettings(BaseModel):
    """General service settings."""
    name: str = Field(default="hierclust", description="Service name")
    version: str = Field(default="1.0.0", description="Service version")
    environment: str = Field(default="production", description="Environment (development, staging, production)")


class AgglomerativeSettings(BaseModel):
    """Agglomerative clustering defaults."""
    linkage: str = Field(default="single", description="Linkage method")
    metric: str = Field(default="squared_euclidean", description="Distance metric")
    n_clusters: int = Field(default=1, ge=1, description="Clusters when neither n_clusters nor distance_threshold is given")
    progress_log_interval: int = Field(default=100, ge=1, description="Log merge progress every N merges")

    @field_validator("linkage")
    @classmethod
    def validate_linkage(cls, v: str) -> str:
        """Store the canonical name, so "WPGMA" becomes "weighted_average"."""
        return LinkageMethod.from_name(v).value


class DivisiveSettings(BaseModel):
    """DIANA clustering defaults."""
    metric: str = Field(default="squared_euclidean", description="Distance metric")
    n_clusters: int = Field(default=2, ge=1, description="Clusters when n_clusters is not given")
    progress_log_interval: int = Field(default=10, ge=1, description="Log split progress every N splits")


class ClusteringAlgorithmsSettings(BaseModel):
    """Algorithm-specific settings."""
    agglomerative: AgglomerativeSettings = Field(default_factory=AgglomerativeSettings)
    divisive: DivisiveSettings = Field(default_factory=DivisiveSettings)


class QualitySettings(BaseModel):
    """Clustering quality metrics."""
    enabled: bool = Field(default=True, description="Compute silhouette score on results")
    max_records: int = Field(default=5000, ge=2, description="Skip quality metrics above this many records")


class ClusteringSettings(BaseModel):
    """Main clustering configuration."""
    default_algorithm: str = Field(default="agglomerative", description="Default clustering algorithm")
    algorithms: ClusteringAlgorithmsSettings = Field(default_factory=ClusteringAlgorithmsSettings)
    quality: QualitySettings = Field(default_factory=QualitySettings)
    large_dataset_warning: int = Field(default=5000, ge=1, description="Warn when clustering more records than this")
    dendrogram_depth: Optional[int] = Field(default=None, ge=1, description="Cluster tree levels kept by default (null = all)")

    @field_validator("default_algorithm")
    @classmethod
    def validate_default_algorithm(cls, v: str) -> str:
        return ClusterAlgorithm.from_name(v).value


class FileLoggingSettings(BaseModel):
    """File logging configuration."""
    enabled: bool = Field(default=False, description="Enable file logging")
    path: str = Field(default="logs/hierclust.log", description="Log file path")


class LoggingSettings(BaseModel):
    """Logging configuration."""
    level: str = Field(default="INFO", description="Log level")
    format: str = Field(default="json", description="Log format (json or console)")
    file: FileLoggingSettings = Field(default_factory=FileLoggingSettings)


class Settings(BaseModel):
    """Root configuration model."""
    service: ServiceSettings = Field(default_factory=ServiceSettings)
    clustering: ClusteringSettings = Field(default_factory=ClusteringSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


# =============================================================================
# Configuration Manager (Singleton)
# =============================================================================

class ConfigManager:
    """
    Singleton configuration manager that loads and caches settings.

    Features:
    - Loads YAML configuration from file
    - Substitutes environment variables using ${VAR_NAME} syntax
    - Validates configuration using Pydantic models
    - Provides global access to settings
    """

    _instance: Optional['ConfigManager'] = None
    _settings: Optional[Settings] = None

    def __new__(cls):
        """Ensure singleton pattern."""
        if cls._instance is None:
            cls._instance = super(ConfigManager, cls).__new__(cls)
        return cls._instance

    @classmethod
    def load_config(cls, config_path: Optional[str] = None) -> Settings:
        """
        Load configuration from YAML file with environment variable substitution.

        Args:
            config_path: Path to configuration file. If None, the default
                locations are tried and built-in defaults are used when none exists.

        Returns:
            Settings object with validated configuration

        Raises:
            ConfigurationError: If an explicit file is missing, or the file is invalid
        """
        if cls._settings is not None:
            return cls._settings

        if config_path is None:
            possible_paths = [
                Path(os.getenv("CONFIG_PATH", "config/settings.yaml")),
                Path("config/settings.yaml"),
                Path("../config/settings.yaml"),
            ]

            config_path_obj = None
            for path in possible_paths:
                if path.exists():
                    config_path_obj = path
                    break

            if config_path_obj is None:
                logger.warning(
                    f"Configuration file not found in any of: {[str(p) for p in possible_paths]}. Using defaults."
                )
                cls._settings = Settings()
                return cls._settings
        else:
            config_path_obj = Path(config_path)
            if not config_path_obj.exists():
                raise ConfigurationError(
                    f"Configuration file not found: {config_path}",
                    details={"path": str(config_path)},
                )

        logger.info(f"Loading configuration from: {config_path_obj}")

        try:
            with open(config_path_obj, 'r') as f:
                raw_config = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            logger.error(f"Failed to load YAML configuration: {e}")
            raise ConfigurationError(f"Invalid YAML configuration: {e}") from e

        config_dict = cls._substitute_env_vars(raw_config)

        try:
            cls._settings = Settings(**config_dict)
        except ValidationError as e:
            logger.error(f"Configuration validation failed: {e}")
            raise ConfigurationError(f"Invalid configuration: {e}") from e

        logger.info("Configuration loaded and validated successfully")
        return cls._settings

    @classmethod
    def get_settings(cls) -> Settings:
        """
        Get cached settings. Loads from default path if not already loaded.

        Returns:
            Settings object
        """
        if cls._settings is None:
            cls.load_config()
        return cls._settings

    @classmethod
    def _substitute_env_vars(cls, config: Any) -> Any:
        """
        Recursively substitute environment variables in configuration.

        Supports ${VAR_NAME} and ${VAR_NAME:default_value} syntax.

        Args:
            config: Configuration dictionary or value

        Returns:
            Configuration with substituted values
        """
        if isinstance(config, dict):
            return {k: cls._substitute_env_vars(v) for k, v in config.items()}
        elif isinstance(config, list):
            return [cls._substitute_env_vars(item) for item in config]
        elif isinstance(config, str):
            pattern = r'\$\{([^}:]+)(?::([^}]*))?\}'

            def replace_var(match):
                var_name = match.group(1)
                default_value = match.group(2) if match.group(2) is not None else ""
                return os.getenv(var_name, default_value)

            return re.sub(pattern, replace_var, config)
        else:
            return config

    @classmethod
    def reload_config(cls, config_path: Optional[str] = None) -> Settings:
        """
        Reload configuration from file.

        Args:
            config_path: Path to configuration file

        Returns:
            Reloaded Settings object
        """
        cls._settings = None
        return cls.load_config(config_path)

    @classmethod
    def reset(cls) -> None:
        """Drop cached settings (mainly for tests)."""
        cls._settings = None


# =============================================================================
# Convenience Functions
# =============================================================================

def get_settings() -> Settings:
    """
    Get application settings (convenience function).

    Returns:
        Settings object
    """
    return ConfigManager.get_settings()
