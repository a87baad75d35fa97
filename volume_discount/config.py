"""
Configuration management for the Volume Discount engine
"""

import json
import os
import sys
from pathlib import Path
from typing import Any, Dict, Optional

from loguru import logger
from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from .exceptions import ConfigurationError

ENV_PREFIX = "VOLUME_DISCOUNT_"
LOG_FORMAT = "<green>{time:HH:mm:ss}</green> | <level>{level}</level> | {message}"


class DiscountEngineConfig(BaseModel):
    """Configuration model for the Volume Discount engine"""

    # Storage settings
    metafield_namespace: str = Field(default="custom", description="Namespace of the shop rules metafield")
    metafield_key: str = Field(default="volume_discount_rules", min_length=1, description="Key of the shop rules metafield")

    # Logging settings
    log_level: str = Field(default="INFO", description="Logging level")
    log_file: Optional[str] = Field(default=None, description="Log file path (stderr only when unset)")
    log_rotation: str = Field(default="10 MB", description="Log rotation size")
    log_retention: str = Field(default="30 days", description="Log retention period")

    # Rule settings
    min_percent_off: float = Field(default=1, gt=0, le=100, description="Lowest percentage a rule may apply")
    max_percent_off: float = Field(default=80, gt=0, le=100, description="Highest percentage a rule may apply")
    default_min_qty: int = Field(default=2, ge=2, description="Minimum quantity written for new rules")

    # Editor defaults
    default_percent_off: float = Field(default=10, gt=0, le=100, description="Percentage shown for a new discount")
    default_title: str = Field(default="Buy 2 Get % Off", description="Title shown for a new discount")


class ConfigManager:
    """Configuration manager for the Volume Discount engine"""

    def __init__(self, config_file: Optional[str] = None):
        """
        Initialize configuration manager

        Args:
            config_file: Path to configuration file
        """
        self.config_file = config_file or "volume_discount_config.json"
        self._config = None
        self._load_config()

    def _load_config(self) -> None:
        """Load configuration from file, then apply environment overrides"""
        config_data: Dict[str, Any] = {}

        if Path(self.config_file).exists():
            try:
                with open(self.config_file, 'r', encoding='utf-8') as f:
                    config_data = json.load(f)
            except (OSError, ValueError) as e:
                logger.warning(f"Failed to read configuration file {self.config_file}: {e}")
                config_data = {}

        config_data.update(self.get_environment_config())

        try:
            self._config = DiscountEngineConfig(**config_data)
        except PydanticValidationError as e:
            logger.warning(f"Invalid configuration, using defaults: {e}")
            self._config = DiscountEngineConfig()

    def get_config(self) -> DiscountEngineConfig:
        """Get current configuration"""
        return self._config

    def update_config(self, **kwargs) -> None:
        """Update configuration with new values"""
        unknown = [key for key in kwargs if key not in DiscountEngineConfig.model_fields]
        if unknown:
            raise ConfigurationError(f"Unknown configuration keys: {', '.join(sorted(unknown))}")

        try:
            self._config = DiscountEngineConfig.model_validate({**self._config.model_dump(), **kwargs})
        except PydanticValidationError as e:
            raise ConfigurationError(f"Invalid configuration update: {e}") from e

    def save_config(self) -> None:
        """Save current configuration to file"""
        try:
            with open(self.config_file, 'w', encoding='utf-8') as f:
                json.dump(self._config.model_dump(), f, indent=2)
        except OSError as e:
            logger.warning(f"Failed to save configuration: {e}")

    def reset_to_defaults(self) -> None:
        """Reset configuration to defaults"""
        self._config = DiscountEngineConfig()

    def validate_config(self) -> Dict[str, Any]:
        """Validate current configuration"""
        validation_results = {
            'valid': True,
            'warnings': [],
            'errors': []
        }

        valid_log_levels = ['TRACE', 'DEBUG', 'INFO', 'SUCCESS', 'WARNING', 'ERROR', 'CRITICAL']
        if self._config.log_level.upper() not in valid_log_levels:
            validation_results['errors'].append(f"Invalid log level: {self._config.log_level}")
            validation_results['valid'] = False

        # Field bounds are enforced by the model; only cross-field checks remain
        if self._config.min_percent_off > self._config.max_percent_off:
            validation_results['errors'].append("min_percent_off must not exceed max_percent_off")
            validation_results['valid'] = False

        if not (self._config.min_percent_off <= self._config.default_percent_off <= self._config.max_percent_off):
            validation_results['warnings'].append("default_percent_off is outside the allowed range")

        return validation_results

    def get_environment_config(self) -> Dict[str, str]:
        """Get configuration from environment variables"""
        env_config = {}

        for field_name in DiscountEngineConfig.model_fields:
            env_var_name = f"{ENV_PREFIX}{field_name.upper()}"
            env_value = os.getenv(env_var_name)

            if env_value is not None:
                env_config[field_name] = env_value

        return env_config


def configure_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    rotation: str = "10 MB",
    retention: str = "30 days",
) -> None:
    """Replace loguru's default handler with the engine's sinks"""
    logger.remove()
    logger.add(sys.stderr, level=level.upper(), format=LOG_FORMAT)

    if log_file:
        logger.add(log_file, level=level.upper(), rotation=rotation, retention=retention)


# Global configuration instance
config_manager = ConfigManager()


def get_config() -> DiscountEngineConfig:
    """Get the global configuration instance"""
    return config_manager.get_config()
