"""
Configuration management for DatoGPT.

This module handles loading and accessing configuration values from config.yaml.
It also turns the ``advanced_settings`` section into an immutable
``PluginSettings`` value that is handed to every generation and translation
component at construction time.
"""

import yaml
import os
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional
import logging

from pydantic import BaseModel, ConfigDict, Field


# Field editors that can be generated, improved and translated out of the box.
DEFAULT_TEXT_FIELD_TYPES = [
    "single_line",
    "markdown",
    "wysiwyg",
    "date_picker",
    "date_time_picker",
    "integer",
    "float",
    "boolean",
    "map",
    "color_picker",
    "slug",
    "json",
    "seo",
    "textarea",
    "structured_text",
    "rich_text",
]


class ConfigManager:
    """
    Manages configuration loading and access for DatoGPT.
    """

    def __init__(self, config_path: str = "config.yaml"):
        """
        Initialize the configuration manager.

        Args:
            config_path: Path to the configuration file
        """
        self.config_path = Path(config_path)
        self._config: Dict[str, Any] = {}
        self._load_config()

    def _load_config(self) -> None:
        """Load configuration from YAML file."""
        try:
            if not self.config_path.exists():
                raise FileNotFoundError(f"Configuration file not found: {self.config_path}")

            with open(self.config_path, 'r', encoding='utf-8') as f:
                self._config = yaml.safe_load(f) or {}

            logging.info(f"Configuration loaded from {self.config_path}")

        except (OSError, yaml.YAMLError) as e:
            logging.error(f"Failed to load configuration: {e}")
            # Fall back to default configuration
            self._config = self._get_default_config()

    def _get_default_config(self) -> Dict[str, Any]:
        """Get default configuration values as fallback."""
        return {
            "openai": {
                "api_key": "",
                "api_base": "https://api.openai.com/v1",
                "gpt_model": "gpt-4o-mini",
                "image_model": "dall-e-3",
                "alt_model": "gpt-4o-mini",
                "timeout": 120.0
            },
            "dato": {
                "api_token": "",
                "api_base": "https://site-api.datocms.com",
                "job_poll_interval": 1.0,
                "job_poll_attempts": 60
            },
            "prompts": {
                "base_prompt": None,
                "alt_generation_prompt": None,
                "field_prompts": {}
            },
            "advanced_settings": {
                "media_area_permissions": True,
                "translate_whole_record": True,
                "generate_alts": True,
                "media_fields_permissions": True,
                "block_generate_depth": 3,
                "block_assets_generation": "null",
                "translation_fields": list(DEFAULT_TEXT_FIELD_TYPES),
                "generate_value_fields": list(DEFAULT_TEXT_FIELD_TYPES),
                "improve_value_fields": list(DEFAULT_TEXT_FIELD_TYPES),
                "seo_generate_asset": False,
                "generate_assets_on_sidebar_bulk_generation": False
            },
            "locales": {
                "names": {}
            },
            "database": {
                "filename": "datogpt.db",
                "log_calls": True
            },
            "paths": {
                "log_file": "datogpt.log"
            },
            "logging": {
                "level": "INFO",
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
            },
            "performance": {
                "max_concurrent_images": 4,
                "default_resolution": "1024x1024"
            }
        }

    def get(self, key_path: str, default: Any = None) -> Any:
        """
        Get a configuration value using dot notation.

        Args:
            key_path: Dot-separated path to the configuration value (e.g., "openai.gpt_model")
            default: Default value if key is not found

        Returns:
            The configuration value

        Examples:
            config.get("openai.gpt_model")  # Returns "gpt-4o-mini"
            config.get("advanced_settings.block_generate_depth")  # Returns 3
        """
        keys = key_path.split('.')
        value = self._config

        for key in keys:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default

        return value

    def get_section(self, section: str) -> Dict[str, Any]:
        """
        Get an entire configuration section.

        Args:
            section: Name of the configuration section

        Returns:
            Dictionary containing the section configuration
        """
        return self._config.get(section) or {}

    def reload(self) -> None:
        """Reload configuration from file."""
        self._load_config()

    # Convenience properties for commonly used values

    @property
    def api_key(self) -> str:
        """Get the OpenAI API key (config first, then OPENAI_API_KEY)."""
        return self.get("openai.api_key") or os.environ.get("OPENAI_API_KEY", "")

    @property
    def api_base(self) -> str:
        """Get the OpenAI-compatible API base URL."""
        return self.get("openai.api_base", "https://api.openai.com/v1")

    @property
    def gpt_model(self) -> str:
        """Get the text completion model name."""
        return self.get("openai.gpt_model", "gpt-4o-mini")

    @property
    def image_model(self) -> str:
        """Get the image generation model name."""
        return self.get("openai.image_model", "dall-e-3")

    @property
    def alt_model(self) -> str:
        """Get the vision model used for alt text."""
        return self.get("openai.alt_model", "gpt-4o-mini")

    @property
    def oracle_timeout(self) -> float:
        """Get the oracle request timeout."""
        return self.get("openai.timeout", 120.0)

    @property
    def dato_api_token(self) -> str:
        """Get the DatoCMS API token (config first, then DATOCMS_API_TOKEN)."""
        return self.get("dato.api_token") or os.environ.get("DATOCMS_API_TOKEN", "")

    @property
    def dato_api_base(self) -> str:
        """Get the DatoCMS Content Management API base URL."""
        return self.get("dato.api_base", "https://site-api.datocms.com")

    @property
    def base_prompt(self) -> Optional[str]:
        """Get the configured base behavioural prompt override, if any."""
        return self.get("prompts.base_prompt")

    @property
    def alt_generation_prompt(self) -> Optional[str]:
        """Get the configured alt generation prompt override, if any."""
        return self.get("prompts.alt_generation_prompt")

    @property
    def field_prompts(self) -> Dict[str, str]:
        """Get per-field-type output contract overrides."""
        return self.get("prompts.field_prompts") or {}

    @property
    def locale_names(self) -> Dict[str, str]:
        """Get locale code to language name mapping used in prompts."""
        return self.get("locales.names") or {}

    @property
    def database_filename(self) -> str:
        """Get database filename."""
        return self.get("database.filename", "datogpt.db")

    @property
    def log_calls(self) -> bool:
        """Whether oracle calls are written to the database."""
        return bool(self.get("database.log_calls", True))

    @property
    def log_filename(self) -> str:
        """Get log file name."""
        return self.get("paths.log_file", "datogpt.log")

    @property
    def max_concurrent_images(self) -> int:
        """Get the parallelism bound for asset browser batches."""
        return self.get("performance.max_concurrent_images", 4)

    @property
    def default_resolution(self) -> str:
        """Get the default image resolution."""
        return self.get("performance.default_resolution", "1024x1024")


class PluginSettings(BaseModel):
    """
    Immutable policy switches read by every generation and translation component.

    Mirrors the plugin's "advanced settings" screen. Components never mutate it;
    temporary overrides are derived with ``model_copy(update=...)``.
    """

    model_config = ConfigDict(frozen=True)

    generate_value_fields: List[str] = Field(default_factory=lambda: list(DEFAULT_TEXT_FIELD_TYPES))
    improve_value_fields: List[str] = Field(default_factory=lambda: list(DEFAULT_TEXT_FIELD_TYPES))
    translation_fields: List[str] = Field(default_factory=lambda: list(DEFAULT_TEXT_FIELD_TYPES))
    media_fields_permissions: bool = True
    media_area_permissions: bool = True
    translate_whole_record: bool = True
    block_generate_depth: int = Field(default=3, ge=0)
    block_assets_generation: Literal["null", "generate"] = "null"
    seo_generate_asset: bool = False
    generate_assets_on_sidebar_bulk_generation: bool = False
    generate_alts: bool = True

    @classmethod
    def from_config(cls, manager: ConfigManager) -> "PluginSettings":
        """Build settings from the ``advanced_settings`` section of a config."""
        section = manager.get_section("advanced_settings")
        known = {key: value for key, value in section.items() if key in cls.model_fields}
        return cls(**known)


# Global configuration instance
config = ConfigManager()


def get_config() -> ConfigManager:
    """
    Get the global configuration instance.

    Returns:
        The global ConfigManager instance
    """
    return config
