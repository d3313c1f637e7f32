"""Configuration management with YAML and environment variable support."""

from pathlib import Path
from typing import ClassVar, Optional

import yaml
from pydantic import BaseModel
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)


class YamlConfigSettingsSource(PydanticBaseSettingsSource):
    """Custom settings source that loads configuration from YAML file."""

    def get_field_value(self, field, field_name: str):
        # Not used with prepare method
        pass

    def prepare_field_value(self, field_name: str, field, value, value_is_complex: bool):
        return value

    def __call__(self):
        # Load from config.yaml in current directory
        yaml_path = Path("config.yaml")
        if not yaml_path.exists():
            return {}

        with open(yaml_path) as f:
            data = yaml.safe_load(f) or {}

        return data


class GeminiConfig(BaseModel):
    """Gemini API credentials.

    api_key is the process-level default credential. A per-project key
    overrides it; when neither is present the first service call fails.
    """

    api_key: Optional[str] = None


class ModelsConfig(BaseModel):
    """AI model identifiers."""

    script_llm: str = "gemini-3-flash-preview"
    tts: str = "gemini-2.5-flash-preview-tts"
    image_primary: str = "gemini-3-pro-image-preview"
    image_fallback: str = "gemini-2.5-flash-image"
    vision: str = "gemini-2.5-flash-image"
    video: str = "veo-3.1-fast-generate-preview"


class PipelineConfig(BaseModel):
    """Pipeline execution parameters."""

    retry_max_attempts: int = 3
    retry_base_delay: float = 1.0
    sample_rate: int = 24000
    scene_delay: float = 0.0
    video_poll_interval: float = 10.0
    video_poll_max_seconds: float = 600.0
    video_resolution: str = "720p"
    script_temperature: float = 0.85
    ideas_temperature: float = 0.9


class StorageConfig(BaseModel):
    """Archive database configuration."""

    database_url: str = "sqlite+aiosqlite:///storystudio.db"
    archive_limit: int = 50


class Settings(BaseSettings):
    """Main application settings with YAML and environment variable support.

    Configuration sources (in priority order):
    1. Environment variables (prefix: STORYSTUDIO_, delimiter: __)
    2. .env file (same prefix and delimiter)
    3. YAML file (config.yaml)
    4. Field defaults
    """

    model_config: ClassVar[SettingsConfigDict] = SettingsConfigDict(
        env_nested_delimiter="__",
        env_prefix="STORYSTUDIO_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    gemini: GeminiConfig = GeminiConfig()
    models: ModelsConfig = ModelsConfig()
    pipeline: PipelineConfig = PipelineConfig()
    storage: StorageConfig = StorageConfig()

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ):
        """Customize settings sources to include YAML configuration.

        Priority order (highest to lowest):
        1. Environment variables
        2. .env file
        3. YAML file
        4. Init settings (programmatic defaults)
        """
        return (
            env_settings,
            dotenv_settings,
            YamlConfigSettingsSource(settings_cls),
            init_settings,
        )


# Singleton instance
settings = Settings()
