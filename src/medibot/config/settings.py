"""
Configuration management for Medibot.

Settings come from four layers, highest priority first: environment
variables, a `.env` file, an optional YAML file and the field defaults.
"""

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_INSTRUCTION = """You are a cardiologist AI expert. Your role is to:
- Ask 2 follow-up questions to understand user symptoms related to cardiovascular disease, one at a time, based on previous answers.
- Based on answers, recommend first-line medical care (lifestyle advice, a natural thing they can do or take).
- After the questions, respond in two distinct steps: first, give recommendations (medication/lifestyle/tests). If symptoms suggest emergency (like crushing chest pain, syncope, severe shortness of breath), advise urgent cardiologist consultation.
- Then, on a separate call, generate a final summary with: Summary: <summary text>.
Please be clear and structured, act like a compassionate, experienced cardiologist."""


class GenerationSettings(BaseModel):
    """Fixed generation parameters and persona text sent with every completion."""

    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    max_output_tokens: int = Field(default=800, ge=1, le=65536)
    top_p: float = Field(default=0.8, ge=0.0, le=1.0)
    top_k: int = Field(default=10, ge=1)
    safety_category: str = Field(default="HARM_CATEGORY_DANGEROUS_CONTENT")
    safety_threshold: str = Field(default="BLOCK_ONLY_HIGH")
    instruction_text: str = Field(default=DEFAULT_INSTRUCTION)

    model_config = {"frozen": True}

    @field_validator("safety_threshold")
    @classmethod
    def validate_threshold(cls, v):
        valid_thresholds = {
            "BLOCK_NONE",
            "BLOCK_ONLY_HIGH",
            "BLOCK_MEDIUM_AND_ABOVE",
            "BLOCK_LOW_AND_ABOVE",
        }
        if v not in valid_thresholds:
            raise ValueError(f"Safety threshold must be one of {valid_thresholds}")
        return v


class DatabaseConfig(BaseModel):
    """Database configuration."""

    url: str = Field(
        default="sqlite:///./data/medibot.db", description="SQLAlchemy database URL"
    )
    echo: bool = Field(default=False, description="Log emitted SQL statements")
    encryption_enabled: bool = Field(
        default=False, description="Encrypt message and summary content at rest"
    )
    encryption_key_id: str = Field(
        default="primary_v1", description="Key id new content is encrypted under"
    )

    @field_validator("url")
    @classmethod
    def validate_url(cls, v):
        if not v or not v.strip():
            raise ValueError("Database URL cannot be empty")
        return v.strip()


class GeminiConfig(BaseModel):
    """Gemini provider configuration."""

    base_url: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta/models",
        description="Gemini models endpoint",
    )
    model: str = Field(default="gemini-2.0-flash", description="Model name")
    timeout: float | None = Field(
        default=None, gt=0, description="Request timeout in seconds (None waits)"
    )
    generation: GenerationSettings = Field(default_factory=GenerationSettings)

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, v):
        return v.rstrip("/")

    def to_generation_settings(self) -> GenerationSettings:
        return self.generation


class ServerConfig(BaseModel):
    """HTTP server configuration."""

    host: str = Field(default="0.0.0.0", description="Bind host")
    port: int = Field(default=8080, ge=1, le=65535, description="Bind port")
    cors_origins: list[str] = Field(
        default_factory=lambda: ["*"], description="Allowed CORS origins"
    )

    @field_validator("host")
    @classmethod
    def validate_host(cls, v):
        if not v or len(v.strip()) == 0:
            raise ValueError("Host cannot be empty")
        return v.strip()


class AppSettings(BaseSettings):
    """Main application settings using environment variables."""

    # Application info
    app_name: str = Field(default="Medibot", description="Application name")
    app_version: str = Field(default="0.1.0", description="Application version")
    environment: str = Field(
        default="development",
        description="Environment (development/staging/production)",
    )

    # API Keys
    gemini_api_key: str | None = Field(
        default=None, description="Gemini API key", repr=False
    )

    # Security
    database_encryption_key: str | None = Field(
        default=None, description="Database encryption key", repr=False
    )

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")

    # Configuration sections
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    gemini: GeminiConfig = Field(default_factory=GeminiConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="forbid",
    )

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v):
        valid_environments = {"development", "staging", "production"}
        if v not in valid_environments:
            raise ValueError(f"Environment must be one of {valid_environments}")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of {valid_levels}")
        return v.upper()

    @model_validator(mode="after")
    def validate_api_keys(self):
        """Validate that the Gemini API key is configured."""
        if not self.gemini_api_key and self.environment != "development":
            raise ValueError(
                "Gemini API key must be configured in non-development environments"
            )

        return self

    @model_validator(mode="after")
    def validate_encryption_keys(self):
        """Validate an encryption key is present when encryption is enabled."""
        if self.database.encryption_enabled and not (
            self.database_encryption_key or os.environ.get("MEDIBOT_MASTER_KEY")
        ):
            raise ValueError(
                "Database encryption key is required when encryption is enabled"
            )

        return self


class ConfigurationManager:
    """Loads settings once and caches them for the process."""

    def __init__(self):
        self._settings: AppSettings | None = None
        self._file_values: dict[str, Any] = {}

    def load_configuration(self, config_path: Path | None = None) -> AppSettings:
        """
        Load settings from a YAML file, the environment and ``.env``.

        Environment variables win over the file; the file wins over defaults.

        Args:
            config_path: Optional YAML configuration file

        Returns:
            Validated AppSettings instance

        Raises:
            ValueError: The YAML file cannot be parsed
        """
        if config_path is not None:
            self._file_values = self._read_yaml(config_path)

        # pydantic-settings ranks init kwargs above env vars and deep-merges
        # nested sections, so drop only the file entries an env var sets.
        env_paths = {tuple(name.lower().split("__")) for name in os.environ}
        init_kwargs = self._without_env_paths(self._file_values, (), env_paths)

        self._settings = AppSettings(**init_kwargs)
        self._ensure_sqlite_directory(self._settings.database.url)

        return self._settings

    def _without_env_paths(
        self, values: dict[str, Any], prefix: tuple[str, ...], env_paths: set[tuple[str, ...]]
    ) -> dict[str, Any]:
        kept = {}
        for key, value in values.items():
            path = (*prefix, str(key).lower())
            if path in env_paths:
                continue
            if isinstance(value, dict):
                value = self._without_env_paths(value, path, env_paths)
            kept[key] = value
        return kept

    def _read_yaml(self, config_path: Path) -> dict[str, Any]:
        if not config_path.exists():
            return {}
        try:
            with open(config_path, encoding="utf-8") as f:
                return yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML configuration: {e}") from e

    def _ensure_sqlite_directory(self, url: str):
        """Create the parent directory of a file-backed SQLite database."""
        if not url.startswith("sqlite") or ":memory:" in url:
            return
        _, _, db_path = url.partition(":///")
        if not db_path:
            return
        try:
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ValueError(f"Cannot create database directory for {url}: {e}") from e

    @property
    def settings(self) -> AppSettings:
        """Current settings, loaded from the environment on first access."""
        if self._settings is None:
            self.load_configuration()
        return self._settings

    def reset(self):
        """Forget loaded settings and file values."""
        self._settings = None
        self._file_values = {}

    def export_config_template(self, output_path: Path):
        """Write a YAML file holding the default configuration."""
        template = {
            "app_name": "Medibot",
            "environment": "development",
            "log_level": "INFO",
            "database": {
                "url": "sqlite:///./data/medibot.db",
                "encryption_enabled": False,
                "encryption_key_id": "primary_v1",
            },
            "gemini": {
                "model": "gemini-2.0-flash",
                "generation": {
                    "temperature": 0.7,
                    "max_output_tokens": 800,
                    "top_p": 0.8,
                    "top_k": 10,
                },
            },
            "server": {"host": "0.0.0.0", "port": 8080, "cors_origins": ["*"]},
        }

        with open(output_path, "w", encoding="utf-8") as f:
            yaml.dump(template, f, default_flow_style=False, indent=2)


# Global configuration manager instance
config_manager = ConfigurationManager()


def get_settings() -> AppSettings:
    """Get the current application settings."""
    return config_manager.settings


def load_config(config_path: Path | None = None) -> AppSettings:
    """Load configuration from file and environment."""
    return config_manager.load_configuration(config_path)
