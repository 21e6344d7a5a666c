"""Global configuration using Pydantic settings."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application wide settings loaded from environment variables."""

    base_dir: Path = Field(default_factory=lambda: Path("recordings"))
    log_level: str = "INFO"

    # Capture
    sample_rate: int = 16_000
    channels: int = 1
    block_size: int = 1024
    default_mic_device: Optional[str] = None

    # Pipeline
    mode: str = "streaming"
    chunk_ms: int = 250
    segment_duration_ms: int = 5_000
    overlap_ms: int = 100
    silence_gate_enabled: bool = True
    silence_threshold_db: float = -50.0
    drain_timeout_ms: int = 5_000
    fallback_to_segmented: bool = True

    # Providers
    api_base_url: str = "http://localhost:3000"
    stream_url: str = "ws://localhost:8080"
    auth_token: Optional[str] = None
    request_timeout: float = 30.0
    segment_backend: str = "http"
    openai_transcription_model: str = "whisper-1"
    openai_api_key: Optional[str] = None
    transcription_language: Optional[str] = None

    # Duplex channel reconnects
    reconnect_base_delay_ms: int = 1_000
    reconnect_max_delay_ms: int = 30_000
    reconnect_max_attempts: int = 5

    model_config = SettingsConfigDict(
        env_prefix="LIVESCRIBE_",
        env_file=".env",
        case_sensitive=False,
    )

    @field_validator("mode")
    @classmethod
    def _check_mode(cls, value: str) -> str:
        normalised = value.strip().lower()
        if normalised not in {"segmented", "streaming"}:
            raise ValueError("mode must be 'segmented' or 'streaming'")
        return normalised

    @property
    def recordings_dir(self) -> Path:
        path = Path(self.base_dir)
        path.mkdir(parents=True, exist_ok=True)
        return path


_settings: Optional[Settings] = None


_MODEL_CONFIG: Dict[str, Any] = dict(Settings.model_config or {})
_ENV_PREFIX: str = (_MODEL_CONFIG.get("env_prefix") or "").upper()


@dataclass
class EnvironmentSetting:
    """Metadata about a configuration option backed by an environment variable."""

    field: str
    env_name: str
    value: Any
    default: Any


def _field_default(field_info) -> Any:
    if field_info.default_factory is not None:  # type: ignore[truthy-function]
        return field_info.default_factory()
    return field_info.default


def list_environment_settings(settings: Optional[Settings] = None) -> Iterable[EnvironmentSetting]:
    """Return metadata for all environment-backed settings."""

    settings = settings or get_settings()
    for name, field in Settings.model_fields.items():
        yield EnvironmentSetting(
            field=name,
            env_name=f"{_ENV_PREFIX}{name}".upper(),
            value=getattr(settings, name),
            default=_field_default(field),
        )


def get_settings() -> Settings:
    """Return a singleton instance of the application settings."""

    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Drop the cached settings so the next access reloads the environment."""

    global _settings
    _settings = None


__all__ = [
    "EnvironmentSetting",
    "Settings",
    "get_settings",
    "list_environment_settings",
    "reset_settings",
]
