"""Configuration management for Vision Assistant."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

Provider = Literal["gemini", "openai"]

DEFAULT_SETTINGS_PATH = Path.home() / ".config" / "visionassist" / "settings.yaml"


class DeviceConfig(BaseModel):
    """Device configuration."""

    name: str = "visionassist"
    mode: Literal["production", "development"] = "development"
    log_level: str = "INFO"


class CameraConfig(BaseModel):
    """Camera service configuration."""

    device_index: int = 0
    resolution: list[int] = [1280, 720]
    quality: int = 80
    max_probe: int = 5


class SpeechConfig(BaseModel):
    """Speech output configuration."""

    locale: str = "en-US"
    voice: str | None = None
    speed: float = 1.0
    engine: str = "espeak-ng"


class AnalysisConfig(BaseModel):
    """Remote analysis configuration."""

    provider: Provider = "gemini"
    api_key: str = ""
    gemini_endpoint: str = "https://generativelanguage.googleapis.com/v1beta"
    gemini_models: list[str] = Field(
        default_factory=lambda: [
            "gemini-1.5-flash",
            "gemini-1.5-flash-001",
            "gemini-1.5-pro",
            "gemini-1.5-pro-001",
            "gemini-pro-vision",
        ]
    )
    openai_endpoint: str = "https://api.openai.com/v1"
    openai_model: str = "gpt-4o"
    max_tokens: int = 300
    timeout_seconds: float = 30.0
    simulation_delay_seconds: float = 1.0


class GestureConfig(BaseModel):
    """Tap gesture configuration."""

    tap_window_ms: int = 400
    settings_tap_count: int = 3


class ProviderConfig(BaseModel):
    """Provider selection and credential for one analysis cycle."""

    model_config = ConfigDict(frozen=True)

    provider: Provider = "gemini"
    api_key: str = ""

    @property
    def has_credential(self) -> bool:
        return bool(self.api_key.strip())


class Config(BaseSettings):
    """Main configuration for Vision Assistant."""

    model_config = SettingsConfigDict(
        env_prefix="VISIONASSIST_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    device: DeviceConfig = Field(default_factory=DeviceConfig)
    camera: CameraConfig = Field(default_factory=CameraConfig)
    speech: SpeechConfig = Field(default_factory=SpeechConfig)
    analysis: AnalysisConfig = Field(default_factory=AnalysisConfig)
    gestures: GestureConfig = Field(default_factory=GestureConfig)
    settings_path: Path = DEFAULT_SETTINGS_PATH

    # Mock backends for development
    mock_mode: bool = False

    @classmethod
    def from_yaml(cls, path: Path | str) -> Config:
        """Load configuration from YAML file."""
        path = Path(path)
        if not path.exists():
            return cls()

        with open(path) as f:
            data = yaml.safe_load(f) or {}

        return cls(**data)

    def to_yaml(self, path: Path | str) -> None:
        """Save configuration to YAML file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, "w") as f:
            yaml.dump(self.model_dump(mode="json"), f, default_flow_style=False)

    def provider_config(self) -> ProviderConfig:
        """Snapshot of the configured provider and credential."""
        return ProviderConfig(
            provider=self.analysis.provider,
            api_key=self.analysis.api_key,
        )


def provider_env_overrides() -> dict[str, str]:
    """Provider settings taken from ``VISIONASSIST_API_KEY`` and ``VISIONASSIST_PROVIDER``."""
    overrides = {}

    api_key = os.environ.get("VISIONASSIST_API_KEY")
    if api_key:
        overrides["api_key"] = api_key

    provider = os.environ.get("VISIONASSIST_PROVIDER")
    if provider in ("gemini", "openai"):
        overrides["provider"] = provider

    return overrides


class SettingsStore:
    """Persists the user's provider choice and API key.

    Each ``load()`` returns a fresh snapshot, so a change saved while a
    request is in flight only applies to the next cycle. Precedence is
    environment, then the saved file, then the defaults.
    """

    def __init__(
        self,
        path: Path | str,
        defaults: ProviderConfig | None = None,
        env_override: bool = True,
    ) -> None:
        self.path = Path(path)
        self._defaults = defaults or ProviderConfig()
        self._env_override = env_override

    def load(self) -> ProviderConfig:
        """Read the stored settings, falling back to the defaults."""
        settings = self._defaults.model_dump()

        if self.path.exists():
            with open(self.path) as f:
                data = yaml.safe_load(f) or {}
            # A saved empty key is kept so the user can clear it
            settings.update({k: data[k] for k in ("provider", "api_key") if k in data})

        if self._env_override:
            settings.update(provider_env_overrides())

        return ProviderConfig(**settings)

    def save(self, settings: ProviderConfig) -> None:
        """Write settings to disk."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w") as f:
            yaml.safe_dump(settings.model_dump(), f, default_flow_style=False)
        os.chmod(self.path, 0o600)


def load_config(
    config_path: Path | str | None = None,
    env_override: bool = True,
) -> Config:
    """Load configuration from file and environment.

    Args:
        config_path: Path to config file. If None, searches standard locations.
        env_override: Whether to allow environment variables to override config.

    Returns:
        Loaded configuration.
    """
    search_paths = [
        Path("/etc/visionassist/config.yaml"),
        Path.home() / ".config" / "visionassist" / "config.yaml",
        Path("config.yaml"),
    ]

    if config_path:
        search_paths.insert(0, Path(config_path))

    config_file: Path | None = None
    for path in search_paths:
        if path.exists():
            config_file = path
            break

    if config_file:
        config = Config.from_yaml(config_file)
    else:
        config = Config()

    if env_override:
        for key, value in provider_env_overrides().items():
            setattr(config.analysis, key, value)

        if os.environ.get("VISIONASSIST_MOCK_MODE", "").lower() in ("1", "true", "yes"):
            config.mock_mode = True

    return config
