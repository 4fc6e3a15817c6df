"""
Configuration management for Audio Studio.

Handles loading and validation of configuration from multiple sources:
- YAML configuration files
- Environment variables
- Command line arguments (applied by the CLI on top of the loaded config)

There is no process-wide config instance: callers load an ``AppConfig`` and hand
it to ``create_app`` (or to the individual components) explicitly.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "INFO"
    format: str = "detailed"
    file: Optional[str] = None


@dataclass
class APIConfig:
    """API server configuration."""

    host: str = "127.0.0.1"
    port: int = 5000
    port_range_end: int = 5010
    cors_origins: list = field(default_factory=lambda: ["*"])


@dataclass
class ProviderConfig:
    """Generation provider configuration."""

    api_key: Optional[str] = None
    base_url: str = "https://api.stability.ai/v2beta/audio/stable-audio-2"
    default_model: str = "stable-audio-2.5"
    text_timeout: float = 60.0
    audio_timeout: float = 120.0


@dataclass
class StorageConfig:
    """Storage configuration."""

    output_dir: str = "./uploads"
    temp_dir: str = "./temp-uploads"
    max_upload_mb: int = 50


@dataclass
class FrontendConfig:
    """Built web client served next to the API, if present."""

    dist_dir: Optional[str] = None


@dataclass
class AppConfig:
    """Main application configuration."""

    environment: str = "development"
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    api: APIConfig = field(default_factory=APIConfig)
    provider: ProviderConfig = field(default_factory=ProviderConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    frontend: FrontendConfig = field(default_factory=FrontendConfig)

    def __post_init__(self):
        """Expand user paths. Directories are created by the stores on first use."""
        self.storage.output_dir = os.path.expanduser(self.storage.output_dir)
        self.storage.temp_dir = os.path.expanduser(self.storage.temp_dir)
        if self.frontend.dist_dir:
            self.frontend.dist_dir = os.path.expanduser(self.frontend.dist_dir)

    @property
    def max_upload_bytes(self) -> int:
        return int(self.storage.max_upload_mb) * 1024 * 1024


def load_config_from_yaml(config_path: Union[str, Path]) -> Dict[str, Any]:
    """Load configuration from YAML file."""
    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, "r") as f:
        return yaml.safe_load(f) or {}


def load_config_from_env() -> Dict[str, Any]:
    """Load configuration from environment variables."""
    config = {}

    if env_val := os.getenv("AUDIOSTUDIO_ENV"):
        config["environment"] = env_val

    if log_level := os.getenv("AUDIOSTUDIO_LOG_LEVEL"):
        config["logging"] = {"level": log_level}

    api_config = {}
    if host := os.getenv("AUDIOSTUDIO_API_HOST"):
        api_config["host"] = host
    if port := os.getenv("AUDIOSTUDIO_API_PORT", os.getenv("PORT")):
        api_config["port"] = int(port)
    if api_config:
        config["api"] = api_config

    provider_config = {}
    if api_key := os.getenv("STABILITY_API_KEY"):
        provider_config["api_key"] = api_key
    if base_url := os.getenv("AUDIOSTUDIO_PROVIDER_URL"):
        provider_config["base_url"] = base_url
    if default_model := os.getenv("AUDIOSTUDIO_DEFAULT_MODEL"):
        provider_config["default_model"] = default_model
    if provider_config:
        config["provider"] = provider_config

    storage_config = {}
    if output_dir := os.getenv("AUDIOSTUDIO_OUTPUT_DIR"):
        storage_config["output_dir"] = output_dir
    if temp_dir := os.getenv("AUDIOSTUDIO_TEMP_DIR"):
        storage_config["temp_dir"] = temp_dir
    if max_upload := os.getenv("AUDIOSTUDIO_MAX_UPLOAD_MB"):
        storage_config["max_upload_mb"] = int(max_upload)
    if storage_config:
        config["storage"] = storage_config

    if dist_dir := os.getenv("AUDIOSTUDIO_FRONTEND_DIR"):
        config["frontend"] = {"dist_dir": dist_dir}

    return config


def merge_configs(*configs: Dict[str, Any]) -> Dict[str, Any]:
    """Merge multiple configuration dictionaries. Later ones win."""
    merged = {}
    for config in configs:
        for key, value in config.items():
            if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
                merged[key] = merge_configs(merged[key], value)
            else:
                merged[key] = value
    return merged


def dict_to_dataclass(data: Dict[str, Any], cls) -> Any:
    """Convert dictionary to dataclass instance."""
    if not hasattr(cls, "__dataclass_fields__"):
        return data

    kwargs = {}
    for field_name, field_def in cls.__dataclass_fields__.items():
        if field_name in data:
            field_type = field_def.type
            field_value = data[field_name]

            # Handle nested dataclasses
            if hasattr(field_type, "__dataclass_fields__"):
                kwargs[field_name] = dict_to_dataclass(field_value or {}, field_type)
            else:
                kwargs[field_name] = field_value

    return cls(**kwargs)


def load_config(
    config_file: Optional[Union[str, Path]] = None, environment: Optional[str] = None
) -> AppConfig:
    """
    Load application configuration from multiple sources.

    Environment variables override values from the YAML file.

    Args:
        config_file: Path to YAML configuration file
        environment: Environment name (development, production, testing)

    Returns:
        AppConfig instance
    """
    configs = []

    env_config = load_config_from_env()

    if not environment:
        environment = env_config.get("environment", "development")

    if config_file:
        configs.append(load_config_from_yaml(config_file))
    else:
        # Try to auto-detect config file
        project_root = Path(__file__).parent.parent.parent.parent.parent
        config_path = project_root / "configs" / f"{environment}.yaml"
        if config_path.exists():
            configs.append(load_config_from_yaml(config_path))

    configs.append(env_config)
    merged_config = merge_configs({"environment": environment}, *configs)

    return dict_to_dataclass(merged_config, AppConfig)
