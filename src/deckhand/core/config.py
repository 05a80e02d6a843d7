import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, ClassVar, Dict, List, Union

import yaml
from pydantic import ValidationError as ModelValidationError

from ..common.exceptions import ConfigurationError, ValidationError
from .models import Profile

logger = logging.getLogger(__name__)


@dataclass
class SystemDefaults:
    """Server defaults"""

    # Network Defaults
    DEFAULT_HOST: ClassVar[str] = "0.0.0.0"
    DEFAULT_PORT: ClassVar[int] = 8000
    DEFAULT_KEEPALIVE_S: ClassVar[float] = 10.0
    DEFAULT_REQUEST_TIMEOUT_S: ClassVar[float] = 5.0
    DEFAULT_PROFILE: ClassVar[str] = "default"

    # Render Defaults
    DEFAULT_ICON_SIZE: ClassVar[int] = 100
    DEFAULT_FETCH_TIMEOUT_S: ClassVar[float] = 5.0
    MAX_ICON_SIZE: ClassVar[int] = 512


@dataclass
class NetworkConfig:
    """Network and session settings"""

    host: str = SystemDefaults.DEFAULT_HOST
    port: int = SystemDefaults.DEFAULT_PORT
    keepalive_interval_s: float = SystemDefaults.DEFAULT_KEEPALIVE_S
    request_timeout_s: float = SystemDefaults.DEFAULT_REQUEST_TIMEOUT_S
    default_profile: str = SystemDefaults.DEFAULT_PROFILE

    def validate(self) -> None:
        """Validate network settings"""
        if not 1 <= self.port <= 65535:
            raise ValidationError("Port must be between 1 and 65535")
        if self.keepalive_interval_s <= 0:
            raise ValidationError("Keepalive interval must be positive")
        if self.request_timeout_s <= 0:
            raise ValidationError("Request timeout must be positive")
        if not self.default_profile:
            raise ValidationError("Default profile name must not be empty")


@dataclass
class RenderConfig:
    """Icon rendering settings"""

    icon_size: int = SystemDefaults.DEFAULT_ICON_SIZE
    icon_dir: str = "."
    fetch_timeout_s: float = SystemDefaults.DEFAULT_FETCH_TIMEOUT_S

    def validate(self) -> None:
        if not 1 <= self.icon_size <= SystemDefaults.MAX_ICON_SIZE:
            raise ValidationError(
                f"Icon size must be between 1 and {SystemDefaults.MAX_ICON_SIZE}"
            )
        if self.fetch_timeout_s <= 0:
            raise ValidationError("Fetch timeout must be positive")


@dataclass
class SystemConfig:
    """Main system configuration"""

    network: NetworkConfig = field(default_factory=NetworkConfig)
    render: RenderConfig = field(default_factory=RenderConfig)
    profiles: List[Profile] = field(default_factory=list)
    integrations: List[Dict[str, Any]] = field(default_factory=list)

    def __post_init__(self):
        """Validate entire configuration"""
        try:
            self.network.validate()
            self.render.validate()
            names = [profile.name for profile in self.profiles]
            if len(set(names)) != len(names):
                raise ValidationError("Profile names must be unique")
            if self.profiles and self.network.default_profile not in names:
                raise ValidationError(
                    f"Default profile {self.network.default_profile} is not defined"
                )
            for entry in self.integrations:
                if not isinstance(entry, dict) or not entry.get("type"):
                    raise ValidationError(f"Integration entry needs a type: {entry}")
        except Exception as e:
            logger.error(f"Configuration validation failed: {e}")
            raise

    @classmethod
    def create_default(cls) -> "SystemConfig":
        """Create default configuration with a single empty profile"""
        return cls(profiles=[Profile(name=SystemDefaults.DEFAULT_PROFILE)])

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SystemConfig":
        """Build configuration from an already-parsed mapping"""
        try:
            network = NetworkConfig(**(data.get("server") or {}))
            render = RenderConfig(**(data.get("render") or {}))
            profiles = [Profile.model_validate(p) for p in data.get("profiles") or []]
        except (TypeError, ModelValidationError) as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e
        integrations = [
            expand_env(entry) for entry in data.get("integrations") or []
        ]
        return cls(
            network=network,
            render=render,
            profiles=profiles,
            integrations=integrations,
        )


def expand_env(value: Any) -> Any:
    """Expand ${VAR} references in every string of a settings tree"""
    if isinstance(value, str):
        return os.path.expandvars(value)
    if isinstance(value, dict):
        return {k: expand_env(v) for k, v in value.items()}
    if isinstance(value, list):
        return [expand_env(v) for v in value]
    return value


def load_config(path: Union[str, Path]) -> SystemConfig:
    """Load configuration from a YAML file"""
    path = Path(path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Failed to read config {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"Config {path} must be a mapping")

    config = SystemConfig.from_dict(data)
    # Relative icon paths resolve against the config file location
    if not os.path.isabs(config.render.icon_dir):
        config.render.icon_dir = str((path.parent / config.render.icon_dir).resolve())
    logger.info(
        f"Loaded config {path}: {len(config.profiles)} profiles, "
        f"{len(config.integrations)} integrations"
    )
    return config
