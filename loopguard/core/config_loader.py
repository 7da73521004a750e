"""
Configuration Loader & Validation
"""

import os
import yaml
from pathlib import Path
from typing import Any, Dict, Optional, Type, TypeVar
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from .errors import ConfigurationError
from .logging_utils import configure_logging, get_logger
from .types import EscalationPolicy, SignalDomain

logger = get_logger(__name__)

DEFAULT_CONFIG_PATH = "config/loopguard.yaml"

M = TypeVar("M", bound=BaseModel)

# =============================================================================
# Configuration Models
# =============================================================================

class SignalDomainConfig(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    min: float
    max: float
    description: str = ""

    @model_validator(mode="after")
    def _check_range(self):
        if self.min > self.max:
            raise ValueError(f"min ({self.min}) exceeds max ({self.max})")
        return self

    def to_domain(self, name: str) -> SignalDomain:
        return SignalDomain(name=name, min=self.min, max=self.max, description=self.description)

class ActuatorLimitsConfig(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    max_step: float = Field(..., ge=0.0)
    lo: float
    hi: float
    initial: float = 0.0

    @model_validator(mode="after")
    def _check_bounds(self):
        if self.lo > self.hi:
            raise ValueError(f"lo ({self.lo}) exceeds hi ({self.hi})")
        if not self.lo <= self.initial <= self.hi:
            raise ValueError(f"initial ({self.initial}) outside [{self.lo}, {self.hi}]")
        return self

class SystemConfig(BaseModel):
    """Immutable per-system constants supplied once at construction."""
    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str
    signals: Dict[str, SignalDomainConfig] = Field(default_factory=dict)
    limits: ActuatorLimitsConfig
    windows: Dict[str, int] = Field(default_factory=dict)
    escalation: EscalationPolicy = EscalationPolicy.REPORT
    constants: Dict[str, float] = Field(default_factory=dict)

    @field_validator("windows")
    @classmethod
    def _check_windows(cls, value: Dict[str, int]) -> Dict[str, int]:
        for signal, size in value.items():
            if size <= 0:
                raise ValueError(f"window size for '{signal}' must be positive, got {size}")
        return value

    def domains(self) -> Dict[str, SignalDomain]:
        return {name: domain.to_domain(name) for name, domain in self.signals.items()}

    def constant(self, name: str) -> float:
        try:
            return self.constants[name]
        except KeyError:
            raise ConfigurationError(f"missing constant '{name}'", field_name=self.name) from None

    def window(self, signal: str) -> int:
        try:
            return self.windows[signal]
        except KeyError:
            raise ConfigurationError(f"missing window size for '{signal}'", field_name=self.name) from None

    def merged(self, overrides: Optional[Dict[str, Any]]) -> 'SystemConfig':
        """Return a new config with ``overrides`` deep-merged on top."""
        if not overrides:
            return self
        data = _deep_merge(self.model_dump(mode="json"), overrides)
        return validate_model(SystemConfig, data)

class LoggingConfig(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    level: str = "INFO"
    file: Optional[str] = None

    @field_validator("level")
    @classmethod
    def _check_level(cls, value: str) -> str:
        value = value.upper()
        if value not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"unknown log level '{value}'")
        return value

class AppConfig(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    # Partial per-system overrides, merged onto each system's defaults
    systems: Dict[str, Dict[str, Any]] = Field(default_factory=dict)
    # Applied to every system after merging, when set
    escalation_override: Optional[EscalationPolicy] = None

    def system_overrides(self, name: str) -> Dict[str, Any]:
        overrides = dict(self.systems.get(name, {}))
        if self.escalation_override is not None:
            overrides["escalation"] = self.escalation_override.value
        return overrides

# =============================================================================
# Loader
# =============================================================================

def _deep_merge(base: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    merged = dict(base)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged

def validate_model(model: Type[M], data: Dict[str, Any]) -> M:
    """Validate ``data`` against ``model``, raising ConfigurationError."""
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(str(e), field_name=model.__name__) from e

def load_and_validate_config(config_path: Optional[str] = None) -> AppConfig:
    """
    Load configuration from YAML, apply env overrides, and validate.

    Raises:
        ConfigurationError: unreadable YAML or failed validation
    """
    path = Path(config_path or os.getenv("LOOPGUARD_CONFIG", DEFAULT_CONFIG_PATH))
    config_data: Dict[str, Any] = {}

    # 1. Load YAML
    if path.exists():
        try:
            with open(path, 'r') as f:
                config_data = yaml.safe_load(f) or {}
            logger.info(f"Loaded config from {path}")
        except (OSError, yaml.YAMLError) as e:
            raise ConfigurationError(f"failed to load config file {path}: {e}") from e
        if not isinstance(config_data, dict):
            raise ConfigurationError(f"top level of {path} must be a mapping")
    else:
        logger.warning(f"Config file {path} not found. Using defaults.")

    # 2. Environment Overrides
    if os.getenv("LOOPGUARD_LOG_LEVEL"):
        config_data.setdefault("logging", {})
        config_data["logging"]["level"] = os.getenv("LOOPGUARD_LOG_LEVEL").upper()

    if os.getenv("LOOPGUARD_LOG_FILE"):
        config_data.setdefault("logging", {})
        config_data["logging"]["file"] = os.getenv("LOOPGUARD_LOG_FILE")

    if os.getenv("LOOPGUARD_ESCALATION"):
        config_data["escalation_override"] = os.getenv("LOOPGUARD_ESCALATION").lower()

    # 3. Validation
    config = validate_model(AppConfig, config_data)
    logger.info("Configuration validated successfully.")

    # 4. Apply logging section
    configure_logging(config.logging.level, config.logging.file)
    return config
