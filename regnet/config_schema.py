"""Pydantic schema for configuration validation.

All config values are validated at startup. Typos and invalid values
fail fast with clear error messages.

Usage:
    from regnet.config_schema import load_validated_config, AppConfig
    config = load_validated_config("config/config.yaml")
    # config is now a validated AppConfig instance
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


# =============================================================================
# BASE MODEL WITH STRICT VALIDATION
# =============================================================================

class StrictModel(BaseModel):
    """Base model that rejects unknown fields (catches typos)."""

    model_config = ConfigDict(extra="forbid")


# =============================================================================
# CONTRACT MODELS
# =============================================================================

class ContractsConfig(StrictModel):
    """Names under which the two contracts are exposed to the host."""

    users: str = Field(
        default="org.property-registration-network.regnet.users",
        min_length=1,
        description="Contract used by participants (requests, purchases)",
    )
    registrar: str = Field(
        default="org.property-registration-network.regnet.registrar",
        min_length=1,
        description="Contract used by the registrar (approvals)",
    )

    @model_validator(mode="after")
    def names_differ(self) -> "ContractsConfig":
        """Both contracts share one host, so their names must be distinct."""
        if self.users == self.registrar:
            raise ValueError(
                f"users and registrar contracts must have different names, got '{self.users}' twice"
            )
        return self


class NamespacesConfig(StrictModel):
    """Key namespaces, one per entity type."""

    identity: str = Field(
        default="org.property-registration-network.regnet.lists.user",
        min_length=1,
    )
    asset: str = Field(
        default="org.property-registration-network.regnet.lists.property",
        min_length=1,
    )

    @field_validator("identity", "asset")
    @classmethod
    def no_delimiter(cls, v: str) -> str:
        """Namespaces are framed by U+0000 in composite keys."""
        if "\x00" in v:
            raise ValueError("namespace must not contain U+0000")
        return v

    @model_validator(mode="after")
    def namespaces_differ(self) -> "NamespacesConfig":
        """Identity and asset keys must never be confusable."""
        if self.identity == self.asset:
            raise ValueError("identity and asset namespaces must differ")
        return self


# =============================================================================
# STORE MODEL
# =============================================================================

class StoreConfig(StrictModel):
    """Backing key-value store.

    The sqlite backend retries writes that hit 'database is locked'
    with exponential backoff.
    """

    backend: Literal["memory", "sqlite"] = Field(
        default="memory",
        description="Which KeyValueStore implementation the runner uses",
    )
    path: str = Field(
        default="regnet_state.db",
        description="Database file for the sqlite backend",
    )
    retry_max: int = Field(default=5, ge=1, description="Max write attempts")
    retry_base: float = Field(default=0.1, gt=0, description="Initial backoff in seconds")
    retry_max_delay: float = Field(default=5.0, gt=0, description="Backoff cap in seconds")


# =============================================================================
# LOGGING MODEL
# =============================================================================

class LoggingConfig(StrictModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Root log level set by run.py",
    )
    event_log: str | None = Field(
        default=None,
        description="JSONL file receiving one event per invocation (disabled when unset)",
    )


# =============================================================================
# ROOT MODEL
# =============================================================================

def _default_top_up_codes() -> dict[str, int]:
    return {"upg100": 100, "upg500": 500, "upg1000": 1000}


class AppConfig(StrictModel):
    """Root configuration model for the entire application.

    All fields have sensible defaults, so an empty config file is valid.
    """

    contracts: ContractsConfig = Field(default_factory=ContractsConfig)
    namespaces: NamespacesConfig = Field(default_factory=NamespacesConfig)
    top_up_codes: dict[str, int] = Field(
        default_factory=_default_top_up_codes,
        description="Recharge code -> coin amount credited to the account",
    )
    store: StoreConfig = Field(default_factory=StoreConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @field_validator("top_up_codes")
    @classmethod
    def positive_amounts(cls, v: dict[str, int]) -> dict[str, int]:
        """Every top-up code must credit a positive amount."""
        for code, amount in v.items():
            if not code:
                raise ValueError("top-up code must be non-empty")
            if amount <= 0:
                raise ValueError(f"top-up code '{code}' must map to a positive amount, got {amount}")
        return v


# =============================================================================
# LOADING FUNCTIONS
# =============================================================================

def load_validated_config(config_path: str | Path = "config/config.yaml") -> AppConfig:
    """Load and validate configuration from YAML file.

    Args:
        config_path: Path to config YAML file.

    Returns:
        Validated AppConfig instance.

    Raises:
        FileNotFoundError: If config file doesn't exist.
        pydantic.ValidationError: If config is invalid (with detailed error message).
    """
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path) as f:
        raw_config = yaml.safe_load(f) or {}

    return AppConfig.model_validate(raw_config)


def validate_config_dict(config_dict: dict[str, Any]) -> AppConfig:
    """Validate a configuration dictionary.

    Args:
        config_dict: Configuration as a dictionary.

    Returns:
        Validated AppConfig instance.

    Raises:
        pydantic.ValidationError: If config is invalid.
    """
    return AppConfig.model_validate(config_dict)


# =============================================================================
# EXPORTS
# =============================================================================

__all__ = [
    "AppConfig",
    "ContractsConfig",
    "NamespacesConfig",
    "StoreConfig",
    "LoggingConfig",
    "StrictModel",
    "load_validated_config",
    "validate_config_dict",
]
