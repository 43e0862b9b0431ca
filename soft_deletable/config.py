"""
Configuration module for soft-deletable.

Provides centralized configuration management for the soft delete behavior,
its session hooks, the service facade and the command-line interface.
"""

import json
from pathlib import Path
from typing import Any, Dict, Optional, Union, get_args, get_origin

import pytz
import yaml
from pydantic import BaseModel, Field, field_validator


class SoftDeleteConfig(BaseModel):
    """Central configuration for the soft delete behavior.

    Configuration can be loaded from environment variables, from a JSON or
    YAML file, or set programmatically.

    Configuration Sources (in order of precedence):
        1. Programmatic settings (highest priority)
        2. Environment variables (SOFT_DELETE_ prefix)
        3. Configuration files (JSON or YAML)
        4. Default values (lowest priority)

    Example:
        Basic configuration:

        >>> config = SoftDeleteConfig(
        ...     default_field="deleted_at",
        ...     cascade_restore=False,
        ... )

        Loading from environment:

        >>> import os
        >>> os.environ['SOFT_DELETE_READ_OPTION_NAME'] = 'with_deleted'
        >>> config = SoftDeleteConfig.from_env()

        Loading from file:

        >>> config = SoftDeleteConfig.from_file('soft_delete.yaml')

    Note:
        ``default_field`` is read when a behavior is declared, so it has to be
        configured before the models are imported. ``read_option_name`` is
        read by the session hooks on every query.
    """

    enabled: bool = Field(
        True, description="Master switch for soft delete filtering and interception"
    )
    default_field: str = Field(
        "deleted", description="Marker column name used when a model names none"
    )
    read_option_name: str = Field(
        "is_deleted", description="Execution option carrying the tri-state read flag"
    )
    cascade_delete: bool = Field(
        True, description="Cascade soft deletes to dependent associations by default"
    )
    cascade_restore: bool = Field(
        True, description="Cascade restores to dependent associations by default"
    )
    unlink_on_delete: bool = Field(
        True, description="Delete many-to-many join rows when soft deleting"
    )
    timezone: str = Field("UTC", description="Timezone of deletion timestamps")
    database_url: Optional[str] = Field(
        None, description="Default database URL for the command-line interface"
    )

    @field_validator("default_field", "read_option_name")
    @classmethod
    def validate_identifier(cls, v: str) -> str:
        """Ensure column and option names are plain identifiers."""
        if not v.isidentifier():
            raise ValueError(f"'{v}' is not a valid identifier")
        return v

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        """Ensure the timezone is known to pytz."""
        try:
            pytz.timezone(v)
        except pytz.UnknownTimeZoneError:
            raise ValueError(f"Unknown timezone: {v}")
        return v

    @property
    def tzinfo(self) -> Any:
        """Timezone object for deletion timestamps."""
        return pytz.timezone(self.timezone)

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return self.model_dump()

    @classmethod
    def from_env(cls, prefix: str = "SOFT_DELETE_") -> "SoftDeleteConfig":
        """
        Load configuration from environment variables.

        Args:
            prefix: Prefix for environment variables

        Returns:
            Configuration instance
        """
        import os

        config_dict: Dict[str, Any] = {}

        for field_name, field_info in cls.model_fields.items():
            env_var = f"{prefix}{field_name.upper()}"
            if env_var in os.environ:
                value = os.environ[env_var]

                field_type = field_info.annotation

                # Handle Optional types
                if get_origin(field_type) is Union:
                    args = get_args(field_type)
                    field_type = next(
                        (arg for arg in args if arg is not type(None)), str
                    )

                if field_type == bool:
                    config_dict[field_name] = value.lower() in (
                        "true",
                        "1",
                        "yes",
                        "on",
                    )
                else:
                    config_dict[field_name] = value

        return cls.model_validate(config_dict)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "SoftDeleteConfig":
        """
        Load configuration from a JSON or YAML file.

        Args:
            path: Path to a ``.json``, ``.yaml`` or ``.yml`` file

        Returns:
            Configuration instance
        """
        path = Path(path)
        text = path.read_text(encoding="utf-8")

        if path.suffix.lower() == ".json":
            data = json.loads(text)
        else:
            data = yaml.safe_load(text)

        return cls.model_validate(data or {})


# Global configuration instance
_config: Optional[SoftDeleteConfig] = None


def get_config() -> SoftDeleteConfig:
    """
    Get the global configuration instance.

    Returns:
        Global configuration
    """
    global _config

    if _config is None:
        _config = SoftDeleteConfig.from_env()

    return _config


def set_config(config: Optional[SoftDeleteConfig]) -> None:
    """
    Set the global configuration instance.

    Args:
        config: Configuration to set, or None to reload from the environment
    """
    global _config
    _config = config


def configure(**kwargs: Any) -> SoftDeleteConfig:
    """
    Configure soft-deletable with keyword arguments.

    Args:
        **kwargs: Configuration parameters

    Returns:
        Updated configuration
    """
    global _config

    if _config is None:
        _config = SoftDeleteConfig(**kwargs)
    else:
        config_dict = _config.to_dict()
        config_dict.update(kwargs)
        _config = SoftDeleteConfig(**config_dict)

    return _config
