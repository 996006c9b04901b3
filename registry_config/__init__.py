"""
registry_config -- single public entrypoint for registry configuration.

Responsibility:
    ``get_active_config()`` is the only way runtime code obtains
    configuration.  It loads the YAML configuration set, validates it and
    returns a frozen ``RegistryConfig``.  ``bridges`` turns that into the
    kernel's policy objects.

Architecture position:
    Configuration.  Sits above ``registry_kernel`` and below
    ``registry_services``.  The kernel never imports this package.

Failure modes:
    - ``FileNotFoundError`` -- the configuration file does not exist.
    - ``ConfigurationError`` -- shape or validation errors.

Audit relevance:
    Every successful call emits a ``REGISTRY_CONFIG_TRACE`` record with
    the config id, version and checksum.
"""

from __future__ import annotations

from pathlib import Path

from registry_config.loader import load_registry_config
from registry_config.schema import RegistryConfig
from registry_config.validator import validate_configuration
from registry_kernel.exceptions import ConfigurationError
from registry_kernel.logging_config import get_logger

_logger = get_logger("config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"


def get_active_config(config_path: Path | str | None = None) -> RegistryConfig:
    """Load and validate the configuration set.

    Args:
        config_path: YAML file to load.  Defaults to
            ``registry_config/sets/default.yaml``.

    Raises:
        FileNotFoundError: If the file does not exist.
        ConfigurationError: If parsing or validation fails.
    """
    path = Path(config_path) if config_path is not None else DEFAULT_CONFIG_PATH
    config = load_registry_config(path)

    validation = validate_configuration(config)
    for warning in validation.warnings:
        _logger.warning("config_validation_warning", extra={"warning": warning})
    if not validation.is_valid:
        raise ConfigurationError(validation.errors, str(path))

    _logger.info(
        "REGISTRY_CONFIG_TRACE",
        extra={
            "trace_type": "REGISTRY_CONFIG_TRACE",
            "config_set_id": config.config_id,
            "config_set_version": config.version,
            "checksum": config.checksum,
        },
    )
    return config


__all__ = ["DEFAULT_CONFIG_PATH", "RegistryConfig", "get_active_config"]
