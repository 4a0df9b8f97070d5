"""
store_config -- single public entrypoint for store configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  Returns a frozen ``StoreConfiguration``.
    YAML loading is internal tooling and never exposed to callers.

Architecture position:
    Configuration sits above ``store_kernel`` and below ``store_services``.
    The kernel MUST NEVER import from ``store_config``; ``bridges``
    translates configuration into kernel inputs.

Failure modes:
    - ``FileNotFoundError`` -- no configuration set with the requested name.
    - ``ValueError`` -- parse or validation failures.

Audit relevance:
    Every successful ``get_active_config()`` call emits a ``config_loaded``
    log entry with the config_id, version and checksum.
"""

from __future__ import annotations

import logging
from pathlib import Path

from store_config.loader import load_configuration
from store_config.schema import StoreConfiguration
from store_config.validator import validate_configuration

_logger = logging.getLogger("store_kernel.config")

# Default configuration sets directory
_DEFAULT_CONFIG_DIR = Path(__file__).parent / "sets"

DEFAULT_CONFIG_NAME = "default"


def get_active_config(
    config_dir: Path | None = None,
    name: str = DEFAULT_CONFIG_NAME,
) -> StoreConfiguration:
    """The ONLY public configuration entrypoint.

    Args:
        config_dir: Override path to the configuration sets directory.
            Defaults to store_config/sets/.
        name: Configuration set name; the file is ``<name>.yaml``.

    Raises:
        FileNotFoundError: If the set does not exist.
        ValueError: If the set fails to parse or validate.
    """
    sets_dir = Path(config_dir) if config_dir is not None else _DEFAULT_CONFIG_DIR
    path = sets_dir / f"{name}.yaml"
    if not path.is_file():
        raise FileNotFoundError(f"Configuration set not found: {path}")

    config = load_configuration(path)

    validation = validate_configuration(config)
    if not validation.is_valid:
        raise ValueError(
            "Configuration validation failed:\n"
            + "\n".join(f"  - {e}" for e in validation.errors)
        )
    for warning in validation.warnings:
        _logger.warning("config_warning", extra={"config_id": config.config_id, "warning": warning})

    _logger.info(
        "config_loaded",
        extra={
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "enforce_roles": config.workflow.enforce_roles,
        },
    )
    return config


__all__ = ["get_active_config", "StoreConfiguration", "DEFAULT_CONFIG_NAME"]
