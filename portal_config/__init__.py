"""
portal_config -- single public entrypoint for portal configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  Returns a frozen ``PortalConfiguration``.
    YAML loading is internal tooling and never exposed to callers.

Architecture position:
    Configuration -- YAML-driven settings.  This package sits above
    ``portal_kernel`` and below ``portal_modules``.  The kernel and the
    engines MUST NEVER import from ``portal_config``.

Invariants enforced:
    - Single entrypoint: all runtime config flows through ``get_active_config()``.
    - Deterministic loading: the same YAML always yields the same checksum.

Failure modes:
    - ``FileNotFoundError`` -- the requested configuration set does not exist.
    - ``ValueError`` / ``KeyError`` -- schema validation failures.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``PORTAL_CONFIG_TRACE`` log entry with the config_id, version, checksum
    and plan count.
"""

from __future__ import annotations

import logging
from pathlib import Path

from portal_config.loader import load_configuration
from portal_config.schema import (
    PaymentsConfig,
    PlanDefinition,
    PortalConfiguration,
    SubscriptionsConfig,
)

_logger = logging.getLogger("portal_kernel.config")

# Default configuration sets directory
_DEFAULT_CONFIG_DIR = Path(__file__).parent / "sets"


def get_active_config(
    config_dir: Path | None = None,
    config_name: str = "default",
) -> PortalConfiguration:
    """The ONLY public configuration entrypoint.

    Args:
        config_dir: Override path to the configuration sets directory.
            Defaults to portal_config/sets/.
        config_name: Name of the set; ``<config_name>.yaml`` is loaded.

    Raises:
        FileNotFoundError: If the configuration set does not exist.
        ValueError: If configuration validation fails.
    """
    sets_dir = config_dir or _DEFAULT_CONFIG_DIR
    path = sets_dir / f"{config_name}.yaml"
    if not path.is_file():
        raise FileNotFoundError(f"Configuration set not found: {path}")

    config = load_configuration(path)

    _logger.info(
        "PORTAL_CONFIG_TRACE",
        extra={
            "trace_type": "PORTAL_CONFIG_TRACE",
            "config_set_id": config.config_id,
            "config_set_version": config.version,
            "checksum": config.checksum,
            "plan_count": len(config.subscriptions.plans),
        },
    )
    return config


__all__ = [
    "PaymentsConfig",
    "PlanDefinition",
    "PortalConfiguration",
    "SubscriptionsConfig",
    "get_active_config",
]
