"""
Configuration Loader (``portal_config.loader``).

Responsibility
--------------
Loads a YAML configuration set and parses it into the typed, frozen
dataclasses of ``portal_config.schema``.  Runtime callers go through
``portal_config.get_active_config()``; this module is the tooling beneath it.

Architecture position
---------------------
**Config layer** -- infrastructure tooling.  No dependency on engines or
modules.

Invariants enforced
-------------------
* Parse errors raise ``ValueError`` or ``KeyError``; required keys never
  get silent defaults.
* Prices are parsed into ``Decimal`` through ``str`` (never via float math).
* ``compute_checksum`` is a deterministic SHA-256 over canonical JSON.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Invalid values  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from portal_config.schema import (
    PaymentsConfig,
    PlanDefinition,
    PortalConfiguration,
    SubscriptionsConfig,
)
from portal_kernel.domain.subscription import BillingInterval


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the top-level document is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top-level YAML document must be a mapping")
    return data


def parse_decimal(value: Any, field_name: str) -> Decimal:
    """Parse a price from YAML (string, int or float) into ``Decimal``."""
    if isinstance(value, bool) or value is None:
        raise ValueError(f"{field_name}: expected a number, got {value!r}")
    try:
        return Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"{field_name}: cannot parse {value!r} as a decimal") from None


def parse_bool(value: Any, field_name: str) -> bool:
    if not isinstance(value, bool):
        raise ValueError(f"{field_name}: expected true/false, got {value!r}")
    return value


def parse_payments(data: dict[str, Any]) -> PaymentsConfig:
    """Parse ``PaymentsConfig``; absent keys keep the schema defaults."""
    kwargs: dict[str, bool] = {}
    for key in (
        "default_requires_invoice",
        "generate_recurring_on_paid",
        "enforce_client_reference_on_recurrence",
    ):
        if key in data:
            kwargs[key] = parse_bool(data[key], f"payments.{key}")
    unknown = set(data) - set(PaymentsConfig.__dataclass_fields__)
    if unknown:
        raise ValueError(f"payments: unknown keys {sorted(unknown)}")
    return PaymentsConfig(**kwargs)


def parse_plan(data: dict[str, Any]) -> PlanDefinition:
    """
    Parse a ``PlanDefinition`` from a dict.

    Requires ``id``, ``slug``, ``name`` and ``price_monthly``.
    ``price_yearly`` defaults to twelve monthly payments.

    Raises:
        KeyError: if required keys are missing.
        ValueError: if a price cannot be parsed.
    """
    slug = data["slug"]
    price_monthly = parse_decimal(data["price_monthly"], f"plans.{slug}.price_monthly")
    if data.get("price_yearly") is not None:
        price_yearly = parse_decimal(data["price_yearly"], f"plans.{slug}.price_yearly")
    else:
        price_yearly = price_monthly * 12
    return PlanDefinition(
        id=str(data["id"]),
        slug=slug,
        name=data["name"],
        price_monthly=price_monthly,
        price_yearly=price_yearly,
        billing_price_id_monthly=data.get("billing_price_id_monthly") or None,
        billing_price_id_yearly=data.get("billing_price_id_yearly") or None,
    )


def parse_subscriptions(data: dict[str, Any]) -> SubscriptionsConfig:
    plans = tuple(parse_plan(p) for p in data.get("plans", []))
    interval_raw = data.get("default_interval", BillingInterval.MONTHLY.value)
    try:
        interval = BillingInterval(str(interval_raw).upper())
    except ValueError:
        raise ValueError(
            f"subscriptions.default_interval: unknown interval {interval_raw!r}"
        ) from None
    return SubscriptionsConfig(
        plans=plans,
        trial_plan_slug=data.get("trial_plan_slug"),
        default_interval=interval,
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def parse_configuration(data: dict[str, Any]) -> PortalConfiguration:
    """
    Parse a full configuration set.

    Raises:
        KeyError: if ``config_id`` is missing.
        ValueError: on invalid values.
    """
    version = data.get("version", 1)
    if isinstance(version, bool) or not isinstance(version, int) or version < 1:
        raise ValueError(f"version must be a positive integer, got {version!r}")
    return PortalConfiguration(
        config_id=data["config_id"],
        version=version,
        payments=parse_payments(data.get("payments") or {}),
        subscriptions=parse_subscriptions(data.get("subscriptions") or {}),
        checksum=compute_checksum(data),
    )


def load_configuration(path: Path) -> PortalConfiguration:
    """Load and parse one configuration set file."""
    return parse_configuration(load_yaml_file(path))
