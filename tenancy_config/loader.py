"""
Configuration Loader (``tenancy_config.loader``).

Responsibility
--------------
Loads a YAML configuration file and parses it into a typed
``TenancyConfig``.  Environment variables override file values so the same
file can serve several deployments.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown keys  -> ``ValueError`` (typos must not be silently ignored).
* Invalid values  -> ``ValueError`` from ``TenancyConfig.__post_init__``.
"""

from __future__ import annotations

import os
from dataclasses import fields
from decimal import Decimal
from pathlib import Path
from typing import Any

import yaml

from tenancy_config.schema import TenancyConfig

ENV_CONFIG_PATH = "TENANCY_CONFIG"
ENV_DATABASE_URL = "TENANCY_DATABASE_URL"

DEFAULTS_PATH = Path(__file__).with_name("defaults.yaml")

_DECIMAL_FIELDS = ("amount_quantum", "consistency_tolerance")


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_config(data: dict[str, Any]) -> TenancyConfig:
    """Parse a ``TenancyConfig`` from a dict (the ``tenancy`` section)."""
    known = {f.name for f in fields(TenancyConfig)}
    unknown = set(data) - known
    if unknown:
        raise ValueError(f"Unknown configuration keys: {sorted(unknown)}")

    values = dict(data)
    for name in _DECIMAL_FIELDS:
        if name in values:
            values[name] = Decimal(str(values[name]))
    if "expiry_sweep_enabled" in values:
        values["expiry_sweep_enabled"] = bool(values["expiry_sweep_enabled"])
    return TenancyConfig(**values)


def load_config(path: Path | str | None = None) -> TenancyConfig:
    """
    Load configuration from ``path`` (or ``$TENANCY_CONFIG``, or the bundled
    defaults), then apply ``$TENANCY_DATABASE_URL`` if set.
    """
    resolved = Path(path or os.environ.get(ENV_CONFIG_PATH) or DEFAULTS_PATH)
    raw = load_yaml_file(resolved)
    data = dict(raw.get("tenancy", raw))

    db_url = os.environ.get(ENV_DATABASE_URL)
    if db_url:
        data["database_url"] = db_url

    return parse_config(data)
