"""
Tenancy configuration (``tenancy_config``).

The single public entry point for runtime config is ``get_active_config()``;
services receive the resulting values through their constructors.
"""

from __future__ import annotations

import threading

from tenancy_config.loader import load_config
from tenancy_config.schema import TenancyConfig

__all__ = ["TenancyConfig", "get_active_config", "load_config", "reset_active_config"]

_active: TenancyConfig | None = None
_lock = threading.Lock()


def get_active_config() -> TenancyConfig:
    """Return the process-wide configuration, loading it on first use."""
    global _active
    with _lock:
        if _active is None:
            _active = load_config()
        return _active


def reset_active_config() -> None:
    """Forget the loaded configuration. FOR TESTING ONLY."""
    global _active
    with _lock:
        _active = None
