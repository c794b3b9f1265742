"""
Configuration Loading Utilities.
"""

from __future__ import annotations

import copy
import os
from pathlib import Path
from typing import Any

import yaml

DEFAULT_CONFIG_PATH = "configs/default_config.yaml"

# Environment variable → (section, key). Secrets never live in the YAML file.
ENV_OVERRIDES: dict[str, tuple[str, str]] = {
    "SUPABASE_URL": ("backend", "url"),
    "SUPABASE_ANON_KEY": ("backend", "anon_key"),
    "STRIPE_SECRET_KEY": ("payments", "stripe_secret_key"),
    "PAYMENT_CURRENCY": ("payments", "currency"),
    "REALTIME_WEBHOOK_SECRET": ("realtime", "webhook_secret"),
    "DASHBOARD_CACHE_PATH": ("dashboard", "persist_path"),
    "OAUTH_REDIRECT_URL": ("auth", "oauth_redirect_url"),
}


def _convert_numeric_strings(obj: Any) -> Any:
    """
    Recursively convert numeric strings to floats/ints.

    Handles values like '1e3' or '0.5' that YAML may parse as strings.
    """
    if isinstance(obj, dict):
        return {k: _convert_numeric_strings(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [_convert_numeric_strings(item) for item in obj]
    elif isinstance(obj, str):
        # Try to convert to number if it looks numeric
        try:
            if "." in obj or "e" in obj.lower():
                return float(obj)
            return int(obj)
        except ValueError:
            return obj
    return obj


def get_default_config() -> dict[str, Any]:
    """
    Get default configuration dictionary.

    Returns:
        Default configuration
    """
    return {
        "backend": {
            "url": "",
            "anon_key": "",
            "timeout": 10.0,
        },
        "auth": {
            "oauth_redirect_url": "http://localhost:3000/auth/callback",
        },
        "catalog": {
            "low_stock_threshold": 10,
        },
        "shipping": {
            "free_over": 1000,
            "flat_fee": 99,
        },
        "dashboard": {
            "cache_ttl_seconds": 300,
            "persist_path": ".cache/dashboard-storage.json",
        },
        "realtime": {
            "debounce_seconds": 0.5,
            "webhook_secret": "",
        },
        "payments": {
            "currency": "inr",
            "stripe_secret_key": "",
        },
    }


def apply_env_overrides(config: dict[str, Any], environ: dict[str, str] | None = None) -> dict[str, Any]:
    """Copy secrets and URLs from the environment into ``config``."""
    environ = os.environ if environ is None else environ
    for var, (section, key) in ENV_OVERRIDES.items():
        value = environ.get(var)
        if value:
            config.setdefault(section, {})[key] = value
    return config


def load_config(config_path: str | None = None) -> dict[str, Any]:
    """
    Load configuration from YAML file.

    Sections missing from the file fall back to :func:`get_default_config`;
    environment variables are applied last.

    Args:
        config_path: Path to configuration file (``STOREFRONT_CONFIG`` or
            the shipped default when omitted)

    Returns:
        Configuration dictionary

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If config file is invalid
    """
    config_path = Path(config_path or os.getenv("STOREFRONT_CONFIG", DEFAULT_CONFIG_PATH))

    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, encoding="utf-8") as f:
        config = yaml.safe_load(f) or {}

    # Convert any numeric strings (handles scientific notation edge cases)
    config = _convert_numeric_strings(config)

    # Fill missing sections and keys from the defaults
    for section, values in get_default_config().items():
        merged = copy.deepcopy(values)
        merged.update(config.get(section) or {})
        config[section] = merged

    return apply_env_overrides(config)


def save_config(config: dict[str, Any], config_path: str) -> None:
    """
    Save configuration to YAML file.

    Args:
        config: Configuration dictionary
        config_path: Output path
    """
    config_path = Path(config_path)
    config_path.parent.mkdir(parents=True, exist_ok=True)

    with open(config_path, "w", encoding="utf-8") as f:
        yaml.dump(config, f, default_flow_style=False, sort_keys=False)
