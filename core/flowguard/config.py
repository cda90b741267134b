"""Shared flowguard configuration utilities.

Centralises reading of ~/.flowguard/configuration.json so that the executor,
the policy engine and the CLI share one implementation.
"""

import json
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from dotenv import dotenv_values

# ---------------------------------------------------------------------------
# Low-level config file access
# ---------------------------------------------------------------------------

FLOWGUARD_HOME = Path.home() / ".flowguard"
FLOWGUARD_CONFIG_FILE = FLOWGUARD_HOME / "configuration.json"

DEFAULT_ROLE_CAPABILITIES: dict[str, list[str]] = {
    "staff": ["browser:basic", "logic:*", "data:local"],
    "manager": [
        "browser:basic",
        "browser:advanced",
        "logic:*",
        "data:local",
        "network:internal",
        "files:read",
    ],
    "admin": [
        "browser:basic",
        "browser:advanced",
        "logic:*",
        "data:*",
        "network:internal",
        "network:external",
        "files:*",
        "email:read",
        "ai:generate",
        "db:read",
        "db:write",
    ],
    "super_admin": ["*"],
}

DEFAULT_ALLOWED_SCHEMES = ("http", "https", "imaps")


def get_config_path() -> Path:
    """Return the configuration file path, honouring FLOWGUARD_CONFIG."""
    override = os.environ.get("FLOWGUARD_CONFIG")
    return Path(override) if override else FLOWGUARD_CONFIG_FILE


def get_flowguard_config() -> dict[str, Any]:
    """Load flowguard configuration from ~/.flowguard/configuration.json."""
    path = get_config_path()
    if not path.exists():
        return {}
    try:
        with open(path, encoding="utf-8-sig") as f:
            return json.load(f)
    except (json.JSONDecodeError, OSError):
        return {}


# ---------------------------------------------------------------------------
# Derived helpers
# ---------------------------------------------------------------------------


def get_sandbox_roots() -> list[str]:
    """Return the configured sandbox roots (temp dir + artifacts dir by default)."""
    roots = get_flowguard_config().get("security", {}).get("sandbox_roots")
    if roots:
        return [os.path.abspath(os.path.expanduser(r)) for r in roots]
    return [
        os.path.abspath(tempfile.gettempdir()),
        os.path.abspath(FLOWGUARD_HOME / "artifacts"),
    ]


def get_default_root() -> str:
    """Return the root that relative paths are anchored under."""
    configured = get_flowguard_config().get("security", {}).get("default_root")
    if configured:
        return os.path.abspath(os.path.expanduser(configured))
    return get_sandbox_roots()[-1]


def get_allowed_schemes() -> tuple[str, ...]:
    schemes = get_flowguard_config().get("security", {}).get("allowed_schemes")
    if schemes:
        return tuple(s.lower().rstrip(":") for s in schemes)
    return DEFAULT_ALLOWED_SCHEMES


def get_role_capabilities() -> dict[str, list[str]]:
    """Return the role → capability map, with configured roles overriding defaults."""
    configured = get_flowguard_config().get("roles", {})
    merged = {role: list(caps) for role, caps in DEFAULT_ROLE_CAPABILITIES.items()}
    for role, caps in configured.items():
        merged[role] = list(caps)
    return merged


def load_secrets(dotenv_path: str | Path | None = None) -> dict[str, str]:
    """Load a secrets bag from a .env file (defaults to cwd/.env).

    Missing files yield an empty bag; keys without values are dropped.
    """
    path = Path(dotenv_path) if dotenv_path else Path.cwd() / ".env"
    if not path.exists():
        return {}
    return {k: v for k, v in dotenv_values(path).items() if v is not None}


# ---------------------------------------------------------------------------
# SecurityConfig – fixed configuration handed to the policy engine
# ---------------------------------------------------------------------------


@dataclass
class SecurityConfig:
    """Policy engine configuration loaded from ~/.flowguard/configuration.json."""

    sandbox_roots: list[str] = field(default_factory=get_sandbox_roots)
    default_root: str = field(default_factory=get_default_root)
    allowed_schemes: tuple[str, ...] = field(default_factory=get_allowed_schemes)
    role_capabilities: dict[str, list[str]] = field(default_factory=get_role_capabilities)
    dns_timeout_seconds: float = 5.0
