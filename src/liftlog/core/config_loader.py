"""
YAML → typed config loader.

Loads settings from liftlog.yaml (bundled with the package) and optionally
merges user overrides from ~/.liftlog/config.yaml.

Usage:
    from liftlog.core.config_loader import load_app_config
    cfg = load_app_config()
    limit = cfg.rate_limit_for("generate_routine")

If the bundled YAML cannot be parsed, the Python defaults from config.py
are used (no crash).  If the user override file exists but has parse
errors, a warning is logged and the file is ignored.  Invalid rate limits
are dropped the same way, one entry at a time.

Environment:
    LIFTLOG_HOME    replaces data_dir (and the location of config.yaml)
    LIFTLOG_APP_ID  replaces app_id
"""

from __future__ import annotations

import importlib.resources
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from ..io.document_store import merge_documents
from .config import DEFAULT_APP_ID, DEFAULT_RATE_LIMITS

LOGGER = logging.getLogger(__name__)

DEFAULT_DATA_DIR = "~/.liftlog"
DEFAULT_USER = "local"

# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a single YAML file; return {} if it is missing or not a mapping."""
    try:
        with open(path, "r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
    except (OSError, yaml.YAMLError) as e:
        LOGGER.warning("Ignoring config file %s: %s", path, e)
        return {}
    return data if isinstance(data, dict) else {}


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


@dataclass
class AppConfig:
    """Resolved settings for one process."""

    app_id: str = DEFAULT_APP_ID
    data_dir: Path = field(default_factory=lambda: Path(DEFAULT_DATA_DIR).expanduser())
    default_user: str = DEFAULT_USER
    rate_limits: dict[str, int] = field(default_factory=lambda: dict(DEFAULT_RATE_LIMITS))
    enforce_rate_limits: bool = True

    @property
    def store_dir(self) -> Path:
        """Root of the JSON document store."""
        return self.data_dir / "store"

    @property
    def local_storage_path(self) -> Path:
        """File backing the device-local key-value storage."""
        return self.data_dir / "local_storage.json"

    def rate_limit_for(self, action: str) -> int:
        """
        Daily limit of *action*.

        Raises:
            KeyError: If the action has no configured limit
        """
        if action not in self.rate_limits:
            known = ", ".join(sorted(self.rate_limits)) or "none"
            raise KeyError(f"No rate limit configured for {action!r} (known: {known})")
        return self.rate_limits[action]


def get_bundled_yaml_path() -> Path | None:
    """Return the path to the bundled liftlog.yaml, or None if not found."""
    ref = importlib.resources.files("liftlog").joinpath("liftlog.yaml")
    if ref.is_file():
        with importlib.resources.as_file(ref) as p:
            return p
    candidate = Path(__file__).parent.parent / "liftlog.yaml"
    return candidate if candidate.exists() else None


def get_home_dir() -> Path:
    """LIFTLOG_HOME if set, else ~/.liftlog."""
    override = os.environ.get("LIFTLOG_HOME")
    return Path(override).expanduser() if override else Path(DEFAULT_DATA_DIR).expanduser()


def get_user_yaml_path() -> Path | None:
    """Return <home>/config.yaml if it exists, else None."""
    p = get_home_dir() / "config.yaml"
    return p if p.exists() else None


def load_config_dict() -> dict[str, Any]:
    """
    Load and merge configuration from YAML sources.

    Load order (later overrides earlier):
    1. Bundled src/liftlog/liftlog.yaml
    2. User override at <home>/config.yaml

    Returns:
        Merged dict.  Empty dict if no YAML available.
    """
    config: dict[str, Any] = {}

    bundled = get_bundled_yaml_path()
    if bundled is not None:
        config = merge_documents(config, _load_yaml_file(bundled))

    user = get_user_yaml_path()
    if user is not None:
        user_cfg = _load_yaml_file(user)
        if user_cfg:
            config = merge_documents(config, user_cfg)

    return config


def build_app_config(raw: dict[str, Any]) -> AppConfig:
    """
    Convert a merged config dict to AppConfig, applying environment overrides.

    A rate limit that is not a non-negative integer is dropped with a
    warning; the action keeps its built-in default, if it has one.
    """
    rate_limits = dict(DEFAULT_RATE_LIMITS)
    configured = raw.get("rate_limits") or {}
    if not isinstance(configured, dict):
        LOGGER.warning("Ignoring rate_limits: expected a mapping, got %r", configured)
        configured = {}
    for action, limit in configured.items():
        if isinstance(limit, bool) or not isinstance(limit, int) or limit < 0:
            LOGGER.warning(
                "Ignoring rate limit for %r: expected a non-negative integer, got %r", action, limit
            )
            continue
        rate_limits[str(action)] = limit

    if os.environ.get("LIFTLOG_HOME"):
        data_dir = get_home_dir()
    else:
        data_dir = Path(str(raw.get("data_dir") or DEFAULT_DATA_DIR)).expanduser()

    return AppConfig(
        app_id=os.environ.get("LIFTLOG_APP_ID") or str(raw.get("app_id") or DEFAULT_APP_ID),
        data_dir=data_dir,
        default_user=str(raw.get("default_user") or DEFAULT_USER),
        rate_limits=rate_limits,
        enforce_rate_limits=bool(raw.get("enforce_rate_limits", True)),
    )


def load_app_config() -> AppConfig:
    """Load YAML sources and environment into an AppConfig."""
    return build_app_config(load_config_dict())
