"""Configuration loading and CLI overrides.

Precedence: CLI flags, then the config file (``--config`` or
``DEPSHIFT_CONFIG``), then ``Constants`` defaults. Unlike purely cosmetic
settings, bad values here raise ``ConfigurationError`` so nothing runs with
settings the user did not ask for.
"""

from __future__ import annotations

import json
import logging
import os
from typing import Any, Dict, Optional

import yaml

from common.errors import ConfigurationError
from constants import Constants, UpgradeStrategy
from resolution.profile import FrameworkProfile, ResolutionOptions
from schema_validate import validate_config

logger = logging.getLogger(__name__)

_KNOWN_KEYS = {
    "registry_url",
    "concurrency",
    "max_rounds",
    "timeout",
    "strategy",
    "target_version",
    "ensure_companion",
    "framework",
}


def load_config(path: Optional[str]) -> Dict[str, Any]:
    """Load a YAML or JSON configuration file.

    Args:
        path: File path; falls back to ``DEPSHIFT_CONFIG`` when None.

    Returns:
        Configuration mapping (empty when no file is configured).

    Raises:
        ConfigurationError: when the file is missing or malformed.
    """
    path = path or os.environ.get(Constants.CONFIG_ENV)
    if not path:
        return {}
    if not os.path.isfile(path):
        raise ConfigurationError(f"config file not found: {path}")

    with open(path, "r", encoding="utf-8") as fh:
        try:
            if path.lower().endswith(".json"):
                data = json.load(fh)
            else:
                data = yaml.safe_load(fh)
        except (json.JSONDecodeError, yaml.YAMLError) as exc:
            raise ConfigurationError(f"failed to parse config {path}: {exc}") from exc

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"config {path} must be a mapping")
    unknown = set(data) - _KNOWN_KEYS
    if unknown:
        logger.warning("Ignoring unknown config keys: %s", ", ".join(sorted(unknown)))
    validate_config(data, source=f"config {path}")
    return data


def _as_tuple(value: Any, key: str) -> tuple:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    if isinstance(value, (list, tuple)) and all(isinstance(v, str) for v in value):
        return tuple(value)
    raise ConfigurationError(f"framework.{key} must be a string or a list of strings")


def build_profile(cfg: Dict[str, Any], args: Any = None) -> FrameworkProfile:
    """Framework profile from CLI flags over config over the default profile."""
    default = FrameworkProfile.default()
    framework = cfg.get("framework") or {}
    if not isinstance(framework, dict):
        raise ConfigurationError("framework must be a mapping")

    core = _as_tuple(framework.get("core"), "core") or default.core
    companions = _as_tuple(framework.get("companions"), "companions") or default.companions
    primary = framework.get("primary", default.primary)
    lockstep = _as_tuple(framework.get("lockstep"), "lockstep") if "lockstep" in framework else default.lockstep

    if getattr(args, "CORE", None):
        core = tuple(args.CORE)
    if getattr(args, "COMPANION", None):
        companions = tuple(args.COMPANION)
    if getattr(args, "PRIMARY", None):
        primary = args.PRIMARY
    if getattr(args, "LOCKSTEP", None):
        lockstep = tuple(args.LOCKSTEP)
    return FrameworkProfile(core=core, companions=companions, primary=primary or None, lockstep=lockstep)


def _pick(args: Any, attr: str, cfg: Dict[str, Any], key: str, default: Any) -> Any:
    value = getattr(args, attr, None)
    if value is not None:
        return value
    return cfg.get(key, default)


def build_options(args: Any, cfg: Optional[Dict[str, Any]] = None) -> ResolutionOptions:
    """Assemble validated ``ResolutionOptions``.

    Raises:
        ConfigurationError: on any unusable value.
    """
    cfg = cfg or {}
    strategy_name = _pick(args, "STRATEGY", cfg, "strategy", UpgradeStrategy.FRAMEWORK_ONLY.value)
    try:
        strategy = UpgradeStrategy(strategy_name)
    except ValueError as exc:
        raise ConfigurationError(
            f"unknown upgrade strategy {strategy_name!r}; expected one of {Constants.SUPPORTED_STRATEGIES}"
        ) from exc

    try:
        concurrency = int(_pick(args, "CONCURRENCY", cfg, "concurrency", Constants.DEFAULT_CONCURRENCY))
        max_rounds = int(_pick(args, "MAX_ROUNDS", cfg, "max_rounds", Constants.DEFAULT_MAX_ROUNDS))
        timeout = _pick(args, "TIMEOUT", cfg, "timeout", None)
        timeout = float(timeout) if timeout is not None else None
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"invalid numeric setting: {exc}") from exc

    target = _pick(args, "TARGET_VERSION", cfg, "target_version", None)
    options = ResolutionOptions(
        strategy=strategy,
        explicit_target_version=str(target) if target is not None else None,
        profile=build_profile(cfg, args),
        concurrency_limit=concurrency,
        max_rounds=max_rounds,
        timeout=timeout,
        ensure_companion=bool(cfg.get("ensure_companion", True)),
    )
    options.validate()
    return options


def registry_url(args: Any, cfg: Optional[Dict[str, Any]] = None) -> str:
    return _pick(args, "REGISTRY_URL", cfg or {}, "registry_url", Constants.REGISTRY_URL_NPM)
