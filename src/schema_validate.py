"""JSON Schema validation for the config file and the JSON report.

Wraps jsonschema Draft7 validation: config files are validated strictly and
fail with ``ConfigurationError``; the report is checked best-effort before it
is exported and problems are logged rather than raised.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List

from jsonschema import Draft7Validator

from common.errors import ConfigurationError
from constants import Constants

logger = logging.getLogger(__name__)

_NAME_LIST = {
    "anyOf": [
        {"type": "string"},
        {"type": "array", "items": {"type": "string"}},
    ]
}

CONFIG_SCHEMA: Dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "properties": {
        "registry_url": {"type": "string", "minLength": 1},
        "concurrency": {"type": "integer", "minimum": 1},
        "max_rounds": {"type": "integer", "minimum": 1},
        "timeout": {"type": ["number", "null"], "exclusiveMinimum": 0},
        "strategy": {"type": "string", "enum": list(Constants.SUPPORTED_STRATEGIES)},
        "target_version": {"type": ["string", "number", "null"]},
        "ensure_companion": {"type": "boolean"},
        "framework": {
            "type": "object",
            "properties": {
                "core": _NAME_LIST,
                "companions": _NAME_LIST,
                "primary": {"type": ["string", "null"]},
                "lockstep": _NAME_LIST,
            },
            "additionalProperties": False,
        },
    },
}

_DECISION = {
    "type": "object",
    "required": ["package", "section", "action", "toVersion", "reason"],
    "properties": {
        "package": {"type": "string"},
        "section": {"enum": ["dependencies", "devDependencies"]},
        "action": {"enum": ["kept", "upgraded", "added", "skipped", "unresolved"]},
        "fromVersion": {"type": "string"},
        "toVersion": {"type": ["string", "null"]},
        "reason": {"type": "string"},
    },
}

REPORT_SCHEMA: Dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "required": ["status", "rounds", "dependencies", "devDependencies", "decisions", "skipped"],
    "properties": {
        "status": {"enum": ["converged", "exceeded_rounds", "aborted"]},
        "rounds": {"type": "integer", "minimum": 0},
        "scaffoldSpecifier": {"type": ["string", "null"]},
        "dependencies": {"type": "object", "additionalProperties": {"type": "string"}},
        "devDependencies": {"type": "object", "additionalProperties": {"type": "string"}},
        "decisions": {"type": "array", "items": _DECISION},
        "skipped": {"type": "array", "items": _DECISION},
    },
}


def _errors(schema: Dict[str, Any], data: Any) -> List[str]:
    validator = Draft7Validator(schema)
    messages = []
    for err in sorted(validator.iter_errors(data), key=lambda e: [str(p) for p in e.path]):
        path = "/".join(str(p) for p in err.path)
        messages.append(f"'{path}': {err.message}")
    return messages


def validate_config(data: Any, source: str = "config") -> None:
    """Validate a loaded config mapping; raise on the first problem.

    Raises:
        ConfigurationError: when ``data`` does not match ``CONFIG_SCHEMA``.
    """
    errors = _errors(CONFIG_SCHEMA, data)
    if errors:
        raise ConfigurationError(f"Invalid {source} at {errors[0]}")


def safe_validate_report(data: Dict[str, Any]) -> bool:
    """Validate the report best-effort; log problems instead of raising."""
    errors = _errors(REPORT_SCHEMA, data)
    for message in errors:
        logger.warning("Report does not match schema at %s", message)
    return not errors
