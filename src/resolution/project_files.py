"""Reading the source project's package.json and writing the migrated one."""

from __future__ import annotations

import json
import logging
import os
from typing import Any, Dict, Optional

from constants import Constants

from .manifest import Manifest
from .report import ResolutionReport

logger = logging.getLogger(__name__)


def read_package_json(project_dir: str) -> Dict[str, Any]:
    """Load ``package.json`` from ``project_dir``.

    Raises:
        FileNotFoundError: when the file is missing.
        ValueError: when it is not a JSON object.
    """
    path = os.path.join(project_dir, Constants.PACKAGE_JSON_FILE)
    if not os.path.isfile(path):
        raise FileNotFoundError(f"package.json not found at {path}")
    with open(path, "r", encoding="utf-8") as fh:
        try:
            data = json.load(fh)
        except json.JSONDecodeError as exc:
            raise ValueError(f"{path} is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ValueError(f"{path} does not contain a JSON object")
    return data


def load_source_manifest(project_dir: str) -> Manifest:
    """Manifest of the declared dependencies of an existing project."""
    data = read_package_json(project_dir)
    dependencies = data.get("dependencies") or {}
    dev_dependencies = data.get("devDependencies") or {}
    if not isinstance(dependencies, dict) or not isinstance(dev_dependencies, dict):
        raise ValueError(f"dependency sections of {project_dir} must be JSON objects")
    manifest = Manifest.from_sections(dependencies, dev_dependencies)
    logger.info(
        "Loaded %d dependencies and %d devDependencies from %s",
        len(manifest.dependencies),
        len(manifest.dev_dependencies),
        project_dir,
    )
    return manifest


def project_name_for(project_dir: str) -> str:
    """Project name derived from the last path segment, whitespace as hyphens."""
    base = os.path.basename(os.path.normpath(project_dir)).strip()
    return "-".join(base.split())


def write_resolved_package_json(
    new_project_dir: str,
    report: ResolutionReport,
    project_name: Optional[str] = None,
) -> str:
    """Merge resolved sections into the scaffolded project's package.json.

    Entries the scaffold created are kept unless the report resolves the same
    name, in which case the report wins. A package resolved into one section
    is removed from the other.

    Returns:
        Path of the written file.
    """
    data = read_package_json(new_project_dir)
    data["name"] = project_name or project_name_for(new_project_dir)

    dependencies = dict(data.get("dependencies") or {})
    dev_dependencies = dict(data.get("devDependencies") or {})
    for name in report.dependencies:
        dev_dependencies.pop(name, None)
    for name in report.dev_dependencies:
        dependencies.pop(name, None)
    dependencies.update(report.dependencies)
    dev_dependencies.update(report.dev_dependencies)
    data["dependencies"] = dependencies
    data["devDependencies"] = dev_dependencies

    path = os.path.join(new_project_dir, Constants.PACKAGE_JSON_FILE)
    with open(path, "w", encoding="utf-8") as fh:
        json.dump(data, fh, indent=2)
        fh.write("\n")
    logger.info("Wrote resolved package.json to %s", path)
    return path
