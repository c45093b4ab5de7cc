"""Version selection over registry candidate lists."""

import logging
from typing import Iterable, List, Optional, Tuple

import semantic_version

from common.errors import InvalidVersionSpec
from constants import Constants

from .parser import parse_version_spec

logger = logging.getLogger(__name__)


def is_prerelease(version: str) -> bool:
    """True for candidates carrying a hyphen or a known pre-release marker."""
    lowered = version.lower()
    if "-" in lowered:
        return True
    return any(marker in lowered for marker in Constants.PRERELEASE_MARKERS)


def numeric_key(version: str) -> Optional[Tuple[int, ...]]:
    """Component-wise numeric sort key, or None when a component is not numeric."""
    core = version.strip().split("+", 1)[0]
    if core[:1] in ("v", "V"):
        core = core[1:]
    parts = core.split(".")
    if not parts or not all(p.isdigit() for p in parts):
        return None
    return tuple(int(p) for p in parts)


def pick_latest_stable(candidates: Iterable[str]) -> Optional[str]:
    """Pick the numerically greatest stable version.

    Pre-releases are dropped first; the remainder is compared as tuples of
    integers (major, minor, patch, then any further dotted components), so
    ``1.10.0`` beats ``1.9.0``.
    """
    best: Optional[str] = None
    best_key: Optional[Tuple[int, ...]] = None
    for candidate in candidates:
        if not candidate or is_prerelease(candidate):
            continue
        key = numeric_key(candidate)
        if key is None:
            continue
        if best_key is None or key > best_key:
            best, best_key = candidate, key
    return best


def pick_max_satisfying(spec_str: str, candidates: List[str]) -> Optional[str]:
    """Apply npm range rules and pick the highest matching version.

    Exact specs must be present verbatim. Pre-releases are considered only
    when the spec itself names one, the way npm installs.
    """
    try:
        spec = parse_version_spec(spec_str)
    except InvalidVersionSpec:
        logger.debug("Unparseable spec %s; no candidate selected", spec_str)
        return None

    if spec.is_exact:
        for v in candidates:
            try:
                if semantic_version.Version(v.lstrip("vV=")) == spec.version:
                    return v
            except ValueError:
                continue
        return None

    # Prefer NpmSpec which understands ^, ~, hyphen ranges, and x-ranges natively
    try:
        npm_spec = semantic_version.NpmSpec(spec.raw)
    except ValueError:
        npm_spec = None

    matching: List[Tuple[semantic_version.Version, str]] = []
    for v in candidates:
        try:
            ver = semantic_version.Version(v)
        except ValueError:
            continue  # Skip invalid versions
        # Skip pre-releases unless explicitly allowed
        if ver.prerelease and not spec.include_prerelease:
            continue
        ok = npm_spec.match(ver) if npm_spec is not None else spec.range.contains(ver)
        if ok:
            matching.append((ver, v))

    if not matching:
        return None
    matching.sort(key=lambda item: item[0], reverse=True)
    return matching[0][1]
