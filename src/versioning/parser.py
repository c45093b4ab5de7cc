"""Version spec parsing and compatibility tests."""

from typing import Optional

import semantic_version

from common.errors import InvalidVersionSpec
from constants import Constants

from .models import SpecMode, VersionSpec
from .ranges import Bound, Interval, VersionRange, parse_range


def _strip_exact_prefix(spec: str) -> str:
    s = spec.strip()
    if s.startswith("="):
        s = s[1:].strip()
    if s[:1] in ("v", "V"):
        s = s[1:]
    return s


def _as_exact_version(spec: str) -> Optional[semantic_version.Version]:
    """Return the version when ``spec`` names exactly one version, else None."""
    try:
        parsed = semantic_version.Version(_strip_exact_prefix(spec))
    except ValueError:
        return None
    # Build metadata does not take part in precedence
    return semantic_version.Version(
        major=parsed.major,
        minor=parsed.minor,
        patch=parsed.patch,
        prerelease=parsed.prerelease,
        build=(),
    )


def _determine_include_prerelease(spec: str) -> bool:
    """True when the spec itself names a pre-release (hyphen or known marker)."""
    lowered = spec.lower()
    if "-" in lowered.replace(" - ", " "):
        return True
    return any(marker in lowered for marker in Constants.PRERELEASE_MARKERS)


def parse_version_spec(raw: str) -> VersionSpec:
    """Classify and parse a manifest version spec.

    Raises:
        InvalidVersionSpec: for empty strings, dist-tags, URLs and other
            values that are not semver versions or ranges.
    """
    if raw is None or not str(raw).strip():
        raise InvalidVersionSpec(str(raw), "empty version spec")
    spec = str(raw).strip()

    exact = _as_exact_version(spec)
    if exact is not None:
        point = Interval(Bound(exact, True), Bound(exact, True))
        return VersionSpec(
            raw=spec,
            mode=SpecMode.EXACT,
            include_prerelease=bool(exact.prerelease),
            range=VersionRange(raw=spec, intervals=(point,)),
            version=exact,
        )

    version_range = parse_range(spec)
    return VersionSpec(
        raw=spec,
        mode=SpecMode.RANGE,
        include_prerelease=_determine_include_prerelease(spec),
        range=version_range,
    )


def is_valid_spec(raw: str) -> bool:
    try:
        parse_version_spec(raw)
    except InvalidVersionSpec:
        return False
    return True


def is_compatible(selected: VersionSpec, required: VersionSpec) -> bool:
    """Whether a selected spec can coexist with a required peer range.

    An exact selection must lie inside the required range; a selected range
    must share at least one version with it, pre-releases included.
    """
    if selected.is_exact:
        return required.range.contains(selected.version)
    return selected.range.intersects(required.range)
