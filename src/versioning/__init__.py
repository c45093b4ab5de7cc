"""Version spec parsing, range intersection and candidate selection."""

from .models import SpecMode, VersionSpec
from .parser import is_compatible, is_valid_spec, parse_version_spec
from .ranges import VersionRange, parse_range
from .selection import is_prerelease, pick_latest_stable, pick_max_satisfying

__all__ = [
    "SpecMode",
    "VersionSpec",
    "VersionRange",
    "is_compatible",
    "is_valid_spec",
    "is_prerelease",
    "parse_range",
    "parse_version_spec",
    "pick_latest_stable",
    "pick_max_satisfying",
]
