"""npm range expressions desugared into unions of version intervals.

``semantic_version.NpmSpec`` answers "does this version match", but range
compatibility needs "do these two ranges share any version". Ranges are
therefore lowered to sets of intervals over ``semantic_version.Version``
(the same shape node-semver uses for its comparator sets) and intersected
interval by interval. Pre-release versions are ordinary points of the
ordering here: implied upper bounds such as the one of ``^1.2.3`` desugar to
``<2.0.0-0`` so the pre-releases of the next major stay outside, while an
explicit pre-release bound such as ``>=2.0.0-rc.1`` is honoured.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List, Optional, Tuple

import semantic_version

from common.errors import InvalidVersionSpec

_PARTIAL_RE = re.compile(
    r"^[vV]?"
    r"(?P<major>0|[1-9]\d*|[xX*])"
    r"(?:\.(?P<minor>0|[1-9]\d*|[xX*]))?"
    r"(?:\.(?P<patch>0|[1-9]\d*|[xX*]))?"
    r"(?:-(?P<pre>[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?"
    r"(?:\+(?P<build>[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?$"
)
_COMPARATOR_RE = re.compile(r"^(?P<op><=|>=|<|>|=|~>|~|\^)?(?P<partial>.*)$")
_HYPHEN_RE = re.compile(r"^\s*(?P<low>\S+)\s+-\s+(?P<high>\S+)\s*$")
_OP_SPACE_RE = re.compile(r"(<=|>=|<|>|=|~>|~|\^)\s+")
_WILDCARDS = {"x", "X", "*"}


@dataclass(frozen=True)
class Partial:
    """A possibly incomplete version such as ``1``, ``1.2`` or ``1.2.3-rc.1``."""

    major: Optional[int]
    minor: Optional[int]
    patch: Optional[int]
    prerelease: Tuple[str, ...] = ()

    @property
    def is_full(self) -> bool:
        return self.patch is not None

    @property
    def is_any(self) -> bool:
        return self.major is None


@dataclass(frozen=True)
class Bound:
    """One end of an interval."""

    version: semantic_version.Version
    inclusive: bool


@dataclass(frozen=True)
class Interval:
    """A contiguous run of versions; ``None`` bounds are unbounded."""

    lower: Optional[Bound] = None
    upper: Optional[Bound] = None

    def is_empty(self) -> bool:
        if self.lower is None or self.upper is None:
            return False
        if self.lower.version < self.upper.version:
            return False
        if self.lower.version == self.upper.version:
            return not (self.lower.inclusive and self.upper.inclusive)
        return True

    def contains(self, version: semantic_version.Version) -> bool:
        if self.lower is not None:
            if version < self.lower.version:
                return False
            if version == self.lower.version and not self.lower.inclusive:
                return False
        if self.upper is not None:
            if version > self.upper.version:
                return False
            if version == self.upper.version and not self.upper.inclusive:
                return False
        return True

    def intersect(self, other: "Interval") -> "Interval":
        return Interval(
            lower=_tighter_lower(self.lower, other.lower),
            upper=_tighter_upper(self.upper, other.upper),
        )


ANY = Interval()
EMPTY = Interval(
    lower=Bound(semantic_version.Version("0.0.0"), False),
    upper=Bound(semantic_version.Version("0.0.0"), False),
)


def _tighter_lower(a: Optional[Bound], b: Optional[Bound]) -> Optional[Bound]:
    if a is None:
        return b
    if b is None:
        return a
    if a.version != b.version:
        return a if a.version > b.version else b
    return a if not a.inclusive else b


def _tighter_upper(a: Optional[Bound], b: Optional[Bound]) -> Optional[Bound]:
    if a is None:
        return b
    if b is None:
        return a
    if a.version != b.version:
        return a if a.version < b.version else b
    return a if not a.inclusive else b


@dataclass(frozen=True)
class VersionRange:
    """Union of intervals parsed from an npm range expression."""

    raw: str
    intervals: Tuple[Interval, ...]

    def is_empty(self) -> bool:
        return all(i.is_empty() for i in self.intervals)

    def contains(self, version: semantic_version.Version) -> bool:
        return any(i.contains(version) for i in self.intervals if not i.is_empty())

    def intersects(self, other: "VersionRange") -> bool:
        for mine in self.intervals:
            for theirs in other.intervals:
                if not mine.intersect(theirs).is_empty():
                    return True
        return False


def _version(major: int, minor: int, patch: int, prerelease: Tuple[str, ...] = ()) -> semantic_version.Version:
    return semantic_version.Version(major=major, minor=minor, patch=patch, prerelease=prerelease, build=())


def _floor(major: int, minor: int = 0, patch: int = 0) -> semantic_version.Version:
    """Lowest version of a release line, its first possible pre-release."""
    return _version(major, minor, patch, ("0",))


def parse_partial(text: str) -> Partial:
    """Parse a partial version; wildcards and missing parts become None."""
    text = text.strip()
    if text.startswith("="):
        text = text[1:].strip()
    if text == "":
        return Partial(None, None, None)
    match = _PARTIAL_RE.match(text)
    if not match:
        raise InvalidVersionSpec(text, "not a version")

    parts: List[Optional[int]] = []
    wildcard_seen = False
    for key in ("major", "minor", "patch"):
        value = match.group(key)
        if value is None or value in _WILDCARDS or wildcard_seen:
            wildcard_seen = True
            parts.append(None)
        else:
            parts.append(int(value))
    pre = match.group("pre")
    prerelease = tuple(pre.split(".")) if pre and parts[2] is not None else ()
    return Partial(parts[0], parts[1], parts[2], prerelease)


def _exact_partial(p: Partial) -> Tuple[semantic_version.Version, semantic_version.Version]:
    """Full version of a complete partial."""
    v = _version(p.major, p.minor, p.patch, p.prerelease)
    return v, v


def _lower_of(p: Partial) -> Optional[Bound]:
    if p.is_any:
        return None
    if p.is_full:
        return Bound(_version(p.major, p.minor, p.patch, p.prerelease), True)
    return Bound(_floor(p.major, p.minor or 0), True)


def _upper_after(p: Partial) -> Optional[Bound]:
    """Exclusive upper bound just past everything ``p`` can denote."""
    if p.is_any:
        return None
    if p.minor is None:
        return Bound(_floor(p.major + 1), False)
    return Bound(_floor(p.major, p.minor + 1), False)


def _comparator(op: str, p: Partial) -> Interval:
    # pylint: disable=too-many-return-statements, too-many-branches
    if op in ("", "="):
        if p.is_any:
            return ANY
        if p.is_full:
            low, high = _exact_partial(p)
            return Interval(Bound(low, True), Bound(high, True))
        return Interval(_lower_of(p), _upper_after(p))

    if op == ">":
        if p.is_any:
            return EMPTY
        if p.is_full:
            return Interval(lower=Bound(_version(p.major, p.minor, p.patch, p.prerelease), False))
        return Interval(lower=Bound(_upper_after(p).version, True))

    if op == ">=":
        return Interval(lower=_lower_of(p))

    if op == "<":
        if p.is_any:
            return EMPTY
        if p.is_full:
            return Interval(upper=Bound(_version(p.major, p.minor, p.patch, p.prerelease), False))
        return Interval(upper=Bound(_floor(p.major, p.minor or 0), False))

    if op == "<=":
        if p.is_any:
            return ANY
        if p.is_full:
            return Interval(upper=Bound(_version(p.major, p.minor, p.patch, p.prerelease), True))
        return Interval(upper=_upper_after(p))

    if op in ("~", "~>"):
        if p.is_any:
            return ANY
        if p.minor is None:
            return Interval(_lower_of(p), Bound(_floor(p.major + 1), False))
        return Interval(_lower_of(p), Bound(_floor(p.major, p.minor + 1), False))

    if op == "^":
        if p.is_any:
            return ANY
        if p.major > 0 or p.minor is None:
            upper = _floor(p.major + 1)
        elif p.minor > 0 or p.patch is None:
            upper = _floor(0, p.minor + 1)
        else:
            upper = _floor(0, 0, p.patch + 1)
        return Interval(_lower_of(p), Bound(upper, False))

    raise InvalidVersionSpec(op, "unknown operator")


def _hyphen(low: Partial, high: Partial) -> Interval:
    lower = _lower_of(low)
    if high.is_any:
        upper = None
    elif high.is_full:
        upper = Bound(_version(high.major, high.minor, high.patch, high.prerelease), True)
    else:
        upper = _upper_after(high)
    return Interval(lower, upper)


def _parse_conjunction(text: str) -> Interval:
    text = text.strip()
    if text == "":
        return ANY
    hyphen = _HYPHEN_RE.match(text)
    if hyphen:
        return _hyphen(parse_partial(hyphen.group("low")), parse_partial(hyphen.group("high")))

    interval = ANY
    for token in _OP_SPACE_RE.sub(r"\1", text).split():
        match = _COMPARATOR_RE.match(token)
        op = match.group("op") or ""
        partial = match.group("partial")
        if op and not partial:
            raise InvalidVersionSpec(token, "operator without version")
        interval = interval.intersect(_comparator(op, parse_partial(partial)))
    return interval


def parse_range(raw: str) -> VersionRange:
    """Parse an npm range expression.

    Raises:
        InvalidVersionSpec: when any comparator cannot be parsed.
    """
    if raw is None:
        raise InvalidVersionSpec("None", "missing version spec")
    try:
        intervals = tuple(_parse_conjunction(part) for part in raw.split("||"))
    except InvalidVersionSpec as exc:
        raise InvalidVersionSpec(raw, exc.detail) from exc
    except ValueError as exc:
        raise InvalidVersionSpec(raw, str(exc)) from exc
    return VersionRange(raw=raw, intervals=intervals)
