"""Manifest model and the decision trail attached to it.

A ``Manifest`` holds the two ordered sections of a project manifest keyed by
validated package names. Every value change goes through
``Manifest.record``, which stores a new ``ResolutionDecision`` alongside the
change, so the history always explains how each entry got its value. Once
frozen the manifest rejects further records.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple

from common.errors import InvalidPackageName, ManifestFrozen
from constants import Constants

_NAME_RE = re.compile(
    r"^(?:@[A-Za-z0-9~-][A-Za-z0-9._~-]*/)?[A-Za-z0-9~-][A-Za-z0-9._~-]*$"
)


class PackageName(str):
    """Package identifier validated at construction.

    Accepts an optional ``@scope/`` prefix; rejects empty names, whitespace,
    leading dots or underscores and names longer than npm allows.
    """

    __slots__ = ()

    def __new__(cls, value: Any) -> "PackageName":
        if isinstance(value, PackageName):
            return value
        if not isinstance(value, str) or not value:
            raise InvalidPackageName(f"package name must be a non-empty string: {value!r}")
        if len(value) > Constants.MAX_PACKAGE_NAME_LENGTH:
            raise InvalidPackageName(f"package name too long: {value[:40]}...")
        if not _NAME_RE.match(value):
            raise InvalidPackageName(f"malformed package name: {value!r}")
        return super().__new__(cls, value)


class Section(Enum):
    """Manifest section a package is declared in."""

    DEPENDENCIES = "dependencies"
    DEV_DEPENDENCIES = "devDependencies"

    @property
    def order(self) -> int:
        return SECTION_ORDER.index(self)


SECTION_ORDER: Tuple[Section, ...] = (Section.DEPENDENCIES, Section.DEV_DEPENDENCIES)


class DecisionAction(Enum):
    """What happened to a package."""

    KEPT = "kept"
    UPGRADED = "upgraded"
    ADDED = "added"
    SKIPPED = "skipped"
    UNRESOLVED = "unresolved"


class ResolutionStatus(Enum):
    """Lifecycle of one resolution run."""

    DRAFT = "draft"
    RESOLVING = "resolving"
    CONVERGED = "converged"
    EXCEEDED_ROUNDS = "exceeded_rounds"
    ABORTED = "aborted"

    @property
    def is_terminal(self) -> bool:
        return self in (
            ResolutionStatus.CONVERGED,
            ResolutionStatus.EXCEEDED_ROUNDS,
            ResolutionStatus.ABORTED,
        )


@dataclass(frozen=True)
class ResolutionDecision:
    """One audit record.

    ``to_version`` is the value the entry holds after the decision (None for
    skipped entries that never made it into the manifest). ``round`` is 0 for
    decisions taken before peer resolution started.
    """

    package: str
    section: Section
    action: DecisionAction
    to_version: Optional[str]
    from_version: Optional[str] = None
    reason: str = ""
    round: int = 0

    @classmethod
    def kept(cls, package, section, version, reason, round_no=0):
        return cls(package, section, DecisionAction.KEPT, version, None, reason, round_no)

    @classmethod
    def upgraded(cls, package, section, from_version, to_version, reason, round_no=0):
        return cls(package, section, DecisionAction.UPGRADED, to_version, from_version, reason, round_no)

    @classmethod
    def added(cls, package, section, version, reason, round_no=0):
        return cls(package, section, DecisionAction.ADDED, version, None, reason, round_no)

    @classmethod
    def skipped(cls, package, section, version, reason, round_no=0):
        return cls(package, section, DecisionAction.SKIPPED, version, None, reason, round_no)

    @classmethod
    def unresolved(cls, package, section, version, reason, round_no=0, from_version=None):
        return cls(package, section, DecisionAction.UNRESOLVED, version, from_version, reason, round_no)

    @property
    def changes_value(self) -> bool:
        return self.action in (DecisionAction.UPGRADED, DecisionAction.ADDED)

    def to_dict(self) -> Dict[str, Any]:
        """External record shape; ``fromVersion`` only when known."""
        record: Dict[str, Any] = {
            "package": str(self.package),
            "section": self.section.value,
            "action": self.action.value,
        }
        if self.from_version is not None:
            record["fromVersion"] = self.from_version
        record["toVersion"] = self.to_version
        record["reason"] = self.reason
        return record


@dataclass(frozen=True)
class PeerRequirement:
    """A peer constraint discovered during one round."""

    source_package: PackageName
    peer_name: PackageName
    range: str
    optional: bool = False


@dataclass(frozen=True)
class ManifestEntry:
    section: Section
    name: PackageName
    spec: str


class Manifest:
    """Ordered ``dependencies`` and ``devDependencies`` with their decisions."""

    def __init__(self) -> None:
        self._sections: Dict[Section, Dict[PackageName, str]] = {s: {} for s in SECTION_ORDER}
        self._decisions: Dict[PackageName, ResolutionDecision] = {}
        self._history: List[ResolutionDecision] = []
        self._skipped: List[ResolutionDecision] = []
        self._frozen = False

    @classmethod
    def from_sections(
        cls,
        dependencies: Optional[Mapping[str, Any]] = None,
        dev_dependencies: Optional[Mapping[str, Any]] = None,
        reason: str = "declared in source manifest",
    ) -> "Manifest":
        """Build a manifest from raw name → spec mappings.

        Runtime entries win over dev entries of the same name; the dev entry is
        dropped with a ``skipped`` record, as are malformed names and empty
        specs.
        """
        manifest = cls()
        for section, raw in (
            (Section.DEPENDENCIES, dependencies or {}),
            (Section.DEV_DEPENDENCIES, dev_dependencies or {}),
        ):
            for raw_name, raw_spec in raw.items():
                try:
                    name = PackageName(raw_name)
                except InvalidPackageName as exc:
                    manifest.record(ResolutionDecision.skipped(str(raw_name), section, None, str(exc)))
                    continue
                spec = raw_spec.strip() if isinstance(raw_spec, str) else ""
                if not spec:
                    manifest.record(ResolutionDecision.skipped(name, section, None, "empty version spec"))
                    continue
                existing = manifest.section_of(name)
                if existing is not None:
                    manifest.record(
                        ResolutionDecision.skipped(
                            name, section, spec, f"duplicate of {existing.value} entry"
                        )
                    )
                    continue
                manifest.record(ResolutionDecision.kept(name, section, spec, reason))
        return manifest

    # -- queries --------------------------------------------------------

    def __contains__(self, name: object) -> bool:
        return any(name in entries for entries in self._sections.values())

    def __len__(self) -> int:
        return sum(len(entries) for entries in self._sections.values())

    def __iter__(self) -> Iterator[PackageName]:
        for section in SECTION_ORDER:
            yield from self._sections[section]

    def get(self, name: str) -> Optional[str]:
        for section in SECTION_ORDER:
            if name in self._sections[section]:
                return self._sections[section][name]
        return None

    def section_of(self, name: str) -> Optional[Section]:
        for section in SECTION_ORDER:
            if name in self._sections[section]:
                return section
        return None

    def entries(self) -> List[ManifestEntry]:
        """Snapshot of every entry, dependencies first, in insertion order."""
        return [
            ManifestEntry(section, name, spec)
            for section in SECTION_ORDER
            for name, spec in self._sections[section].items()
        ]

    @property
    def dependencies(self) -> Dict[str, str]:
        return dict(self._sections[Section.DEPENDENCIES])

    @property
    def dev_dependencies(self) -> Dict[str, str]:
        return dict(self._sections[Section.DEV_DEPENDENCIES])

    def decision(self, name: str) -> Optional[ResolutionDecision]:
        return self._decisions.get(name)

    def decisions(self) -> List[ResolutionDecision]:
        """Current decision of every present package, in entry order."""
        return [self._decisions[name] for name in self if name in self._decisions]

    @property
    def history(self) -> List[ResolutionDecision]:
        return list(self._history)

    @property
    def skipped(self) -> List[ResolutionDecision]:
        return list(self._skipped)

    @property
    def frozen(self) -> bool:
        return self._frozen

    # -- mutation -------------------------------------------------------

    def freeze(self) -> None:
        self._frozen = True

    def record(self, decision: ResolutionDecision) -> None:
        """Apply a decision and append it to the history.

        Raises:
            ManifestFrozen: after ``freeze``.
            ValueError: when the decision does not fit the current entry
                (adding a present package, changing a value without an
                ``upgraded`` record, moving a package between sections).
        """
        if self._frozen:
            raise ManifestFrozen(f"manifest is frozen; cannot record {decision.action.value} for {decision.package}")

        if decision.action == DecisionAction.SKIPPED:
            self._skipped.append(decision)
            self._history.append(decision)
            return

        name = PackageName(decision.package)
        if not decision.to_version:
            raise ValueError(f"{decision.action.value} decision for {name} has no version")
        current_section = self.section_of(name)

        if current_section is None:
            self._sections[decision.section][name] = decision.to_version
        else:
            if decision.action == DecisionAction.ADDED:
                raise ValueError(f"{name} is already present in {current_section.value}")
            if current_section != decision.section:
                raise ValueError(f"{name} belongs to {current_section.value}, not {decision.section.value}")
            current = self._sections[current_section][name]
            if decision.action == DecisionAction.UPGRADED:
                if decision.from_version is not None and decision.from_version != current:
                    raise ValueError(
                        f"stale upgrade for {name}: from {decision.from_version!r}, current {current!r}"
                    )
                self._sections[current_section][name] = decision.to_version
            elif decision.to_version != current:
                raise ValueError(f"{decision.action.value} decision may not change {name}")

        self._decisions[name] = decision
        self._history.append(decision)
