"""Framework membership and resolution options."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional, Tuple

from common.errors import ConfigurationError, InvalidVersionSpec
from constants import Constants, DefaultFramework, UpgradeStrategy
from versioning.parser import parse_version_spec


def _matches(name: str, entries: Iterable[str]) -> bool:
    """Entries ending in ``/`` are scope prefixes; anything else is an exact name."""
    for entry in entries:
        if entry.endswith("/"):
            if name.startswith(entry):
                return True
        elif name == entry:
            return True
    return False


@dataclass(frozen=True)
class FrameworkProfile:
    """Which packages belong to the framework being migrated.

    ``core`` lists the framework's packages; of those, the ones matched by
    ``lockstep`` (and ``primary``) move to an explicit target version.
    ``companions`` (the build/CLI tool) always follow their latest stable
    release; ``primary`` is the package that carries the framework version.
    A custom ``core_predicate`` replaces the name/prefix check entirely.
    """

    core: Tuple[str, ...] = ()
    companions: Tuple[str, ...] = ()
    primary: Optional[str] = None
    lockstep: Tuple[str, ...] = ()
    core_predicate: Optional[Callable[[str], bool]] = field(default=None, compare=False)

    @classmethod
    def default(cls) -> "FrameworkProfile":
        return cls(
            core=tuple(DefaultFramework.CORE.value),
            companions=tuple(DefaultFramework.COMPANIONS.value),
            primary=DefaultFramework.PRIMARY.value,
            lockstep=tuple(DefaultFramework.LOCKSTEP.value),
        )

    def is_core(self, name: str) -> bool:
        if self.core_predicate is not None:
            return bool(self.core_predicate(name))
        return _matches(name, self.core)

    def is_lockstep(self, name: str) -> bool:
        """Whether ``name`` takes the explicit target version instead of its own."""
        if self.primary is not None and name == self.primary:
            return True
        return self.is_core(name) and _matches(name, self.lockstep)

    def is_companion(self, name: str) -> bool:
        return name in self.companions

    @property
    def scaffold_tool(self) -> Optional[str]:
        return self.companions[0] if self.companions else None


@dataclass
class ResolutionOptions:
    """Everything a resolution run needs besides the manifest and registry."""

    strategy: UpgradeStrategy = UpgradeStrategy.FRAMEWORK_ONLY
    explicit_target_version: Optional[str] = None
    profile: FrameworkProfile = field(default_factory=FrameworkProfile.default)
    concurrency_limit: int = Constants.DEFAULT_CONCURRENCY
    max_rounds: int = Constants.DEFAULT_MAX_ROUNDS
    timeout: Optional[float] = None
    ensure_companion: bool = True

    def validate(self) -> None:
        """Reject unusable settings before any resolution work begins.

        Raises:
            ConfigurationError: on a bad strategy, limit, round cap, timeout or
                target version.
        """
        if not isinstance(self.strategy, UpgradeStrategy):
            try:
                self.strategy = UpgradeStrategy(self.strategy)
            except ValueError as exc:
                raise ConfigurationError(
                    f"unknown upgrade strategy {self.strategy!r}; expected one of {Constants.SUPPORTED_STRATEGIES}"
                ) from exc
        if isinstance(self.concurrency_limit, bool) or not isinstance(self.concurrency_limit, int) \
                or self.concurrency_limit < 1:
            raise ConfigurationError(f"concurrency limit must be an integer >= 1, got {self.concurrency_limit!r}")
        if isinstance(self.max_rounds, bool) or not isinstance(self.max_rounds, int) or self.max_rounds < 1:
            raise ConfigurationError(f"max rounds must be an integer >= 1, got {self.max_rounds!r}")
        if self.timeout is not None and self.timeout <= 0:
            raise ConfigurationError(f"timeout must be positive, got {self.timeout!r}")
        if self.explicit_target_version is not None:
            try:
                parse_version_spec(self.explicit_target_version)
            except InvalidVersionSpec as exc:
                raise ConfigurationError(f"explicit target version is not a version: {exc}") from exc


def scaffold_specifier(profile: FrameworkProfile, target_version: Optional[str]) -> Optional[str]:
    """Package specifier for the scaffolding CLI, pinned to the target's major.

    ``18.2.5`` with an ``@angular/cli`` companion gives ``@angular/cli@18``;
    no target (or no recognisable major) gives ``@angular/cli@latest``.
    """
    tool = profile.scaffold_tool
    if tool is None:
        return None
    if target_version:
        match = re.search(r"(\d+)", target_version)
        if match and int(match.group(1)) > 0:
            return f"{tool}@{int(match.group(1))}"
    return f"{tool}@latest"
