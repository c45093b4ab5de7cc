"""Version target planning: the draft manifest before peer resolution."""

from __future__ import annotations

import logging
from typing import Optional, Tuple

from common.errors import InvalidVersionSpec, RegistryLookupFailed
from common.logging_utils import extra_context, is_debug_enabled
from constants import UpgradeStrategy
from registry.base import RegistryClient
from versioning.parser import parse_version_spec

from .manifest import Manifest, PackageName, ResolutionDecision, Section
from .profile import ResolutionOptions

logger = logging.getLogger(__name__)

REASON_EXPLICIT = "explicit target version"
REASON_COMPANION = "align with companion tool latest"
REASON_ALL = "upgrade all (latest)"
REASON_KEPT = "kept (strategy restricts upgrade)"
REASON_LOOKUP_FAILED = "lookup failed, kept original"
REASON_COMPANION_ADDED = "companion tool required by scaffold"


class VersionTargetPlanner:
    """Decide each package's desired version from strategy and profile."""

    def __init__(self, registry: RegistryClient, options: ResolutionOptions):
        self.registry = registry
        self.options = options

    async def plan_target(self, name: str, current_spec: str) -> Tuple[str, str]:
        """Return ``(target, reason)`` for one package; first matching rule wins.

        1. lockstep framework package with an explicit target → the explicit target;
        2. companion tool → its latest stable version;
        3. strategy ``all`` → latest stable version;
        4. otherwise the current spec.

        A failed or empty lookup keeps ``current_spec``.
        """
        profile = self.options.profile
        if profile.is_lockstep(name) and self.options.explicit_target_version:
            return self.options.explicit_target_version, REASON_EXPLICIT
        if profile.is_companion(name):
            return await self._latest_or_current(name, current_spec, REASON_COMPANION)
        if self.options.strategy == UpgradeStrategy.ALL:
            return await self._latest_or_current(name, current_spec, REASON_ALL)
        return current_spec, REASON_KEPT

    async def _latest_or_current(self, name: str, current_spec: str, reason: str) -> Tuple[str, str]:
        try:
            latest = await self.registry.latest_stable_version(name)
        except RegistryLookupFailed as exc:
            logger.warning("Latest version lookup failed for %s: %s", name, exc.detail)
            return current_spec, f"{REASON_LOOKUP_FAILED}: {exc.detail}"
        if not latest:
            return current_spec, f"{REASON_LOOKUP_FAILED}: no stable version found"
        return latest, reason

    async def plan_manifest(self, source: Manifest) -> Manifest:
        """Build the draft manifest from ``source``.

        Every source entry gets a ``kept``, ``upgraded`` or ``unresolved``
        decision; source ``skipped`` records carry over. The profile's primary
        package (with an explicit target) and companion tool are added when
        the source lacks them.
        """
        draft = Manifest()
        for skipped in source.skipped:
            draft.record(skipped)

        for entry in source.entries():
            target, reason = await self.plan_target(entry.name, entry.spec)
            draft.record(self._decide(entry.name, entry.section, entry.spec, target, reason))

        await self._ensure_framework_packages(draft)

        if is_debug_enabled(logger):
            logger.debug(
                "Draft manifest planned",
                extra=extra_context(
                    event="decision",
                    component="planner",
                    action="plan_manifest",
                    count=len(draft),
                    strategy=self.options.strategy.value,
                ),
            )
        return draft

    @staticmethod
    def _decide(name: PackageName, section: Section, current: str, target: str, reason: str) -> ResolutionDecision:
        if target != current:
            return ResolutionDecision.upgraded(name, section, current, target, reason)
        try:
            parse_version_spec(current)
        except InvalidVersionSpec as exc:
            logger.warning("Keeping %s at unparseable spec %r", name, current)
            return ResolutionDecision.unresolved(name, section, current, f"invalid version spec: {exc.detail}")
        return ResolutionDecision.kept(name, section, current, reason)

    async def _ensure_framework_packages(self, draft: Manifest) -> None:
        profile = self.options.profile
        target = self.options.explicit_target_version
        if profile.primary and target and profile.primary not in draft:
            draft.record(
                ResolutionDecision.added(PackageName(profile.primary), Section.DEPENDENCIES, target, REASON_EXPLICIT)
            )

        if not self.options.ensure_companion:
            return
        tool: Optional[str] = profile.scaffold_tool
        if tool is None or tool in draft:
            return
        if profile.is_lockstep(tool) and target:
            version, reason = target, REASON_EXPLICIT
        else:
            try:
                version = await self.registry.latest_stable_version(tool)
            except RegistryLookupFailed as exc:
                logger.warning("Companion tool %s not added: %s", tool, exc.detail)
                return
            reason = REASON_COMPANION_ADDED
        if version:
            draft.record(ResolutionDecision.added(PackageName(tool), Section.DEV_DEPENDENCIES, version, reason))
