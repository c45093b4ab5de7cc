"""Resolution service orchestrating planning, peer resolution and reporting."""

from __future__ import annotations

import logging

from common.logging_utils import extra_context, is_debug_enabled, Timer
from registry.base import RegistryClient
from registry.cache import CachingRegistryClient

from .manifest import Manifest
from .planner import VersionTargetPlanner
from .profile import ResolutionOptions, scaffold_specifier
from .report import ResolutionReport, ResolutionReportBuilder
from .resolver import PeerCompatibilityResolver

logger = logging.getLogger(__name__)


class ResolutionService:
    """Run planner → resolver → report builder over one shared lookup cache."""

    def __init__(self, registry: RegistryClient, options: ResolutionOptions):
        options.validate()
        self.options = options
        self.registry = registry if isinstance(registry, CachingRegistryClient) else CachingRegistryClient(registry)
        self.resolver = PeerCompatibilityResolver(
            self.registry,
            concurrency_limit=options.concurrency_limit,
            max_rounds=options.max_rounds,
            timeout=options.timeout,
        )

    async def resolve(self, source: Manifest) -> ResolutionReport:
        """Produce the final manifest and decision log for ``source``."""
        with Timer() as timer:
            draft = await VersionTargetPlanner(self.registry, self.options).plan_manifest(source)
            outcome = await self.resolver.run(draft)
        report = ResolutionReportBuilder().build(
            draft,
            outcome,
            scaffold_specifier(self.options.profile, self.options.explicit_target_version),
        )
        logger.info(
            "Resolution %s after %d round(s): %d package(s), %d unresolved",
            report.status.value,
            report.rounds,
            len(report.decisions),
            len(report.unresolved),
        )
        if is_debug_enabled(logger):
            logger.debug(
                "Resolution finished",
                extra=extra_context(
                    event="function_exit",
                    component="service",
                    action="resolve",
                    outcome=report.status.value,
                    duration_ms=timer.duration_ms(),
                    **self.registry.stats(),
                ),
            )
        return report


async def resolve_manifest(
    source: Manifest,
    registry: RegistryClient,
    options: ResolutionOptions,
) -> ResolutionReport:
    """Convenience wrapper around ``ResolutionService``.

    Raises:
        ConfigurationError: before any work when ``options`` are unusable.
    """
    return await ResolutionService(registry, options).resolve(source)
