"""Dependency version resolution and peer compatibility engine."""

from .manifest import (
    DecisionAction,
    Manifest,
    PackageName,
    PeerRequirement,
    ResolutionDecision,
    ResolutionStatus,
    Section,
)
from .planner import VersionTargetPlanner
from .profile import FrameworkProfile, ResolutionOptions, scaffold_specifier
from .report import ResolutionReport, ResolutionReportBuilder
from .resolver import PeerCompatibilityResolver, ResolutionOutcome
from .service import ResolutionService, resolve_manifest

__all__ = [
    "DecisionAction",
    "FrameworkProfile",
    "Manifest",
    "PackageName",
    "PeerCompatibilityResolver",
    "PeerRequirement",
    "ResolutionDecision",
    "ResolutionOptions",
    "ResolutionOutcome",
    "ResolutionReport",
    "ResolutionReportBuilder",
    "ResolutionService",
    "ResolutionStatus",
    "Section",
    "VersionTargetPlanner",
    "resolve_manifest",
    "scaffold_specifier",
]
