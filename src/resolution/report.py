"""Resolution report: the frozen manifest plus its decision log."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from common.errors import ResolutionError

from .manifest import DecisionAction, Manifest, ResolutionDecision, ResolutionStatus
from .resolver import ResolutionOutcome


@dataclass(frozen=True)
class ResolutionReport:
    """Final result of one run.

    ``decisions`` holds exactly one record per package of the final manifest;
    ``skipped`` lists source entries that never entered it; ``history`` is
    every record in the order it was applied.
    """

    status: ResolutionStatus
    rounds: int
    dependencies: Dict[str, str]
    dev_dependencies: Dict[str, str]
    decisions: Tuple[ResolutionDecision, ...]
    skipped: Tuple[ResolutionDecision, ...]
    history: Tuple[ResolutionDecision, ...]
    scaffold_specifier: Optional[str] = None

    def decision_for(self, package: str) -> Optional[ResolutionDecision]:
        for decision in self.decisions:
            if decision.package == package:
                return decision
        return None

    @property
    def unresolved(self) -> List[ResolutionDecision]:
        return [d for d in self.decisions if d.action == DecisionAction.UNRESOLVED]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "rounds": self.rounds,
            "scaffoldSpecifier": self.scaffold_specifier,
            "dependencies": dict(self.dependencies),
            "devDependencies": dict(self.dev_dependencies),
            "decisions": [d.to_dict() for d in self.decisions],
            "skipped": [d.to_dict() for d in self.skipped],
        }


class ResolutionReportBuilder:
    """Freeze a resolved manifest into a ``ResolutionReport``."""

    def build(
        self,
        manifest: Manifest,
        outcome: ResolutionOutcome,
        scaffold_specifier: Optional[str] = None,
    ) -> ResolutionReport:
        if not outcome.status.is_terminal:
            raise ResolutionError(f"cannot report a run in state {outcome.status.value}")
        manifest.freeze()

        decisions = manifest.decisions()
        names = [str(name) for name in manifest]
        decided = [str(d.package) for d in decisions]
        # one-to-one between final packages and decisions
        if decided != names or len(set(decided)) != len(decided):
            raise ResolutionError("decision log does not match the final manifest")

        return ResolutionReport(
            status=outcome.status,
            rounds=outcome.rounds,
            dependencies=manifest.dependencies,
            dev_dependencies=manifest.dev_dependencies,
            decisions=tuple(decisions),
            skipped=tuple(manifest.skipped),
            history=tuple(manifest.history),
            scaffold_specifier=scaffold_specifier,
        )
