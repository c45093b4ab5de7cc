"""Peer compatibility resolution: iterate the draft to a fixed point.

Each round snapshots the manifest, fetches peer requirements for every entry
through a bounded pool of async workers, and only then applies the results in
a fixed order (dependencies before devDependencies, requirer name, peer
name). Rounds run strictly one after another; the loop stops when a round
changes nothing or when ``max_rounds`` is reached, in which case the packages
still moving are marked unresolved.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple, Union

from common.errors import (
    ConfigurationError,
    InvalidPackageName,
    InvalidVersionSpec,
    RegistryLookupFailed,
    ResolutionError,
)
from common.logging_utils import extra_context, is_debug_enabled, Timer
from constants import Constants
from registry.base import PeerRequirements, RegistryClient
from versioning.parser import is_compatible, is_valid_spec, parse_version_spec

from .manifest import (
    DecisionAction,
    Manifest,
    ManifestEntry,
    PackageName,
    PeerRequirement,
    ResolutionDecision,
    ResolutionStatus,
    Section,
)

logger = logging.getLogger(__name__)

REASON_MISSING_PEER = "missing mandatory peer of {requirer}"
REASON_ALIGN = "align to peer range of {requirer}"
REASON_CYCLE = "peer cycle: max rounds exceeded"
REASON_PEER_LOOKUP_FAILED = "peer lookup failed"

QueryResult = Union[PeerRequirements, RegistryLookupFailed]


class _RoundAborted(Exception):
    """In-flight queries were cancelled by timeout or abort()."""


@dataclass(frozen=True)
class ResolutionOutcome:
    """Terminal state of a run."""

    status: ResolutionStatus
    rounds: int
    unresolved: Tuple[str, ...] = field(default_factory=tuple)


class PeerCompatibilityResolver:
    """Drive a draft manifest to a peer-compatible fixed point.

    A resolver instance runs once: ``draft → resolving(n) → converged |
    exceeded_rounds | aborted``.
    """

    def __init__(
        self,
        registry: RegistryClient,
        concurrency_limit: int = Constants.DEFAULT_CONCURRENCY,
        max_rounds: int = Constants.DEFAULT_MAX_ROUNDS,
        timeout: Optional[float] = None,
    ):
        if isinstance(concurrency_limit, bool) or not isinstance(concurrency_limit, int) or concurrency_limit < 1:
            raise ConfigurationError(f"concurrency limit must be an integer >= 1, got {concurrency_limit!r}")
        if isinstance(max_rounds, bool) or not isinstance(max_rounds, int) or max_rounds < 1:
            raise ConfigurationError(f"max rounds must be an integer >= 1, got {max_rounds!r}")
        if timeout is not None and timeout <= 0:
            raise ConfigurationError(f"timeout must be positive, got {timeout!r}")
        self.registry = registry
        self.concurrency_limit = concurrency_limit
        self.max_rounds = max_rounds
        self.timeout = timeout
        self.status = ResolutionStatus.DRAFT
        self.round = 0
        self.peak_in_flight = 0
        self._in_flight = 0
        self._abort = asyncio.Event()
        self._lookup_failures: Dict[str, str] = {}

    def abort(self) -> None:
        """Cancel in-flight queries; the run ends with the last applied round."""
        self._abort.set()

    def _advance(self, status: ResolutionStatus, round_no: int = 0) -> None:
        if self.status.is_terminal:
            raise ResolutionError(f"resolution already finished with status {self.status.value}")
        if round_no and round_no <= self.round:
            raise ResolutionError(f"round {round_no} does not follow round {self.round}")
        self.status = status
        if round_no:
            self.round = round_no

    async def run(self, manifest: Manifest) -> ResolutionOutcome:
        """Resolve ``manifest`` in place and return the terminal state.

        Raises:
            ResolutionError: when this resolver already ran, or the manifest is
                frozen.
        """
        if self.status != ResolutionStatus.DRAFT:
            raise ResolutionError("resolver can only run from the draft state")
        if manifest.frozen:
            raise ResolutionError("cannot resolve a frozen manifest")

        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.timeout if self.timeout is not None else None

        while True:
            round_no = self.round + 1
            self._advance(ResolutionStatus.RESOLVING, round_no)
            snapshot = manifest.entries()

            with Timer() as timer:
                try:
                    results = await self._query_round(snapshot, deadline)
                except _RoundAborted:
                    logger.warning(
                        "Peer resolution aborted during round %d; keeping round %d result",
                        round_no,
                        round_no - 1,
                    )
                    self._advance(ResolutionStatus.ABORTED)
                    return ResolutionOutcome(ResolutionStatus.ABORTED, round_no - 1)

            changed = self._apply_round(manifest, snapshot, results, round_no)
            logger.info("Peer resolution round %d: %d change(s)", round_no, len(changed))
            if is_debug_enabled(logger):
                logger.debug(
                    "Round applied",
                    extra=extra_context(
                        event="round",
                        component="resolver",
                        action="apply",
                        round=round_no,
                        count=len(changed),
                        duration_ms=timer.duration_ms(),
                    ),
                )

            if not changed:
                self._advance(ResolutionStatus.CONVERGED)
                return ResolutionOutcome(ResolutionStatus.CONVERGED, round_no)

            if round_no + 1 > self.max_rounds:
                unresolved = self._mark_cycle(manifest, changed, round_no)
                logger.warning(
                    "Peer resolution did not converge within %d round(s); unresolved: %s",
                    self.max_rounds,
                    ", ".join(unresolved),
                )
                self._advance(ResolutionStatus.EXCEEDED_ROUNDS)
                return ResolutionOutcome(ResolutionStatus.EXCEEDED_ROUNDS, round_no, unresolved)

    async def _query_round(
        self, snapshot: List[ManifestEntry], deadline: Optional[float]
    ) -> Dict[PackageName, QueryResult]:
        """Fetch peer requirements for the whole snapshot with a worker pool."""
        targets = [entry for entry in snapshot if is_valid_spec(entry.spec)]
        results: Dict[PackageName, QueryResult] = {}
        if not targets:
            return results

        queue: "asyncio.Queue[ManifestEntry]" = asyncio.Queue()
        for entry in targets:
            queue.put_nowait(entry)

        async def worker() -> None:
            while True:
                try:
                    entry = queue.get_nowait()
                except asyncio.QueueEmpty:
                    return
                self._in_flight += 1
                self.peak_in_flight = max(self.peak_in_flight, self._in_flight)
                try:
                    results[entry.name] = await self.registry.peer_requirements(entry.name, entry.spec)
                except RegistryLookupFailed as exc:
                    results[entry.name] = exc
                finally:
                    self._in_flight -= 1

        workers = [asyncio.ensure_future(worker()) for _ in range(min(self.concurrency_limit, len(targets)))]
        pool = asyncio.ensure_future(asyncio.gather(*workers))
        abort_wait = asyncio.ensure_future(self._abort.wait())
        remaining = None
        if deadline is not None:
            remaining = max(0.0, deadline - asyncio.get_running_loop().time())
        try:
            done, _ = await asyncio.wait(
                {pool, abort_wait}, timeout=remaining, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            abort_wait.cancel()

        if pool not in done:
            pool.cancel()
            await asyncio.gather(pool, return_exceptions=True)
            raise _RoundAborted()
        pool.result()
        return results

    def _apply_round(
        self,
        manifest: Manifest,
        snapshot: List[ManifestEntry],
        results: Dict[PackageName, QueryResult],
        round_no: int,
    ) -> List[PackageName]:
        """Apply collected requirements in deterministic order; return changed names."""
        changed: Dict[PackageName, None] = {}
        ordered = sorted(snapshot, key=lambda e: (e.section.order, e.name))

        for entry in ordered:
            result = results.get(entry.name)
            if result is None:
                continue
            if isinstance(result, RegistryLookupFailed):
                self._note_lookup_failure(manifest, entry, result)
                continue
            for requirement in self._requirements_of(entry.name, result):
                if self._apply_requirement(manifest, requirement, round_no):
                    changed[requirement.peer_name] = None

        return list(changed)

    @staticmethod
    def _requirements_of(requirer: PackageName, result: PeerRequirements) -> List[PeerRequirement]:
        requirements = []
        for peer_name in sorted(result.peers):
            try:
                peer = PackageName(peer_name)
            except InvalidPackageName:
                logger.warning("Ignoring malformed peer name %r declared by %s", peer_name, requirer)
                continue
            if peer == requirer:
                continue
            requirements.append(
                PeerRequirement(requirer, peer, result.peers[peer_name], result.is_optional(peer_name))
            )
        return requirements

    def _apply_requirement(self, manifest: Manifest, req: PeerRequirement, round_no: int) -> bool:
        try:
            required = parse_version_spec(req.range)
        except InvalidVersionSpec:
            logger.warning(
                "Ignoring peer %s of %s: unparseable range %r", req.peer_name, req.source_package, req.range
            )
            return False

        current = manifest.get(req.peer_name)
        if current is None:
            if req.optional:
                return False
            manifest.record(
                ResolutionDecision.added(
                    req.peer_name,
                    Section.DEPENDENCIES,
                    req.range,
                    REASON_MISSING_PEER.format(requirer=req.source_package),
                    round_no,
                )
            )
            return True

        section = manifest.section_of(req.peer_name)
        try:
            selected = parse_version_spec(current)
        except InvalidVersionSpec as exc:
            decision = manifest.decision(req.peer_name)
            if decision is None or decision.action != DecisionAction.UNRESOLVED:
                manifest.record(
                    ResolutionDecision.unresolved(
                        req.peer_name,
                        section,
                        current,
                        f"invalid version spec ({exc.detail}); cannot check peer range of {req.source_package}",
                        round_no,
                    )
                )
            return False

        if current == req.range or is_compatible(selected, required):
            return False

        manifest.record(
            ResolutionDecision.upgraded(
                req.peer_name,
                section,
                current,
                req.range,
                REASON_ALIGN.format(requirer=req.source_package),
                round_no,
            )
        )
        return True

    def _note_lookup_failure(self, manifest: Manifest, entry: ManifestEntry, exc: RegistryLookupFailed) -> None:
        if entry.name in self._lookup_failures:
            return
        self._lookup_failures[entry.name] = exc.detail
        logger.warning("Peer lookup failed for %s@%s: %s", entry.name, entry.spec, exc.detail)
        decision = manifest.decision(entry.name)
        if decision is not None and decision.action == DecisionAction.KEPT:
            manifest.record(
                ResolutionDecision.kept(
                    entry.name,
                    entry.section,
                    entry.spec,
                    f"{decision.reason}; {REASON_PEER_LOOKUP_FAILED}: {exc.detail}",
                    decision.round,
                )
            )

    @staticmethod
    def _mark_cycle(manifest: Manifest, changed: List[PackageName], round_no: int) -> Tuple[str, ...]:
        for name in changed:
            previous = manifest.decision(name)
            manifest.record(
                ResolutionDecision.unresolved(
                    name,
                    manifest.section_of(name),
                    manifest.get(name),
                    REASON_CYCLE,
                    round_no,
                    from_version=previous.from_version if previous else None,
                )
            )
        return tuple(str(name) for name in changed)
