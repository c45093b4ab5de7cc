"""In-memory registry used by the resolution tests."""

import asyncio
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from common.errors import RegistryLookupFailed
from registry.base import PeerRequirements, RegistryClient


class FakeRegistry(RegistryClient):
    """Registry stub answering from dictionaries or a callable.

    ``peers`` maps ``(name, spec)`` to ``PeerRequirements``; ``peer_fn`` takes
    precedence when given. ``delays`` maps names to artificial latency so
    completion order can be shuffled.
    """

    def __init__(
        self,
        latest: Optional[Dict[str, Optional[str]]] = None,
        peers: Optional[Dict[Tuple[str, str], PeerRequirements]] = None,
        peer_fn: Optional[Callable[[str, str], PeerRequirements]] = None,
        failing: Iterable[str] = (),
        delay: float = 0.0,
        delays: Optional[Dict[str, float]] = None,
        on_peer_query: Optional[Callable[[str, str], None]] = None,
    ):
        self.latest = latest or {}
        self.peers = peers or {}
        self.peer_fn = peer_fn
        self.failing = set(failing)
        self.delay = delay
        self.delays = delays or {}
        self.on_peer_query = on_peer_query
        self.latest_calls: List[str] = []
        self.peer_calls: List[Tuple[str, str]] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def latest_stable_version(self, name):
        self.latest_calls.append(name)
        if name in self.failing:
            raise RegistryLookupFailed(name, "stub failure")
        return self.latest.get(name)

    async def peer_requirements(self, name, version_spec):
        self.peer_calls.append((name, version_spec))
        if self.on_peer_query is not None:
            self.on_peer_query(name, version_spec)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delays.get(name, self.delay))
        finally:
            self.in_flight -= 1
        if name in self.failing:
            raise RegistryLookupFailed(name, "stub failure", spec=version_spec)
        if self.peer_fn is not None:
            return self.peer_fn(name, version_spec)
        return self.peers.get((name, version_spec), PeerRequirements())


def peers(mapping, optional=None):
    """Shorthand for ``PeerRequirements``."""
    return PeerRequirements(peers=dict(mapping), optional=dict(optional or {}))
