"""Write-once lookup cache shared by all queries of a resolution run."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Tuple

from common.logging_utils import extra_context, is_debug_enabled

from .base import PeerRequirements, RegistryClient

logger = logging.getLogger(__name__)


class CachingRegistryClient(RegistryClient):
    """Memoise another client's answers.

    Keys are ``name`` for latest-version lookups and ``(name, spec)`` for peer
    lookups. Each key is written at most once and entries are never evicted,
    so concurrent workers racing on the same key at worst compute the same
    idempotent value twice and keep the first. Failures are not cached.
    """

    def __init__(self, inner: RegistryClient):
        self._inner = inner
        self._latest: Dict[str, Optional[str]] = {}
        self._peers: Dict[Tuple[str, str], PeerRequirements] = {}
        self.hits = 0
        self.misses = 0

    async def latest_stable_version(self, name: str) -> Optional[str]:
        if name in self._latest:
            self._trace_hit("latest", name)
            return self._latest[name]
        self.misses += 1
        value = await self._inner.latest_stable_version(name)
        return self._latest.setdefault(name, value)

    async def peer_requirements(self, name: str, version_spec: str) -> PeerRequirements:
        key = (name, version_spec)
        if key in self._peers:
            self._trace_hit("peers", f"{name}@{version_spec}")
            return self._peers[key]
        self.misses += 1
        value = await self._inner.peer_requirements(name, version_spec)
        return self._peers.setdefault(key, value)

    async def close(self) -> None:
        await self._inner.close()

    def stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        return {
            "latest_entries": len(self._latest),
            "peer_entries": len(self._peers),
            "hits": self.hits,
            "misses": self.misses,
        }

    def _trace_hit(self, kind: str, target: str) -> None:
        self.hits += 1
        if is_debug_enabled(logger):
            logger.debug(
                "Registry cache hit",
                extra=extra_context(
                    event="cache_hit",
                    component="registry_cache",
                    action=kind,
                    target=target,
                ),
            )
