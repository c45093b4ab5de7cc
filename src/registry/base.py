"""Registry client interface consumed by the resolution engine.

The engine never talks to a concrete registry; it depends only on the two
queries below, so any package index (or a test stub) can back it.
"""

from __future__ import annotations

import abc
from dataclasses import dataclass, field
from typing import Dict, Optional


@dataclass(frozen=True)
class PeerRequirements:
    """Peer declarations of one package version."""

    peers: Dict[str, str] = field(default_factory=dict)
    optional: Dict[str, bool] = field(default_factory=dict)

    def is_optional(self, peer_name: str) -> bool:
        return bool(self.optional.get(peer_name, False))


class RegistryClient(abc.ABC):
    """Async registry lookups."""

    @abc.abstractmethod
    async def latest_stable_version(self, name: str) -> Optional[str]:
        """Latest non-pre-release version of ``name``, or None if unknown.

        Raises:
            RegistryLookupFailed: when the registry cannot be queried.
        """

    @abc.abstractmethod
    async def peer_requirements(self, name: str, version_spec: str) -> PeerRequirements:
        """Peer requirements of ``name`` at the version ``version_spec`` selects.

        Returns empty maps when the package declares no peers.

        Raises:
            RegistryLookupFailed: when the package or a matching version is
                missing, or the registry cannot be queried.
        """

    async def close(self) -> None:
        """Release network resources held by the client."""
