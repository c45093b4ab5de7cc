"""NPM registry client: latest stable versions and peer requirements."""

from __future__ import annotations

import asyncio
import logging
import urllib.parse
from typing import Any, Dict, Optional

import aiohttp

from constants import Constants
from common.errors import RegistryLookupFailed
from common.http_client import get_json, make_session
from common.logging_utils import extra_context, is_debug_enabled, safe_url, Timer
from registry.base import PeerRequirements, RegistryClient
from versioning.selection import pick_latest_stable, pick_max_satisfying

logger = logging.getLogger(__name__)

PACKUMENT_HEADERS = {
    "Accept": "application/vnd.npm.install-v1+json; q=1.0, application/json; q=0.8, */*"
}


def package_url(base_url: str, name: str) -> str:
    """Registry URL of a package document; scoped names keep ``@`` and escape ``/``."""
    base = base_url if base_url.endswith("/") else base_url + "/"
    return base + urllib.parse.quote(name, safe="@")


def _mapping(doc: Dict[str, Any], key: str) -> Dict[str, Any]:
    """Value of ``key`` in a registry document; missing or null is empty.

    Raises:
        ValueError: when the value is present but not a JSON object.
    """
    value = doc.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValueError(f"{key} is not an object")
    return value


def extract_peer_requirements(version_doc: Dict[str, Any]) -> PeerRequirements:
    """Read peerDependencies and peerDependenciesMeta from one version document.

    Raises:
        ValueError: when either field is not a JSON object.
    """
    raw_peers = _mapping(version_doc, "peerDependencies")
    raw_meta = _mapping(version_doc, "peerDependenciesMeta")
    peers = {str(k): str(v) for k, v in raw_peers.items() if isinstance(v, str) and v.strip()}
    optional = {}
    for peer_name, meta in raw_meta.items():
        if isinstance(meta, dict):
            optional[str(peer_name)] = bool(meta.get("optional", False))
    return PeerRequirements(peers=peers, optional=optional)


class NpmRegistryClient(RegistryClient):
    """Answers registry queries from npm packuments.

    Packuments are fetched once per name per client; concurrent callers for
    the same name share one in-flight request.
    """

    def __init__(
        self,
        base_url: str = Constants.REGISTRY_URL_NPM,
        session: Optional[aiohttp.ClientSession] = None,
        timeout: Optional[float] = None,
    ):
        self.base_url = base_url
        self._session = session
        self._owns_session = session is None
        self._timeout = timeout
        self._packuments: Dict[str, "asyncio.Future[Optional[Dict[str, Any]]]"] = {}

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = make_session(self._timeout)
        return self._session

    async def close(self) -> None:
        if self._session is not None and self._owns_session:
            await self._session.close()
        self._session = None

    async def fetch_packument(self, name: str) -> Optional[Dict[str, Any]]:
        """Packument of ``name``; None when the registry does not know it.

        Raises:
            RegistryLookupFailed: on connection failures or unexpected statuses.
        """
        pending = self._packuments.get(name)
        if pending is None:
            pending = asyncio.ensure_future(self._download_packument(name))
            self._packuments[name] = pending
        try:
            return await pending
        except (RegistryLookupFailed, asyncio.CancelledError):
            # Failed or cancelled downloads are retried on the next call
            if self._packuments.get(name) is pending:
                del self._packuments[name]
            raise

    async def _download_packument(self, name: str) -> Optional[Dict[str, Any]]:
        url = package_url(self.base_url, name)
        with Timer() as timer:
            status, _, data = await get_json(self._get_session(), url, headers=PACKUMENT_HEADERS)

        if status == 404:
            logger.warning(
                "Package not found in registry: %s",
                name,
                extra=extra_context(
                    event="http_response",
                    outcome="not_found",
                    status_code=404,
                    target=safe_url(url),
                    package_manager="npm",
                ),
            )
            return None
        if status != 200 or not isinstance(data, dict):
            if status == 200:
                detail = "malformed packument: body is not a JSON object"
            else:
                detail = "connection failed" if status == 0 else f"HTTP {status}"
            logger.warning(
                "Registry lookup failed for %s: %s",
                name,
                detail,
                extra=extra_context(
                    event="http_response",
                    outcome="lookup_failed",
                    status_code=status,
                    duration_ms=timer.duration_ms(),
                    target=safe_url(url),
                    package_manager="npm",
                ),
            )
            raise RegistryLookupFailed(name, detail)

        try:
            _mapping(data, "versions")
            _mapping(data, "dist-tags")
        except ValueError as exc:
            logger.warning(
                "Malformed packument for %s: %s",
                name,
                exc,
                extra=extra_context(
                    event="parse",
                    outcome="malformed",
                    target=safe_url(url),
                    package_manager="npm",
                ),
            )
            raise RegistryLookupFailed(name, f"malformed packument: {exc}") from exc

        if is_debug_enabled(logger):
            logger.debug(
                "Packument fetched",
                extra=extra_context(
                    event="http_response",
                    outcome="success",
                    status_code=status,
                    duration_ms=timer.duration_ms(),
                    package_manager="npm",
                    count=len(data.get("versions", {}) or {}),
                ),
            )
        return data

    async def latest_stable_version(self, name: str) -> Optional[str]:
        packument = await self.fetch_packument(name)
        if packument is None:
            return None
        return pick_latest_stable(list(_mapping(packument, "versions").keys()))

    async def peer_requirements(self, name: str, version_spec: str) -> PeerRequirements:
        packument = await self.fetch_packument(name)
        if packument is None:
            raise RegistryLookupFailed(name, "package not found", spec=version_spec)
        versions = _mapping(packument, "versions")
        dist_tags = _mapping(packument, "dist-tags")

        selected = dist_tags.get(version_spec)
        if not isinstance(selected, str):
            selected = pick_max_satisfying(version_spec, list(versions.keys()))
        if selected is None or selected not in versions:
            raise RegistryLookupFailed(name, "no published version matches", spec=version_spec)

        version_doc = versions[selected]
        if not isinstance(version_doc, dict):
            raise RegistryLookupFailed(name, f"malformed packument: version {selected} is not an object",
                                       spec=version_spec)
        try:
            return extract_peer_requirements(version_doc)
        except ValueError as exc:
            raise RegistryLookupFailed(name, f"malformed packument: {exc}", spec=version_spec) from exc
