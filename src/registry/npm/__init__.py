"""npm registry support."""

from .client import NpmRegistryClient, extract_peer_requirements, package_url

__all__ = ["NpmRegistryClient", "extract_peer_requirements", "package_url"]
