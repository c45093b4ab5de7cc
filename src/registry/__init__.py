"""Package registry clients consumed by the resolution engine."""

from .base import PeerRequirements, RegistryClient
from .cache import CachingRegistryClient

__all__ = ["PeerRequirements", "RegistryClient", "CachingRegistryClient"]
