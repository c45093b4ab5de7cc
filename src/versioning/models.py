"""Data models for version specs."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

import semantic_version

from .ranges import VersionRange


class SpecMode(Enum):
    """Shape of a version spec."""
    EXACT = "exact"
    RANGE = "range"


@dataclass(frozen=True)
class VersionSpec:
    """Normalized representation of a version spec and derived behavior flags."""
    raw: str
    mode: SpecMode
    include_prerelease: bool
    range: VersionRange
    version: Optional[semantic_version.Version] = None  # set for EXACT only

    @property
    def is_exact(self) -> bool:
        return self.mode == SpecMode.EXACT
