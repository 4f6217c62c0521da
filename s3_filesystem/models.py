from __future__ import annotations
"""Data models returned by file system operations."""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from .paths import strip_listing_prefix


@dataclass
class ListPage:
    """One page of a prefix listing."""

    number: int
    prefix: str
    keys: list[str] = field(default_factory=list)
    is_truncated: bool = False
    continuation_token: Optional[str] = None
    next_continuation_token: Optional[str] = None

    def relative_keys(self) -> list[str]:
        return [strip_listing_prefix(key, self.prefix) for key in self.keys]


@dataclass
class TransferResult:
    """Outcome of a completed transfer."""

    local_path: str
    bucket: str
    key: str
    size: int
    duration: float

    @property
    def throughput(self) -> float:
        """Bytes per second."""
        return self.size / max(self.duration, 1e-9)


@dataclass
class ObjectDetails:
    """Metadata about a single S3 object."""

    bucket: str
    key: str
    size: int = 0
    last_modified: Optional[datetime] = None
    etag: Optional[str] = None
    content_type: Optional[str] = None
    metadata: dict[str, str] = field(default_factory=dict)
