"""Row models for the health persistence layer."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class PlatformConnection:
    """A user's link to one platform. The credential itself never leaves the repository."""

    id: str
    user_id: str
    platform: str  # 'apple-health', 'fitbit', 'google-fit', 'manual'
    connected_at: str
    last_sync: str | None = None
    last_status: str | None = None  # SyncOutcome status of the last refresh
    is_active: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "platform": self.platform,
            "connected_at": self.connected_at,
            "last_sync": self.last_sync,
            "last_status": self.last_status,
            "is_active": self.is_active,
        }


@dataclass
class StoredReading:
    """One persisted per-platform reading (decrypted)."""

    id: str
    user_id: str
    platform: str
    captured_at: str  # ISO 8601
    reading: dict[str, Any] = field(default_factory=dict)
    created_at: str = ""


@dataclass
class StoredInsight:
    """A persisted insight. ``is_read`` is the only field changed after insert."""

    id: str
    user_id: str
    kind: str  # 'recommendation' | 'alert' | 'achievement'
    title: str
    description: str
    category: str
    priority: str | None = None
    metric: str = ""
    is_read: bool = False
    created_at: str = ""
