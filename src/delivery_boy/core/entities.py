from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict


@dataclass(frozen=True)
class FeedEntry:
    """
    A stored feed entry. Immutable once written.
    """
    id: int
    link: str
    timestamp: datetime
    title: str
    feed: str

    def to_json(self) -> Dict[str, Any]:
        """Wire shape used by the list endpoint."""
        return {
            "link": self.link,
            "date": self.timestamp.isoformat().replace("+00:00", "Z"),
            "title": self.title,
            "feed": self.feed,
        }
