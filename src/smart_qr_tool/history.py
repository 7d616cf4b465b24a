"""Persistent history of generated and scanned QR codes."""
from __future__ import annotations

import json
import logging
import os
import random
import string
import tempfile
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional

from .config import HistorySettings
from .content import ContentType
from .errors import ValidationError

logger = logging.getLogger(__name__)

HISTORY_TYPES = ("generated", "scanned")

_ID_ALPHABET = string.digits + string.ascii_lowercase


def _now_ms() -> int:
    return int(time.time() * 1000)


def _new_id(timestamp: int) -> str:
    suffix = "".join(random.choice(_ID_ALPHABET) for _ in range(9))
    return f"{timestamp}-{suffix}"


@dataclass(slots=True)
class HistoryItem:
    id: str
    type: str
    content_type: ContentType
    content: str
    timestamp: int
    metadata: Optional[Dict[str, Any]] = None
    location: Optional[Dict[str, float]] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "type": self.type,
            "content_type": self.content_type.value,
            "content": self.content,
            "timestamp": self.timestamp,
        }
        if self.metadata is not None:
            data["metadata"] = dict(self.metadata)
        if self.location is not None:
            data["location"] = dict(self.location)
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "HistoryItem":
        try:
            return cls(
                id=str(data["id"]),
                type=str(data["type"]),
                content_type=ContentType.parse(data["content_type"]),
                content=str(data["content"]),
                timestamp=int(data["timestamp"]),
                metadata=data.get("metadata"),
                location=data.get("location"),
            )
        except KeyError as exc:
            raise ValueError(f"Missing field in history item: {exc.args[0]}") from exc


@dataclass(slots=True)
class HistoryStats:
    generated: int
    scanned: int
    by_content_type: Dict[ContentType, int]
    most_common: ContentType


def compute_stats(items: Iterable[HistoryItem]) -> HistoryStats:
    """Summarise ``items`` by action and content type.

    Ties for the most common type go to the type declared first in
    :class:`ContentType`; an empty history reports ``text``.
    """

    counts = {content_type: 0 for content_type in ContentType}
    generated = scanned = 0
    for item in items:
        counts[item.content_type] += 1
        if item.type == "generated":
            generated += 1
        elif item.type == "scanned":
            scanned += 1

    most_common = ContentType.TEXT
    for content_type, count in counts.items():
        # Strictly greater on purpose: ties keep the earlier type, so an empty
        # history reports text rather than the last declared type.
        if count > counts[most_common]:
            most_common = content_type

    return HistoryStats(
        generated=generated,
        scanned=scanned,
        by_content_type=counts,
        most_common=most_common,
    )


@dataclass
class HistoryStore:
    """JSON file backed, newest-first history capped at ``max_history_items``.

    The store is explicit about its lifecycle: nothing touches the file until
    :meth:`load` or :meth:`save` is called.
    """

    path: Path
    settings: HistorySettings = field(default_factory=HistorySettings)
    _items: List[HistoryItem] = field(default_factory=list, init=False, repr=False)

    def __post_init__(self) -> None:
        self.path = Path(self.path)

    @property
    def items(self) -> List[HistoryItem]:
        return list(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def load(self) -> "HistoryStore":
        """Read history and settings from :attr:`path`.

        Saved settings are merged into :attr:`settings` in place, except for
        values pinned by an environment or command line override.  A missing
        file leaves the store empty.  A corrupt file is logged and ignored so
        that a bad write never blocks the application.
        """

        if not self.path.exists():
            self._items = []
            return self

        try:
            document = json.loads(self.path.read_text(encoding="utf-8"))
            settings = document.get("settings")
            if settings:
                self.settings.merge(settings)
            self._items = [HistoryItem.from_dict(entry) for entry in document.get("history", [])]
        except (OSError, ValueError, TypeError, AttributeError) as exc:
            logger.warning("Ignoring unreadable history file %s: %s", self.path, exc)
            self._items = []

        self._evict()
        return self

    def save(self) -> None:
        """Write history and settings to :attr:`path` atomically."""

        document = {
            "history": [item.to_dict() for item in self._items],
            "settings": self.settings.to_dict(),
        }
        self.path.parent.mkdir(parents=True, exist_ok=True)

        fd, tmp_name = tempfile.mkstemp(dir=str(self.path.parent), suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(document, handle, indent=2)
            os.replace(tmp_name, self.path)
        except BaseException:
            try:
                os.unlink(tmp_name)
            except OSError:
                pass
            raise

    def add(
        self,
        type: str,
        content_type: ContentType | str,
        content: str,
        metadata: Optional[Dict[str, Any]] = None,
        location: Optional[Dict[str, float]] = None,
    ) -> HistoryItem:
        """Prepend a new entry and evict the oldest beyond the cap."""

        if type not in HISTORY_TYPES:
            raise ValidationError(f"History type must be one of {', '.join(HISTORY_TYPES)}")

        timestamp = _now_ms()
        item = HistoryItem(
            id=_new_id(timestamp),
            type=type,
            content_type=ContentType.parse(content_type),
            content=content,
            timestamp=timestamp,
            metadata=metadata,
            location=location,
        )
        self._items.insert(0, item)
        self._evict()
        logger.debug("Recorded %s %s item %s", type, item.content_type.value, item.id)
        return item

    def remove(self, item_id: str) -> bool:
        remaining = [item for item in self._items if item.id != item_id]
        removed = len(remaining) != len(self._items)
        self._items = remaining
        return removed

    def clear(self) -> None:
        self._items = []

    def update_settings(self, **changes: Any) -> HistorySettings:
        """Apply ``changes`` to the settings and re-apply the history cap."""

        for name, value in changes.items():
            if name not in self.settings.to_dict():
                raise ValidationError(f"Unknown setting: {name}")
            setattr(self.settings, name, value)
        self._evict()
        return self.settings

    def stats(self) -> HistoryStats:
        return compute_stats(self._items)

    def _evict(self) -> None:
        limit = max(0, self.settings.max_history_items)
        if len(self._items) > limit:
            logger.debug("Evicting %d history items", len(self._items) - limit)
            del self._items[limit:]


__all__ = ["HISTORY_TYPES", "HistoryItem", "HistoryStats", "HistoryStore", "compute_stats"]
