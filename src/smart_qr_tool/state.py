"""Runtime state containers used by the Smart QR Tool."""
from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Dict, Optional

from .content import ContentType


class RequestSequencer:
    """Issue increasing generation tokens per channel.

    Only the most recently issued token of a channel is current, so a slow
    request finishing after a newer one can detect that it is stale.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._latest: Dict[str, int] = {}

    def issue(self, channel: str) -> int:
        with self._lock:
            token = self._latest.get(channel, 0) + 1
            self._latest[channel] = token
            return token

    def is_current(self, channel: str, token: int) -> bool:
        with self._lock:
            return self._latest.get(channel) == token

    def latest(self, channel: str) -> int:
        with self._lock:
            return self._latest.get(channel, 0)


@dataclass(slots=True)
class AppState:
    """Most recent results, owned by the orchestration layer."""

    last_payload: Optional[str] = None
    last_content_type: Optional[ContentType] = None
    last_scan: Optional[str] = None
    qr_available: bool = False
    sequencer: RequestSequencer = field(default_factory=RequestSequencer)


__all__ = ["AppState", "RequestSequencer"]
