"""Preview state, bounded log and observable snapshots."""

from __future__ import annotations

from collections import deque
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, computed_field

from instasite.utils import sanitize_output


class PreviewStatus(str, Enum):
    """Where a preview run is in its lifecycle."""
    INITIALIZING = "initializing"
    INSTALLING = "installing"
    STARTING = "starting"
    READY = "ready"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (PreviewStatus.READY, PreviewStatus.ERROR)


# Forward-only transitions; ``error`` is reachable from every non-terminal state.
ALLOWED_TRANSITIONS: dict[PreviewStatus, frozenset[PreviewStatus]] = {
    PreviewStatus.INITIALIZING: frozenset(
        {PreviewStatus.INSTALLING, PreviewStatus.STARTING, PreviewStatus.ERROR}
    ),
    PreviewStatus.INSTALLING: frozenset({PreviewStatus.STARTING, PreviewStatus.ERROR}),
    PreviewStatus.STARTING: frozenset({PreviewStatus.READY, PreviewStatus.ERROR}),
    PreviewStatus.READY: frozenset(),
    PreviewStatus.ERROR: frozenset(),
}


class LogBuffer:
    """Keeps the most recent *limit* sanitized log entries, oldest dropped first."""

    def __init__(self, limit: int = 50) -> None:
        if limit < 1:
            raise ValueError("limit must be at least 1")
        self.limit = limit
        self._entries: deque[str] = deque(maxlen=limit)

    def append(self, raw: str) -> Optional[str]:
        """Sanitize and store *raw*.

        Returns:
            The stored entry, or ``None`` when nothing printable was left.
        """
        entry = sanitize_output(raw)
        if not entry:
            return None
        self._entries.append(entry)
        return entry

    @property
    def entries(self) -> list[str]:
        return list(self._entries)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class PreviewSnapshot(BaseModel):
    """What the presentation layer sees after every change."""

    run_id: int = Field(default=0, ge=0, description="Identifier of the run this describes")
    status: PreviewStatus = Field(default=PreviewStatus.INITIALIZING)
    logs: list[str] = Field(default_factory=list, description="Most recent log entries, oldest first")
    preview_url: Optional[str] = Field(default=None, description="Set on entry to ready")

    @computed_field  # type: ignore[misc]
    @property
    def is_settled(self) -> bool:
        """True once the run reached ready or error."""
        return self.status.is_terminal
