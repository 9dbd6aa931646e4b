"""Response buffering and ordered application of parse snapshots.

:class:`ResponseBuffer` accumulates the fragments of one streamed response;
:class:`ArtifactTracker` holds the latest applied :class:`Artifact` and the
file the user is looking at.
"""

from __future__ import annotations

from typing import Optional

from .models import Action, Artifact


class ResponseBuffer:
    """Append-only text buffer for one generation request."""

    def __init__(self) -> None:
        self._fragments: list[str] = []
        self._length = 0

    def append(self, fragment: str) -> None:
        """Append the next received fragment. Empty fragments are ignored."""
        if fragment:
            self._fragments.append(fragment)
            self._length += len(fragment)

    def reset(self) -> None:
        """Discard everything; called at the start of every new request."""
        self._fragments = []
        self._length = 0

    @property
    def text(self) -> str:
        if len(self._fragments) > 1:
            self._fragments = ["".join(self._fragments)]
        return self._fragments[0] if self._fragments else ""

    def __len__(self) -> int:
        return self._length


class ArtifactTracker:
    """Apply parse snapshots in buffer order and track the selected file.

    A snapshot parsed from a shorter buffer than the one currently applied is
    rejected, so a late result can never overwrite a newer one. Snapshots
    without actions are ignored.

    Selection: the first applied artifact that contains a file selects that
    file. After that the selection only changes through :meth:`select`, so a
    user's choice survives continued streaming.
    """

    def __init__(self) -> None:
        self._artifact: Optional[Artifact] = None
        self._selected_path: Optional[str] = None
        self._user_selected = False

    @property
    def artifact(self) -> Optional[Artifact]:
        return self._artifact

    @property
    def selected_path(self) -> Optional[str]:
        return self._selected_path

    @property
    def selected_action(self) -> Optional[Action]:
        """The latest write to the selected path in the current snapshot."""
        if self._artifact is None or self._selected_path is None:
            return None
        for action in reversed(self._artifact.file_actions):
            if action.path == self._selected_path:
                return action
        return None

    def offer(self, artifact: Artifact) -> bool:
        """Apply *artifact* if it is newer than the current snapshot.

        Returns:
            ``True`` when the snapshot was applied.
        """
        if artifact.is_empty:
            return False
        if self._artifact is not None and artifact.source_length < self._artifact.source_length:
            return False

        self._artifact = artifact
        if self._selected_path is None and not self._user_selected:
            files = artifact.file_actions
            self._selected_path = files[0].path if files else None
        return True

    def select(self, path: str) -> None:
        """Record an explicit user selection; kept across later snapshots."""
        self._selected_path = path
        self._user_selected = True

    def reset(self) -> None:
        self._artifact = None
        self._selected_path = None
        self._user_selected = False
