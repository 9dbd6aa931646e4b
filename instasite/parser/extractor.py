"""Streaming artifact parser.

Extracts file-write and shell-command actions from the artifact markup a
generative model streams back. The parser is a pure function of the whole
buffer: callers re-invoke it every time the buffer grows and always receive a
consistent snapshot. Regex only: the buffer is an in-progress document that
is almost never well-formed.

Markup recognised::

    <artifact id="site" title="Landing page">
      <action type="write-file" path="index.html">...</action>
      <action type="run-command">npm install</action>
    </artifact>

``boltArtifact``/``boltAction``, ``filePath`` and the ``file``/``shell`` type
names are accepted as aliases.
"""

from __future__ import annotations

import re
from typing import Optional

from pydantic import ValidationError

from .models import Action, ActionKind, Artifact


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_ENVELOPE_OPEN_PATTERN = re.compile(r"<(artifact|boltArtifact)\b([^<>]*)>", re.IGNORECASE)
_ACTION_OPEN_PATTERN = re.compile(r"<(action|boltAction)\b([^<>]*)>", re.IGNORECASE)
_ATTRIBUTE_PATTERN = re.compile(
    r"""([A-Za-z_][\w:.-]*)\s*=\s*(?:"([^"]*)"|'([^']*)')"""
)
_KIND_ALIASES: dict[str, ActionKind] = {
    "write-file": ActionKind.WRITE_FILE,
    "file": ActionKind.WRITE_FILE,
    "run-command": ActionKind.RUN_COMMAND,
    "shell": ActionKind.RUN_COMMAND,
}
_PATH_ATTRIBUTES = ("path", "filepath", "file-path")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _parse_attributes(raw: str) -> dict[str, str]:
    """Parse ``key="value"`` / ``key='value'`` pairs; keys are lower-cased."""
    attributes: dict[str, str] = {}
    for match in _ATTRIBUTE_PATTERN.finditer(raw):
        value = match.group(2) if match.group(2) is not None else match.group(3)
        attributes.setdefault(match.group(1).lower(), value)
    return attributes


def _normalize_path(raw: str) -> str:
    """Normalise a path attribute to a slash-separated relative path.

    Examples:
        './src/App.tsx' -> 'src/App.tsx'
        '/index.html' -> 'index.html'
        'src\\main.tsx' -> 'src/main.tsx'
    """
    parts = [p for p in raw.strip().replace("\\", "/").split("/") if p and p != "."]
    return "/".join(parts)


def _action_kind(attributes: dict[str, str]) -> Optional[ActionKind]:
    return _KIND_ALIASES.get(attributes.get("type", "").strip().lower())


def _action_path(attributes: dict[str, str]) -> str:
    raw = next((attributes[key] for key in _PATH_ATTRIBUTES if key in attributes), "")
    return _normalize_path(raw)


def _closing_pattern(tag: str) -> re.Pattern[str]:
    return re.compile(rf"</{re.escape(tag)}\s*>", re.IGNORECASE)


def _find_envelope(buffer: str) -> Optional[tuple[dict[str, str], str]]:
    """Locate the first artifact envelope.

    Returns:
        ``(attributes, body)`` where *body* runs to the envelope's closing tag,
        or to the end of the buffer if that tag has not arrived yet. ``None``
        when no complete opening tag exists.
    """
    match = _ENVELOPE_OPEN_PATTERN.search(buffer)
    if match is None:
        return None
    body_start = match.end()
    close = _closing_pattern(match.group(1)).search(buffer, body_start)
    body_end = close.start() if close else len(buffer)
    return _parse_attributes(match.group(2)), buffer[body_start:body_end]


def _build_action(attributes: dict[str, str], inner: str) -> Optional[Action]:
    """Turn one closed action element into an :class:`Action`, or ``None``."""
    kind = _action_kind(attributes)
    if kind is None:
        return None

    try:
        if kind is ActionKind.WRITE_FILE:
            return Action(kind=kind, path=_action_path(attributes), content=inner)
        return Action(kind=kind, content=inner.strip())
    except ValidationError:
        return None


def _extract_actions(body: str) -> tuple[list[Action], Optional[str]]:
    """Extract complete actions from an envelope body, in source order.

    Returns:
        ``(actions, pending_path)``. Scanning stops at the first action whose
        closing delimiter is missing; its path (if it is a file write) is
        reported as pending.
    """
    actions: list[Action] = []
    position = 0

    while True:
        match = _ACTION_OPEN_PATTERN.search(body, position)
        if match is None:
            return actions, None

        attributes = _parse_attributes(match.group(2))
        close = _closing_pattern(match.group(1)).search(body, match.end())
        following = _ACTION_OPEN_PATTERN.search(body, match.end())
        if following is not None and (close is None or following.start() < close.start()):
            # Unterminated action followed by another one: drop it, keep scanning.
            position = following.start()
            continue
        if close is None:
            pending = None
            if _action_kind(attributes) is ActionKind.WRITE_FILE:
                pending = _action_path(attributes) or None
            return actions, pending

        action = _build_action(attributes, body[match.end():close.start()])
        if action is not None:
            actions.append(action)
        position = close.end()


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def parse_artifact(buffer: str) -> Artifact:
    """Parse the accumulated response text into an :class:`Artifact`.

    Only actions whose opening *and* closing delimiters are present are
    returned. Calling again on a longer buffer that contains this one returns
    the same actions (same content, same order) plus any newly closed ones.
    Malformed or irrelevant text never raises; it simply yields fewer actions.

    Args:
        buffer: Everything received from the model so far.

    Returns:
        An immutable snapshot tagged with ``source_length=len(buffer)``.
    """
    try:
        envelope = _find_envelope(buffer)
        if envelope is None:
            return Artifact(source_length=len(buffer))

        attributes, body = envelope
        actions, pending_path = _extract_actions(body)
        return Artifact(
            id=attributes.get("id"),
            title=attributes.get("title"),
            actions=tuple(actions),
            source_length=len(buffer),
            pending_path=pending_path,
        )
    except Exception:  # noqa: BLE001
        return Artifact(source_length=len(buffer))
