"""Instasite streaming artifact parser.

Turns the continuously growing text of a model response into structured
file-write and shell-command actions.

Usage::

    from instasite.parser import ResponseBuffer, parse_artifact

    buffer = ResponseBuffer()
    for fragment in fragments:
        buffer.append(fragment)
        artifact = parse_artifact(buffer.text)
        print([a.path for a in artifact.file_actions])
"""

from instasite.parser.models import (
    Action,
    ActionKind,
    Artifact,
)
from instasite.parser.extractor import parse_artifact
from instasite.parser.stream import ArtifactTracker, ResponseBuffer

__all__ = [
    "parse_artifact",
    "Action",
    "ActionKind",
    "Artifact",
    "ArtifactTracker",
    "ResponseBuffer",
]
