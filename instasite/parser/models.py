"""Pydantic v2 models for parsed artifact markup.

An :class:`Artifact` is one immutable snapshot of everything the parser could
extract from the response buffer at a given length: the envelope's id/title
plus the ordered list of complete :class:`Action` objects.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

class ActionKind(str, Enum):
    """What an action asks the sandbox to do."""
    WRITE_FILE = "write-file"
    RUN_COMMAND = "run-command"


# ---------------------------------------------------------------------------
# Action & Artifact
# ---------------------------------------------------------------------------

class Action(BaseModel):
    """A single file-write or shell-command instruction."""

    model_config = ConfigDict(frozen=True)

    kind: ActionKind = Field(..., description="Action discriminator")
    path: Optional[str] = Field(
        default=None, description="Slash-separated relative path (write-file only)"
    )
    content: str = Field(default="", description="File text, or the literal command line")
    complete: bool = Field(
        default=True, description="Whether the closing delimiter was observed"
    )

    @model_validator(mode="after")
    def _check_variant(self) -> "Action":
        if self.kind is ActionKind.WRITE_FILE and not self.path:
            raise ValueError("write-file actions require a path")
        if self.kind is ActionKind.RUN_COMMAND and self.path is not None:
            raise ValueError("run-command actions do not take a path")
        return self


class Artifact(BaseModel):
    """Parse result for one buffer snapshot."""

    model_config = ConfigDict(frozen=True)

    id: Optional[str] = Field(default=None, description="Envelope id attribute")
    title: Optional[str] = Field(default=None, description="Envelope title attribute")
    actions: tuple[Action, ...] = Field(
        default=(), description="Complete actions in source order"
    )
    source_length: int = Field(
        default=0, ge=0, description="Length of the buffer this snapshot was parsed from"
    )
    pending_path: Optional[str] = Field(
        default=None,
        description="Path of a file whose closing delimiter has not arrived yet",
    )

    @property
    def is_empty(self) -> bool:
        return not self.actions

    @property
    def file_actions(self) -> list[Action]:
        return [a for a in self.actions if a.kind is ActionKind.WRITE_FILE]

    @property
    def command_actions(self) -> list[Action]:
        return [a for a in self.actions if a.kind is ActionKind.RUN_COMMAND]

    @property
    def files(self) -> dict[str, str]:
        """Map each path to its latest content; later writes win."""
        result: dict[str, str] = {}
        for action in self.file_actions:
            result[action.path] = action.content
        return result
