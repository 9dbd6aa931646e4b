"""One generation request, end to end.

:class:`GenerationSession` owns the response buffer and artifact tracker for
the current request, feeds streamed fragments through the parser, and hands
the resulting actions to the preview orchestrator.
"""

from __future__ import annotations

from collections.abc import AsyncIterable
from typing import Optional

from instasite.config import Config
from instasite.generation.client import GenerationClient, GenerationError
from instasite.parser.extractor import parse_artifact
from instasite.parser.models import Action, Artifact
from instasite.parser.stream import ArtifactTracker, ResponseBuffer
from instasite.preview.orchestrator import PreviewOrchestrator


class GenerationSession:
    """Buffer, parse and preview one request at a time.

    Attributes:
        client: Transport used by :meth:`submit`.
        orchestrator: Preview orchestrator; ``None`` disables previewing.
        config: Global configuration.
        loading: ``True`` while fragments are still being received.
        error: Human-readable transport failure for the last request, if any.
    """

    def __init__(
        self,
        client: GenerationClient,
        orchestrator: Optional[PreviewOrchestrator] = None,
        config: Optional[Config] = None,
    ) -> None:
        self.client = client
        self.orchestrator = orchestrator
        self.config = config or Config()
        self.buffer = ResponseBuffer()
        self.tracker = ArtifactTracker()
        self.loading = False
        self.error: Optional[str] = None

    @property
    def artifact(self) -> Optional[Artifact]:
        return self.tracker.artifact

    @property
    def selected_file(self) -> Optional[Action]:
        return self.tracker.selected_action

    def select(self, path: str) -> None:
        """Explicitly choose the file to display."""
        self.tracker.select(path)

    def reset(self) -> None:
        """Forget the previous request's buffer, artifact, selection and error."""
        self.buffer.reset()
        self.tracker.reset()
        self.error = None

    def feed(self, fragment: str) -> Optional[Artifact]:
        """Append *fragment*, re-parse the whole buffer and apply the result.

        Returns:
            The newly applied artifact, or ``None`` if nothing changed.
        """
        self.buffer.append(fragment)
        previous = self.tracker.artifact
        artifact = parse_artifact(self.buffer.text)
        if not self.tracker.offer(artifact):
            return None
        if self.orchestrator is not None and self.config.preview.preview_during_stream:
            # Only restart when a new action closed.
            if previous is None or previous.actions != artifact.actions:
                self.orchestrator.start(artifact.actions)
        return artifact

    async def consume(self, fragments: AsyncIterable[str]) -> Optional[Artifact]:
        """Feed every fragment from *fragments*, then start the preview.

        Transport failures are recorded in :attr:`error` rather than raised;
        whatever was parsed before the failure is kept.
        """
        self.reset()
        self.loading = True
        try:
            async for fragment in fragments:
                self.feed(fragment)
        except GenerationError as exc:
            self.error = str(exc) or "Failed to process the request."
        finally:
            self.loading = False

        artifact = self.artifact
        if artifact is not None and self.orchestrator is not None:
            if not self.config.preview.preview_during_stream:
                self.orchestrator.start(artifact.actions)
        return artifact

    async def submit(self, prompt: str) -> Optional[Artifact]:
        """Stream a new generation for *prompt* and preview the result."""
        return await self.consume(self.client.stream(prompt))

    async def replay(self, text: str, chunk_size: int = 64) -> Optional[Artifact]:
        """Feed a saved response in *chunk_size* fragments, as if streamed."""
        if chunk_size < 1:
            raise ValueError("chunk_size must be at least 1")

        async def _fragments():
            for start in range(0, len(text), chunk_size):
                yield text[start:start + chunk_size]

        return await self.consume(_fragments())
