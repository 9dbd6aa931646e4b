"""Preview orchestration: run generated projects in the sandbox.

Usage::

    from instasite.preview import PreviewOrchestrator
    from instasite.sandbox import get_sandbox_handle

    orchestrator = PreviewOrchestrator(get_sandbox_handle())
    await orchestrator.run(artifact.actions)
    snapshot = await orchestrator.wait_until_settled(timeout=120)
    print(snapshot.status, snapshot.preview_url)
"""

from instasite.preview.models import LogBuffer, PreviewSnapshot, PreviewStatus
from instasite.preview.orchestrator import PreviewObserver, PreviewOrchestrator

__all__ = [
    "LogBuffer",
    "PreviewObserver",
    "PreviewOrchestrator",
    "PreviewSnapshot",
    "PreviewStatus",
]
