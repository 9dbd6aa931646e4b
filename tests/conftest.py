"""Shared pytest fixtures for the Instasite test suite.

Provides reusable fixtures for:
- Sample artifact markup (complete, truncated, bolt-style)
- Pre-built action lists
- An in-memory fake sandbox with scriptable processes
- Sandbox handles and orchestrators wired to the fake sandbox
"""

from __future__ import annotations

import asyncio
import textwrap
from collections.abc import AsyncIterator
from typing import Optional

import pytest

from instasite.config import PreviewConfig
from instasite.parser.models import Action, ActionKind
from instasite.preview.models import PreviewSnapshot
from instasite.preview.orchestrator import PreviewOrchestrator
from instasite.sandbox import handle as handle_module
from instasite.sandbox.environment import (
    SandboxEnvironment,
    SandboxMountError,
    SandboxProcess,
)
from instasite.sandbox.handle import SandboxHandle
from instasite.sandbox.tree import MountTree


# ---------------------------------------------------------------------------
# Fake sandbox
# ---------------------------------------------------------------------------


class FakeProcess(SandboxProcess):
    """Scriptable process: emits *chunks*, then exits with *exit_code*.

    With ``hold=True`` the process keeps running until :meth:`finish` or
    :meth:`kill` is called.
    """

    def __init__(self, chunks: tuple[str, ...] = (), exit_code: int = 0, hold: bool = False) -> None:
        self.chunks = list(chunks)
        self.exit_code = exit_code
        self.killed = False
        self._done = asyncio.Event()
        if not hold:
            self._done.set()

    @property
    def output(self) -> AsyncIterator[str]:
        return self._emit()

    async def _emit(self) -> AsyncIterator[str]:
        for chunk in self.chunks:
            await asyncio.sleep(0)
            yield chunk

    async def wait(self) -> int:
        await self._done.wait()
        return self.exit_code

    async def kill(self) -> None:
        self.killed = True
        self._done.set()

    def finish(self, exit_code: int = 0) -> None:
        self.exit_code = exit_code
        self._done.set()


class FakeSandbox(SandboxEnvironment):
    """In-memory sandbox recording every mount and spawn.

    Attributes:
        scripts: ``"command args"`` -> queue of processes handed out in order.
            When a queue is empty a default process is created: install
            commands exit 0 immediately, anything else keeps running.
        spawn_errors: ``"command args"`` -> exception raised on spawn.
        boot_error: Raised from boot when set.
        mount_error: Raised from mount when set.
        auto_ready_port: When set, spawning the run command announces
            ``server-ready`` on this port on the next loop iteration.
    """

    def __init__(self) -> None:
        super().__init__()
        self.scripts: dict[str, list[FakeProcess]] = {}
        self.spawn_errors: dict[str, Exception] = {}
        self.boot_error: Optional[Exception] = None
        self.mount_error: Optional[Exception] = None
        self.auto_ready_port: Optional[int] = None
        self.boot_calls = 0
        self.mounted: list[MountTree] = []
        self.spawned: list[str] = []
        self.processes: list[FakeProcess] = []

    def script(self, command: str, *processes: FakeProcess) -> None:
        self.scripts.setdefault(command, []).extend(processes)

    def announce(self, port: int = 5173, url: Optional[str] = None) -> None:
        self._emit_server_ready(port, url or f"http://localhost:{port}")

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    async def _boot(self) -> None:
        self.boot_calls += 1
        if self.boot_error is not None:
            raise self.boot_error

    async def _mount(self, tree: MountTree) -> None:
        if self.mount_error is not None:
            raise self.mount_error
        self.mounted.append(tree)

    async def _spawn(self, command: str, args: list[str]) -> SandboxProcess:
        key = " ".join([command, *args])
        self.spawned.append(key)
        if key in self.spawn_errors:
            raise self.spawn_errors[key]

        queue = self.scripts.get(key)
        if queue:
            process = queue.pop(0)
        else:
            process = FakeProcess(hold="install" not in key)
        self.processes.append(process)

        if self.auto_ready_port is not None and "install" not in key:
            port = self.auto_ready_port
            asyncio.get_running_loop().call_soon(self.announce, port)
        return process


class SnapshotRecorder:
    """Preview observer that keeps every snapshot it receives."""

    def __init__(self) -> None:
        self.snapshots: list[PreviewSnapshot] = []

    def __call__(self, snapshot: PreviewSnapshot) -> None:
        self.snapshots.append(snapshot)

    @property
    def statuses(self) -> list[str]:
        """Distinct consecutive statuses, in order."""
        result: list[str] = []
        for snapshot in self.snapshots:
            if not result or result[-1] != snapshot.status.value:
                result.append(snapshot.status.value)
        return result


# ---------------------------------------------------------------------------
# Markup samples
# ---------------------------------------------------------------------------


@pytest.fixture
def sample_response() -> str:
    """A complete response with prose around the artifact envelope."""
    return textwrap.dedent("""\
        Sure! Here is your bakery site.

        <artifact id="bakery" title="Bakery landing page">
        <action type="write-file" path="package.json">{
          "name": "bakery",
          "scripts": {"dev": "vite"}
        }</action>
        <action type="write-file" path="index.html"><!doctype html>
        <div id="root"></div>
        </action>
        <action type="write-file" path="src/App.tsx">export default function App() {
          return <h1>Fresh bread</h1>;
        }
        </action>
        <action type="run-command">
          npm install
        </action>
        </artifact>

        Let me know if you want changes.
    """)


@pytest.fixture
def bolt_response() -> str:
    """The same idea in bolt-style markup with single-quoted attributes."""
    return (
        "<boltArtifact id='site' title='Site'>"
        "<boltAction type='file' filePath='./src/main.tsx'>import './index.css';</boltAction>"
        "<boltAction type=\"shell\">npm run dev</boltAction>"
        "</boltArtifact>"
    )


# ---------------------------------------------------------------------------
# Actions
# ---------------------------------------------------------------------------


def write(path: str, content: str = "") -> Action:
    return Action(kind=ActionKind.WRITE_FILE, path=path, content=content)


def command(text: str) -> Action:
    return Action(kind=ActionKind.RUN_COMMAND, content=text)


@pytest.fixture
def node_actions() -> list[Action]:
    """A project with a manifest, so the install step runs."""
    return [
        write("package.json", '{"name": "demo", "scripts": {"dev": "vite"}}'),
        write("index.html", "<!doctype html>"),
        write("src/main.tsx", "console.log('hi');"),
    ]


@pytest.fixture
def static_actions() -> list[Action]:
    """A plain static site without a manifest."""
    return [
        write("index.html", "<h1>Hello</h1>"),
        write("styles/site.css", "h1 { color: red; }"),
    ]


# ---------------------------------------------------------------------------
# Sandbox wiring
# ---------------------------------------------------------------------------


@pytest.fixture
def make_process():
    """Factory for scripted processes: ``make_process(chunks, exit_code, hold)``."""
    return FakeProcess


@pytest.fixture
def fake_sandbox() -> FakeSandbox:
    return FakeSandbox()


@pytest.fixture
def sandbox_handle(fake_sandbox: FakeSandbox) -> SandboxHandle:
    return SandboxHandle(lambda: fake_sandbox)


@pytest.fixture
def recorder() -> SnapshotRecorder:
    return SnapshotRecorder()


@pytest.fixture
def orchestrator(sandbox_handle: SandboxHandle, recorder: SnapshotRecorder) -> PreviewOrchestrator:
    return PreviewOrchestrator(
        sandbox_handle,
        PreviewConfig(echo_status=False),
        observer=recorder,
    )


@pytest.fixture(autouse=True)
def reset_shared_handle(monkeypatch: pytest.MonkeyPatch) -> None:
    """Each test starts without a process-wide sandbox handle."""
    monkeypatch.setattr(handle_module, "_shared_handle", None)
