"""Sandbox preview orchestrator.

Drives the shared sandbox through one preview run::

    initializing -> installing -> starting -> ready
          \\              \\            \\
           `-------------`-----------`--> error

- Every run rebuilds and remounts the whole file tree from the action list.
- The install step only runs when a manifest (``package.json``) was written.
- ``ready`` is entered only on the sandbox's ``server-ready`` notification,
  never by reading process output.
- Failures become an ``error`` state plus a log line; nothing is raised to
  the caller.

Each run is tagged with a run identifier. Starting a new run bumps the
identifier, so output, exits and ``server-ready`` notifications belonging to
a superseded run are discarded.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Sequence
from typing import Optional

from rich.console import Console

from instasite.config import PreviewConfig
from instasite.parser.models import Action
from instasite.sandbox.environment import SandboxEnvironment, SandboxError, SandboxProcess
from instasite.sandbox.handle import SandboxHandle
from instasite.sandbox.tree import build_mount_tree, has_manifest
from instasite.utils import print_status_line

from .models import ALLOWED_TRANSITIONS, LogBuffer, PreviewSnapshot, PreviewStatus

console = Console()

PreviewObserver = Callable[[PreviewSnapshot], None]


class PreviewOrchestrator:
    """Runs generated projects in the sandbox and reports status, logs and URL.

    Attributes:
        handle: Boot-once handle for the shared sandbox.
        config: Manifest name, install/run commands and log limit.
        observer: Called with a fresh :class:`PreviewSnapshot` after every
            state change or new log entry.
    """

    def __init__(
        self,
        handle: SandboxHandle,
        config: Optional[PreviewConfig] = None,
        observer: Optional[PreviewObserver] = None,
    ) -> None:
        self.handle = handle
        self.config = config or PreviewConfig()
        self.observer = observer

        self._run_id = 0
        self._status = PreviewStatus.INITIALIZING
        self._logs = LogBuffer(self.config.log_limit)
        self._preview_url: Optional[str] = None
        self._settled = asyncio.Event()

        self._task: Optional[asyncio.Task[None]] = None
        self._pumps: list[asyncio.Task[None]] = []
        self._processes: list[SandboxProcess] = []
        self._unsubscribe: Optional[Callable[[], None]] = None

    # ------------------------------------------------------------------
    # Observable state
    # ------------------------------------------------------------------

    @property
    def run_id(self) -> int:
        return self._run_id

    @property
    def status(self) -> PreviewStatus:
        return self._status

    @property
    def logs(self) -> list[str]:
        return self._logs.entries

    @property
    def preview_url(self) -> Optional[str]:
        return self._preview_url

    def snapshot(self) -> PreviewSnapshot:
        return PreviewSnapshot(
            run_id=self._run_id,
            status=self._status,
            logs=self._logs.entries,
            preview_url=self._preview_url,
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def start(self, actions: Sequence[Action]) -> int:
        """Reset all state and begin a new run in the background.

        Must be called from inside a running event loop.

        Returns:
            The new run identifier.
        """
        stale_processes = self._invalidate()
        self._status = PreviewStatus.INITIALIZING
        self._logs.clear()
        self._preview_url = None
        self._settled.clear()
        self._notify()

        run_id = self._run_id
        self._task = asyncio.create_task(self._drive(run_id, list(actions), stale_processes))
        return run_id

    async def run(self, actions: Sequence[Action]) -> PreviewSnapshot:
        """Start a run and wait until its lifecycle steps have been issued.

        Returns once the run is ``ready``/``error`` or the run process has
        been spawned (readiness then arrives asynchronously; see
        :meth:`wait_until_settled`).
        """
        self.start(actions)
        task = self._task
        assert task is not None
        await asyncio.wait({task})
        return self.snapshot()

    async def wait_until_settled(self, timeout: Optional[float] = None) -> PreviewSnapshot:
        """Wait for the current run to reach ``ready`` or ``error``.

        On timeout the current (unsettled) snapshot is returned.
        """
        try:
            await asyncio.wait_for(self._settled.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            pass
        return self.snapshot()

    async def stop(self) -> None:
        """Invalidate the current run and kill its processes."""
        stale = self._invalidate()
        await self._kill_processes(stale)

    # ------------------------------------------------------------------
    # Run lifecycle
    # ------------------------------------------------------------------

    def _invalidate(self) -> list[SandboxProcess]:
        """Bump the run id and detach everything owned by the previous run."""
        self._run_id += 1
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None
        for pump in self._pumps:
            pump.cancel()
        self._pumps = []
        stale, self._processes = self._processes, []
        return stale

    def _is_current(self, run_id: int) -> bool:
        return run_id == self._run_id

    async def _drive(
        self,
        run_id: int,
        actions: list[Action],
        stale_processes: list[SandboxProcess],
    ) -> None:
        await self._kill_processes(stale_processes)

        if not actions:
            self._fail(run_id, "No files to mount.")
            return

        try:
            sandbox = await self.handle.acquire()
            if not self._is_current(run_id):
                return

            tree = build_mount_tree(actions)
            try:
                await sandbox.mount(tree)
            except SandboxError as exc:
                self._fail(run_id, f"Mount failed: {exc}")
                return
            if not self._is_current(run_id):
                return

            file_count = len({a.path for a in actions if a.path is not None})
            self._log(run_id, f"Mounted {file_count} file(s).")

            manifest = self.config.manifest_filename
            if has_manifest(actions, manifest):
                await self._install_and_start(run_id, sandbox)
            else:
                self._transition(run_id, PreviewStatus.STARTING)
                self._log(run_id, f"No {manifest} found. Skipping install.")
                self._log(run_id, "No run script available; waiting for a server to appear.")
                self._subscribe(run_id, sandbox)
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # noqa: BLE001
            self._fail(run_id, f"Error: {exc}")

    async def _install_and_start(self, run_id: int, sandbox: SandboxEnvironment) -> None:
        install = self.config.install_command
        self._transition(run_id, PreviewStatus.INSTALLING)
        self._log(run_id, "Installing dependencies...")

        try:
            exit_code = await self._run_to_exit(run_id, sandbox, install)
        except SandboxError as exc:
            self._fail(run_id, f"Install failed: {exc}")
            return
        if not self._is_current(run_id):
            return
        if exit_code != 0:
            self._fail(run_id, f"Install failed: {' '.join(install)} exited with code {exit_code}")
            return

        self._transition(run_id, PreviewStatus.STARTING)
        self._log(run_id, "Starting dev server...")
        self._subscribe(run_id, sandbox)

        command = self.config.run_command
        try:
            process = await sandbox.spawn(command[0], command[1:])
        except SandboxError as exc:
            self._fail(run_id, f"Failed to start dev server: {exc}")
            return
        if not self._is_current(run_id):
            await process.kill()
            return

        self._processes.append(process)
        self._pumps.append(asyncio.create_task(self._pump(run_id, process)))

    async def _run_to_exit(
        self, run_id: int, sandbox: SandboxEnvironment, command: list[str]
    ) -> int:
        """Spawn *command*, stream its output into the log and return its exit code."""
        process = await sandbox.spawn(command[0], command[1:])
        self._processes.append(process)
        pump = asyncio.create_task(self._pump(run_id, process))
        self._pumps.append(pump)

        exit_code = await process.wait()
        await asyncio.wait({pump})
        return exit_code

    async def _pump(self, run_id: int, process: SandboxProcess) -> None:
        try:
            async for chunk in process.output:
                if not self._is_current(run_id):
                    return
                self._log(run_id, chunk)
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # noqa: BLE001
            self._log(run_id, f"Output stream closed: {exc}")

    def _subscribe(self, run_id: int, sandbox: SandboxEnvironment) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
        self._unsubscribe = sandbox.on_server_ready(
            lambda port, url: self._on_server_ready(run_id, port, url)
        )

    def _on_server_ready(self, run_id: int, port: int, url: str) -> None:
        if not self._is_current(run_id) or self._status is not PreviewStatus.STARTING:
            return
        self._preview_url = url
        self._log(run_id, f"Server ready at {url}")
        self._transition(run_id, PreviewStatus.READY)

    async def _kill_processes(self, processes: list[SandboxProcess]) -> None:
        for process in processes:
            try:
                await process.kill()
            except Exception as exc:  # noqa: BLE001
                console.print(f"[yellow]Could not stop a superseded process: {exc}[/yellow]")

    # ------------------------------------------------------------------
    # State mutation (all guarded by run id)
    # ------------------------------------------------------------------

    def _transition(self, run_id: int, status: PreviewStatus) -> bool:
        if not self._is_current(run_id):
            return False
        if status not in ALLOWED_TRANSITIONS[self._status]:
            return False

        self._status = status
        if status.is_terminal:
            self._settled.set()
        if self.config.echo_status:
            detail = self._preview_url if status is PreviewStatus.READY else ""
            if status is PreviewStatus.ERROR and len(self._logs):
                detail = self._logs.entries[-1]
            print_status_line(status.value, detail)
        self._notify()
        return True

    def _fail(self, run_id: int, message: str) -> None:
        if not self._is_current(run_id) or self._status.is_terminal:
            return
        self._log(run_id, message)
        self._transition(run_id, PreviewStatus.ERROR)

    def _log(self, run_id: int, raw: str) -> None:
        if not self._is_current(run_id):
            return
        if self._logs.append(raw) is not None:
            self._notify()

    def _notify(self) -> None:
        if self.observer is None:
            return
        try:
            self.observer(self.snapshot())
        except Exception as exc:  # noqa: BLE001
            console.print(f"[yellow]Preview observer failed: {exc}[/yellow]")
