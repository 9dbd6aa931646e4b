"""Directory-backed sandbox for previewing generated projects locally.

Mounts the virtual file tree into a working directory, runs processes there
with :mod:`asyncio` subprocesses, and announces ``server-ready`` once one of
the configured preview ports starts answering HTTP requests.
"""

from __future__ import annotations

import asyncio
import contextlib
import shutil
from collections.abc import AsyncIterator
from pathlib import Path, PurePosixPath
from typing import Optional

import httpx

from instasite.utils import check_ports_available

from .environment import (
    SandboxEnvironment,
    SandboxMountError,
    SandboxProcess,
    SandboxSpawnError,
)
from .tree import MountTree, iter_tree_files

# Generous line limit: bundlers print very long single lines.
_STREAM_LIMIT = 1024 * 1024


class LocalProcess(SandboxProcess):
    """An :class:`asyncio.subprocess.Process` running in the sandbox directory."""

    def __init__(self, process: asyncio.subprocess.Process, command: str) -> None:
        self._process = process
        self.command = command

    @property
    def running(self) -> bool:
        return self._process.returncode is None

    @property
    def output(self) -> AsyncIterator[str]:
        return self._read_lines()

    async def _read_lines(self) -> AsyncIterator[str]:
        stream = self._process.stdout
        if stream is None:
            return
        while True:
            line = await stream.readline()
            if not line:
                return
            yield line.decode("utf-8", errors="replace")

    async def wait(self) -> int:
        return await self._process.wait()

    async def kill(self) -> None:
        if self._process.returncode is not None:
            return
        try:
            self._process.kill()
        except ProcessLookupError:
            pass
        await self._process.wait()


class LocalSandbox(SandboxEnvironment):
    """Sandbox rooted at *workdir* on the local filesystem.

    Attributes:
        workdir: Directory the mount tree is written into.
        host: Hostname used to build preview URLs.
        ports: Ports probed for a listening dev server, in priority order.
        poll_interval: Seconds between probe rounds.
    """

    def __init__(
        self,
        workdir: str | Path,
        host: str = "localhost",
        ports: Optional[list[int]] = None,
        poll_interval: float = 0.5,
    ) -> None:
        super().__init__()
        self.workdir = Path(workdir)
        self.host = host
        self.ports = list(ports) if ports is not None else [5173, 3000, 8080]
        self.poll_interval = poll_interval
        self._processes: list[LocalProcess] = []
        self._announced: set[int] = set()
        self._ignored_ports: set[int] = set()
        self._ports_checked = False
        self._watcher: Optional[asyncio.Task[None]] = None
        self._mount_lock = asyncio.Lock()
        self._mount_future: Optional[asyncio.Future[None]] = None

    def url_for(self, port: int) -> str:
        return f"http://{self.host}:{port}"

    # ------------------------------------------------------------------
    # Lifecycle hooks
    # ------------------------------------------------------------------

    async def _boot(self) -> None:
        self.workdir.mkdir(parents=True, exist_ok=True)

    async def _mount(self, tree: MountTree) -> None:
        files = list(iter_tree_files(tree))
        for path, _ in files:
            pure = PurePosixPath(path)
            if pure.is_absolute() or ".." in pure.parts:
                raise SandboxMountError(f"Refusing to mount path outside the sandbox: {path}")

        async with self._mount_lock:
            # A cancelled mount leaves its writer thread running; let it finish
            # before clearing the directory again.
            await self._settle_previous_write()

            await self._stop_processes()
            self._announced.clear()
            self._ignored_ports.clear()
            self._ports_checked = False

            loop = asyncio.get_running_loop()
            future = loop.run_in_executor(None, self._write_tree, files)
            self._mount_future = future
            try:
                await asyncio.shield(future)
            except OSError as exc:
                raise SandboxMountError(f"Could not write files to {self.workdir}: {exc}") from exc

    async def _settle_previous_write(self) -> None:
        pending = self._mount_future
        if pending is None:
            return
        # Its result is discarded: the tree is rewritten next.
        with contextlib.suppress(OSError):
            await asyncio.shield(pending)
        self._mount_future = None

    def _write_tree(self, files: list[tuple[str, str]]) -> None:
        self.workdir.mkdir(parents=True, exist_ok=True)
        for child in self.workdir.iterdir():
            if child.is_dir() and not child.is_symlink():
                shutil.rmtree(child)
            else:
                child.unlink()
        for path, contents in files:
            target = self.workdir / path
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(contents, encoding="utf-8")

    async def _spawn(self, command: str, args: list[str]) -> SandboxProcess:
        if not self._ports_checked:
            # Ports busy before the first process of this mount belong to
            # someone else.
            status = await check_ports_available(self.ports)
            self._ignored_ports = {port for port, free in status.items() if not free}
            self._ports_checked = True

        try:
            process = await asyncio.create_subprocess_exec(
                command,
                *args,
                cwd=str(self.workdir),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
                limit=_STREAM_LIMIT,
            )
        except FileNotFoundError as exc:
            raise SandboxSpawnError(f"Command not found: {command}") from exc
        except PermissionError as exc:
            raise SandboxSpawnError(f"Permission denied running {command}") from exc

        local = LocalProcess(process, " ".join([command, *args]))
        self._processes.append(local)
        self._ensure_watcher()
        return local

    async def _teardown(self) -> None:
        await self._stop_processes()

    # ------------------------------------------------------------------
    # Process & port bookkeeping
    # ------------------------------------------------------------------

    async def _stop_processes(self) -> None:
        if self._watcher is not None and not self._watcher.done():
            self._watcher.cancel()
            try:
                await self._watcher
            except asyncio.CancelledError:
                pass
        self._watcher = None

        for process in self._processes:
            await process.kill()
        self._processes = []

    def _ensure_watcher(self) -> None:
        if self._watcher is None or self._watcher.done():
            self._watcher = asyncio.create_task(self._watch_ports())

    def _pending_ports(self) -> list[int]:
        return [
            p for p in self.ports if p not in self._announced and p not in self._ignored_ports
        ]

    async def _watch_ports(self) -> None:
        """Probe preview ports until every process has exited or all are announced."""
        async with httpx.AsyncClient(timeout=httpx.Timeout(2.0, connect=1.0)) as client:
            while self._pending_ports() and any(p.running for p in self._processes):
                # Nobody to tell yet: keep the port pending until someone subscribes.
                if self._listeners:
                    for port in self._pending_ports():
                        if await self._probe(client, port):
                            self._announced.add(port)
                            self._emit_server_ready(port, self.url_for(port))
                await asyncio.sleep(self.poll_interval)

    async def _probe(self, client: httpx.AsyncClient, port: int) -> bool:
        """Any HTTP response counts as listening; status codes don't matter here."""
        try:
            await client.get(self.url_for(port))
        except httpx.HTTPError:
            return False
        return True
