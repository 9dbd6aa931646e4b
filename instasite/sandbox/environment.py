"""Sandbox execution environment contract.

The preview orchestrator only talks to a sandbox through this interface:
boot once, mount a file tree, spawn processes, and subscribe to
``server-ready`` notifications. Concrete sandboxes implement the underscored
hooks; the public methods enforce the boot lifecycle so that calls made
before boot completes are rejected rather than silently dropped.
"""

from __future__ import annotations

import abc
from collections.abc import AsyncIterator, Callable

from rich.console import Console

from .tree import MountTree

console = Console()

ServerReadyListener = Callable[[int, str], None]


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class SandboxError(Exception):
    """Base class for sandbox failures."""


class SandboxBootError(SandboxError):
    """Raised when the sandbox could not be booted."""


class SandboxNotBootedError(SandboxError):
    """Raised when mount/spawn is called before boot has completed."""

    def __init__(self, operation: str) -> None:
        self.operation = operation
        super().__init__(f"Sandbox is not booted; cannot {operation}")


class SandboxMountError(SandboxError):
    """Raised when a file tree cannot be materialised."""


class SandboxSpawnError(SandboxError):
    """Raised when a process cannot be started."""


# ---------------------------------------------------------------------------
# Contracts
# ---------------------------------------------------------------------------


class SandboxProcess(abc.ABC):
    """A process running inside a sandbox."""

    @property
    @abc.abstractmethod
    def output(self) -> AsyncIterator[str]:
        """Raw output chunks (stdout and stderr interleaved) until exit."""

    @abc.abstractmethod
    async def wait(self) -> int:
        """Wait for the process to exit and return its exit code."""

    @abc.abstractmethod
    async def kill(self) -> None:
        """Terminate the process if it is still running."""


class SandboxEnvironment(abc.ABC):
    """A boot-once isolated runtime that can mount files and spawn processes."""

    def __init__(self) -> None:
        self._booted = False
        self._listeners: list[ServerReadyListener] = []

    @property
    def booted(self) -> bool:
        return self._booted

    async def boot(self) -> None:
        """Boot the environment. Subsequent calls are no-ops."""
        if self._booted:
            return
        await self._boot()
        self._booted = True

    async def mount(self, tree: MountTree) -> None:
        """Materialise *tree*, replacing whatever was mounted before."""
        if not self._booted:
            raise SandboxNotBootedError("mount")
        await self._mount(tree)

    async def spawn(self, command: str, args: list[str]) -> SandboxProcess:
        """Start ``command args...`` in the mounted tree."""
        if not self._booted:
            raise SandboxNotBootedError("spawn")
        return await self._spawn(command, list(args))

    def on_server_ready(self, listener: ServerReadyListener) -> Callable[[], None]:
        """Subscribe to ``server-ready(port, url)``.

        Returns:
            A callable that removes the subscription. Calling it twice is safe.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit_server_ready(self, port: int, url: str) -> None:
        """Notify every current listener; one failing listener does not stop the rest."""
        for listener in list(self._listeners):
            try:
                listener(port, url)
            except Exception as exc:  # noqa: BLE001
                console.print(f"[yellow]server-ready listener failed: {exc}[/yellow]")

    async def teardown(self) -> None:
        """Release resources. The environment cannot be used afterwards."""
        self._listeners.clear()
        await self._teardown()
        self._booted = False

    # ------------------------------------------------------------------
    # Hooks for concrete sandboxes
    # ------------------------------------------------------------------

    @abc.abstractmethod
    async def _boot(self) -> None: ...

    @abc.abstractmethod
    async def _mount(self, tree: MountTree) -> None: ...

    @abc.abstractmethod
    async def _spawn(self, command: str, args: list[str]) -> SandboxProcess: ...

    async def _teardown(self) -> None:
        return None
