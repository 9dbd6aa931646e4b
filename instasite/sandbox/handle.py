"""Process-wide, boot-once sandbox handle.

The sandbox is an expensive shared resource: it is booted once per
application session and reused by every preview run. Consumers call
:meth:`SandboxHandle.acquire`, which waits on a one-shot readiness signal and
may be awaited any number of times.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from enum import Enum
from typing import Optional

from instasite.config import Config

from .environment import SandboxBootError, SandboxEnvironment
from .local import LocalSandbox


class BootState(str, Enum):
    """Lifecycle of the shared sandbox."""
    UNINITIALIZED = "uninitialized"
    BOOTING = "booting"
    READY = "ready"
    FAILED = "failed"


class SandboxHandle:
    """Owns the single sandbox instance and its boot lifecycle."""

    def __init__(self, factory: Callable[[], SandboxEnvironment]) -> None:
        self._factory = factory
        self._environment: Optional[SandboxEnvironment] = None
        self._state = BootState.UNINITIALIZED
        self._ready: Optional[asyncio.Event] = None
        self._boot_task: Optional[asyncio.Task[None]] = None
        self._error: Optional[BaseException] = None

    @property
    def state(self) -> BootState:
        return self._state

    @property
    def environment(self) -> Optional[SandboxEnvironment]:
        """The booted environment, or ``None`` until boot has succeeded."""
        return self._environment if self._state is BootState.READY else None

    def request_boot(self) -> None:
        """Start booting in the background if nobody has yet.

        Must be called from inside a running event loop.
        """
        if self._state is not BootState.UNINITIALIZED:
            return
        self._state = BootState.BOOTING
        self._ready = asyncio.Event()
        self._boot_task = asyncio.create_task(self._boot())

    async def _boot(self) -> None:
        assert self._ready is not None
        try:
            environment = self._factory()
            await environment.boot()
        except Exception as exc:  # noqa: BLE001
            self._error = exc
            self._state = BootState.FAILED
        else:
            self._environment = environment
            self._state = BootState.READY
        finally:
            self._ready.set()

    async def acquire(self) -> SandboxEnvironment:
        """Wait until the sandbox is booted and return it.

        Raises:
            SandboxBootError: If booting failed. Every waiter sees the failure.
        """
        self.request_boot()
        assert self._ready is not None
        await self._ready.wait()
        if self._state is BootState.FAILED or self._environment is None:
            raise SandboxBootError(f"Sandbox failed to boot: {self._error}") from self._error
        return self._environment

    async def shutdown(self) -> None:
        """Tear the sandbox down and return to ``uninitialized``."""
        if self._boot_task is not None and not self._boot_task.done():
            await self._boot_task
        if self._environment is not None:
            await self._environment.teardown()
        self._environment = None
        self._error = None
        self._ready = None
        self._boot_task = None
        self._state = BootState.UNINITIALIZED


_shared_handle: Optional[SandboxHandle] = None


def get_sandbox_handle(config: Optional[Config] = None) -> SandboxHandle:
    """Return the application-wide handle, creating it on first use.

    The *config* is only consulted the first time; later calls return the
    same handle regardless of the argument.
    """
    global _shared_handle
    if _shared_handle is None:
        sandbox_config = (config or Config()).sandbox
        _shared_handle = SandboxHandle(
            lambda: LocalSandbox(
                workdir=sandbox_config.workdir,
                host=sandbox_config.preview_host,
                ports=sandbox_config.preview_ports,
                poll_interval=sandbox_config.poll_interval,
            )
        )
    return _shared_handle
