"""Tests for the boot-once sandbox handle."""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from instasite.config import Config, SandboxConfig
from instasite.sandbox.environment import SandboxBootError
from instasite.sandbox.handle import BootState, SandboxHandle, get_sandbox_handle
from instasite.sandbox.local import LocalSandbox


class TestSandboxHandle:
    @pytest.mark.unit
    def test_initial_state(self, sandbox_handle):
        assert sandbox_handle.state is BootState.UNINITIALIZED
        assert sandbox_handle.environment is None

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_acquire_boots_once(self, fake_sandbox):
        created = []

        def factory():
            created.append(1)
            return fake_sandbox

        handle = SandboxHandle(factory)
        first, second, third = await asyncio.gather(
            handle.acquire(), handle.acquire(), handle.acquire()
        )

        assert first is second is third is fake_sandbox
        assert len(created) == 1
        assert fake_sandbox.boot_calls == 1
        assert handle.state is BootState.READY
        assert handle.environment is fake_sandbox

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_request_boot_in_background(self, sandbox_handle, fake_sandbox):
        sandbox_handle.request_boot()
        assert sandbox_handle.state is BootState.BOOTING
        sandbox_handle.request_boot()

        assert await sandbox_handle.acquire() is fake_sandbox
        assert fake_sandbox.boot_calls == 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_boot_failure_reaches_every_waiter(self, sandbox_handle, fake_sandbox):
        fake_sandbox.boot_error = OSError("no space left on device")
        handle = sandbox_handle

        results = await asyncio.gather(
            handle.acquire(), handle.acquire(), return_exceptions=True
        )

        assert all(isinstance(r, SandboxBootError) for r in results)
        assert "no space left on device" in str(results[0])
        assert handle.state is BootState.FAILED
        assert handle.environment is None
        assert fake_sandbox.boot_calls == 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_shutdown_allows_reboot(self, sandbox_handle, fake_sandbox):
        await sandbox_handle.acquire()
        await sandbox_handle.shutdown()

        assert sandbox_handle.state is BootState.UNINITIALIZED
        assert fake_sandbox.booted is False

        await sandbox_handle.acquire()
        assert fake_sandbox.boot_calls == 2

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_shutdown_without_boot(self, sandbox_handle):
        await sandbox_handle.shutdown()
        assert sandbox_handle.state is BootState.UNINITIALIZED


class TestGetSandboxHandle:
    @pytest.mark.unit
    def test_returns_same_handle(self):
        assert get_sandbox_handle() is get_sandbox_handle()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_uses_sandbox_config(self, tmp_path: Path):
        config = Config(
            sandbox=SandboxConfig(
                workdir=tmp_path / "box",
                preview_host="127.0.0.1",
                preview_ports=[4321],
                poll_interval=0.1,
            )
        )
        handle = get_sandbox_handle(config)
        sandbox = await handle.acquire()
        try:
            assert isinstance(sandbox, LocalSandbox)
            assert sandbox.workdir == tmp_path / "box"
            assert sandbox.workdir.is_dir()
            assert sandbox.ports == [4321]
            assert sandbox.url_for(4321) == "http://127.0.0.1:4321"
        finally:
            await handle.shutdown()
