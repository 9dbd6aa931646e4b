"""Sandboxed execution environments for previewing generated projects.

Components:
- tree: build the virtual file tree from parsed actions
- environment: the mount/spawn/server-ready contract and its errors
- local: a directory-backed sandbox using local subprocesses
- handle: the process-wide boot-once handle
"""

from instasite.sandbox.environment import (
    SandboxBootError,
    SandboxEnvironment,
    SandboxError,
    SandboxMountError,
    SandboxNotBootedError,
    SandboxProcess,
    SandboxSpawnError,
)
from instasite.sandbox.handle import BootState, SandboxHandle, get_sandbox_handle
from instasite.sandbox.local import LocalProcess, LocalSandbox
from instasite.sandbox.tree import MountTree, build_mount_tree, has_manifest, iter_tree_files

__all__ = [
    # Tree
    "MountTree",
    "build_mount_tree",
    "has_manifest",
    "iter_tree_files",
    # Contract
    "SandboxEnvironment",
    "SandboxProcess",
    "SandboxError",
    "SandboxBootError",
    "SandboxMountError",
    "SandboxNotBootedError",
    "SandboxSpawnError",
    # Implementations
    "LocalSandbox",
    "LocalProcess",
    "BootState",
    "SandboxHandle",
    "get_sandbox_handle",
]
