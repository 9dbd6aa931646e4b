"""Virtual file tree construction.

A mount tree is a nested mapping from path segment to either a file leaf or
a directory node::

    {
        "index.html": {"file": {"contents": "<!doctype html>..."}},
        "src": {"directory": {"main.tsx": {"file": {"contents": "..."}}}},
    }

Trees are always rebuilt wholesale from the current action list.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from typing import Any

from instasite.parser.models import Action, ActionKind

MountTree = dict[str, dict[str, Any]]


def build_mount_tree(actions: Iterable[Action]) -> MountTree:
    """Build a mount tree from the file-write actions in *actions*.

    Later writes to the same path replace earlier ones. If a path segment
    that used to be a file is later used as a directory (or vice versa) the
    later action wins.
    """
    root: MountTree = {}

    for action in actions:
        if action.kind is not ActionKind.WRITE_FILE:
            continue

        parts = action.path.split("/")
        current = root
        for part in parts[:-1]:
            node = current.get(part)
            if node is None or "directory" not in node:
                node = {"directory": {}}
                current[part] = node
            current = node["directory"]
        current[parts[-1]] = {"file": {"contents": action.content}}

    return root


def has_manifest(actions: Iterable[Action], manifest: str = "package.json") -> bool:
    """Return ``True`` if any file write targets *manifest* at any depth."""
    suffix = "/" + manifest
    return any(
        action.kind is ActionKind.WRITE_FILE
        and (action.path == manifest or action.path.endswith(suffix))
        for action in actions
    )


def iter_tree_files(tree: MountTree, prefix: str = "") -> Iterator[tuple[str, str]]:
    """Yield ``(relative_path, contents)`` for every file leaf in *tree*."""
    for name, node in tree.items():
        path = f"{prefix}{name}"
        if "file" in node:
            yield path, node["file"]["contents"]
        elif "directory" in node:
            yield from iter_tree_files(node["directory"], prefix=f"{path}/")
