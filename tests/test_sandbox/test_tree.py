"""Tests for mount-tree construction (sandbox.tree)."""

from __future__ import annotations

import pytest

from instasite.parser.models import Action, ActionKind
from instasite.sandbox.tree import build_mount_tree, has_manifest, iter_tree_files


def write(path: str, content: str = "") -> Action:
    return Action(kind=ActionKind.WRITE_FILE, path=path, content=content)


def command(text: str) -> Action:
    return Action(kind=ActionKind.RUN_COMMAND, content=text)


class TestBuildMountTree:
    @pytest.mark.unit
    def test_flat_and_nested_files(self):
        tree = build_mount_tree([
            write("index.html", "<h1>Hi</h1>"),
            write("src/main.tsx", "main"),
            write("src/components/Button.tsx", "button"),
        ])

        assert tree == {
            "index.html": {"file": {"contents": "<h1>Hi</h1>"}},
            "src": {
                "directory": {
                    "main.tsx": {"file": {"contents": "main"}},
                    "components": {
                        "directory": {"Button.tsx": {"file": {"contents": "button"}}},
                    },
                },
            },
        }

    @pytest.mark.unit
    def test_commands_are_ignored(self):
        tree = build_mount_tree([command("npm install"), write("a.txt", "a")])
        assert list(tree) == ["a.txt"]

    @pytest.mark.unit
    def test_later_write_wins(self):
        tree = build_mount_tree([write("a.txt", "old"), write("a.txt", "new")])
        assert tree["a.txt"]["file"]["contents"] == "new"

    @pytest.mark.unit
    def test_siblings_share_a_directory(self):
        tree = build_mount_tree([write("src/a.ts", "a"), write("src/b.ts", "b")])
        assert set(tree["src"]["directory"]) == {"a.ts", "b.ts"}

    @pytest.mark.unit
    def test_file_replaced_by_directory(self):
        tree = build_mount_tree([write("lib", "file"), write("lib/x.js", "x")])
        assert tree["lib"] == {"directory": {"x.js": {"file": {"contents": "x"}}}}

    @pytest.mark.unit
    def test_directory_replaced_by_file(self):
        tree = build_mount_tree([write("lib/x.js", "x"), write("lib", "file")])
        assert tree["lib"] == {"file": {"contents": "file"}}

    @pytest.mark.unit
    def test_empty_input(self):
        assert build_mount_tree([]) == {}


class TestHasManifest:
    @pytest.mark.unit
    def test_root_manifest(self, node_actions):
        assert has_manifest(node_actions) is True

    @pytest.mark.unit
    def test_nested_manifest(self):
        assert has_manifest([write("app/package.json", "{}")]) is True

    @pytest.mark.unit
    def test_similar_name_is_not_a_manifest(self):
        assert has_manifest([write("my-package.json", "{}")]) is False

    @pytest.mark.unit
    def test_static_site(self, static_actions):
        assert has_manifest(static_actions) is False

    @pytest.mark.unit
    def test_custom_manifest_name(self):
        assert has_manifest([write("requirements.txt", "flask")], "requirements.txt") is True


class TestIterTreeFiles:
    @pytest.mark.unit
    def test_flattens_tree(self, node_actions):
        files = dict(iter_tree_files(build_mount_tree(node_actions)))
        assert files == {
            "package.json": '{"name": "demo", "scripts": {"dev": "vite"}}',
            "index.html": "<!doctype html>",
            "src/main.tsx": "console.log('hi');",
        }
