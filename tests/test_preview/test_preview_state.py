"""Tests for preview status, the bounded log buffer and snapshots."""

from __future__ import annotations

import pytest

from instasite.preview.models import (
    ALLOWED_TRANSITIONS,
    LogBuffer,
    PreviewSnapshot,
    PreviewStatus,
)


class TestPreviewStatus:
    @pytest.mark.unit
    def test_terminal_states(self):
        assert PreviewStatus.READY.is_terminal
        assert PreviewStatus.ERROR.is_terminal
        assert not PreviewStatus.STARTING.is_terminal

    @pytest.mark.unit
    def test_error_reachable_from_every_active_state(self):
        for status in PreviewStatus:
            if not status.is_terminal:
                assert PreviewStatus.ERROR in ALLOWED_TRANSITIONS[status]

    @pytest.mark.unit
    def test_no_way_back(self):
        assert PreviewStatus.INSTALLING not in ALLOWED_TRANSITIONS[PreviewStatus.STARTING]
        assert ALLOWED_TRANSITIONS[PreviewStatus.READY] == frozenset()
        assert ALLOWED_TRANSITIONS[PreviewStatus.ERROR] == frozenset()


class TestLogBuffer:
    @pytest.mark.unit
    def test_keeps_most_recent_entries(self):
        logs = LogBuffer(limit=50)
        for i in range(60):
            logs.append(f"line {i}")

        assert len(logs) == 50
        assert logs.entries[0] == "line 10"
        assert logs.entries[-1] == "line 59"

    @pytest.mark.unit
    def test_sanitizes_entries(self):
        logs = LogBuffer()
        stored = logs.append("\x1b[32m  VITE v5.0.0  ready in 300 ms\x1b[0m\r\n")
        assert stored == "VITE v5.0.0  ready in 300 ms"
        assert logs.entries == ["VITE v5.0.0  ready in 300 ms"]

    @pytest.mark.unit
    def test_drops_blank_entries(self):
        logs = LogBuffer()
        assert logs.append("\x1b[2K\r\n") is None
        assert len(logs) == 0

    @pytest.mark.unit
    def test_entries_is_a_copy(self):
        logs = LogBuffer()
        logs.append("a")
        logs.entries.append("b")
        assert logs.entries == ["a"]

    @pytest.mark.unit
    def test_clear(self):
        logs = LogBuffer()
        logs.append("a")
        logs.clear()
        assert logs.entries == []

    @pytest.mark.unit
    def test_invalid_limit(self):
        with pytest.raises(ValueError):
            LogBuffer(limit=0)


class TestPreviewSnapshot:
    @pytest.mark.unit
    def test_defaults(self):
        snapshot = PreviewSnapshot()
        assert snapshot.status is PreviewStatus.INITIALIZING
        assert snapshot.logs == []
        assert snapshot.preview_url is None
        assert snapshot.is_settled is False

    @pytest.mark.unit
    def test_serialises_settled_flag(self):
        snapshot = PreviewSnapshot(run_id=2, status=PreviewStatus.READY, preview_url="http://localhost:5173")
        data = snapshot.model_dump()
        assert data["is_settled"] is True
        assert data["status"] == "ready"
