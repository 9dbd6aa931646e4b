"""Shared utility functions for Instasite.

Provides terminal-output sanitising, Rich-based status reporting, editor
language guessing, duration formatting and port probing.
"""

from __future__ import annotations

import asyncio
import re
import socket
from collections.abc import Iterable

from rich.console import Console
from rich.table import Table

console = Console()

# ---------------------------------------------------------------------------
# Terminal output sanitising
# ---------------------------------------------------------------------------

# OSC (titles, hyperlinks) and DCS strings first, then CSI sequences (colours,
# cursor movement), then single-character escapes.
_ANSI_ESCAPE_RE = re.compile(
    r"\x1B(?:"
    r"\][^\x1B\x07]*(?:\x07|\x1B\\)"
    r"|P[^\x1B\x07]*(?:\x07|\x1B\\)"
    r"|\[[0-?]*[ -/]*[@-~]"
    r"|[@-Z\\-_]"
    r")"
)
_LINE_BREAK_RE = re.compile(r"[\r\n\t]+")
_CONTROL_CHAR_RE = re.compile(r"[\x00-\x1f\x7f]")


def sanitize_output(text: str) -> str:
    """Strip terminal control sequences and control characters from *text*.

    Line breaks and tabs become single spaces so that a multi-line chunk
    still reads as one log entry. The result is trimmed; callers treat an
    empty string as "nothing to log".

    Examples::

        sanitize_output("\\x1b[32mready\\x1b[0m\\n") -> "ready"
        sanitize_output("\\r\\n") -> ""
    """
    cleaned = _ANSI_ESCAPE_RE.sub("", text)
    cleaned = _LINE_BREAK_RE.sub(" ", cleaned)
    cleaned = _CONTROL_CHAR_RE.sub("", cleaned)
    return cleaned.strip()


# ---------------------------------------------------------------------------
# File helpers
# ---------------------------------------------------------------------------

_LANGUAGE_BY_EXTENSION: dict[str, str] = {
    "ts": "typescript",
    "tsx": "typescript",
    "js": "javascript",
    "jsx": "javascript",
    "css": "css",
    "html": "html",
    "json": "json",
    "md": "markdown",
    "xml": "xml",
    "yml": "yaml",
    "yaml": "yaml",
    "sh": "shell",
    "py": "python",
}


def guess_language(path: str) -> str:
    """Guess an editor language from a file path's extension.

    Falls back to ``"plaintext"`` for unknown or missing extensions.
    """
    name = path.rsplit("/", 1)[-1]
    if "." not in name:
        return "plaintext"
    ext = name.rsplit(".", 1)[-1].lower()
    return _LANGUAGE_BY_EXTENSION.get(ext, "plaintext")


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------


def format_duration(seconds: float) -> str:
    """Format a duration in seconds to a human-readable string.

    Examples::

        format_duration(3.7)    -> "3.7s"
        format_duration(65.2)   -> "1m 5s"
    """
    if seconds < 0:
        return "0.0s"

    minutes = int(seconds // 60)
    secs = seconds % 60
    if minutes > 0:
        return f"{minutes}m {int(secs)}s"
    return f"{secs:.1f}s"


# ---------------------------------------------------------------------------
# Rich output helpers
# ---------------------------------------------------------------------------

STATUS_COLORS: dict[str, str] = {
    "initializing": "bright_cyan",
    "installing": "bright_yellow",
    "starting": "bright_magenta",
    "ready": "bright_green",
    "error": "bright_red",
}


def print_status_line(status: str, message: str = "") -> None:
    """Print a one-line preview status update, coloured by status."""
    color = STATUS_COLORS.get(status, "white")
    suffix = f" {message}" if message else ""
    console.print(f"  [bold {color}]{status:<12}[/bold {color}]{suffix}")


def print_file_table(files: Iterable[tuple[str, str]], title: str = "Files") -> None:
    """Print generated files as a path / language / size table.

    Args:
        files: ``(path, content)`` pairs in display order.
        title: Table title.
    """
    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("Path", no_wrap=True)
    table.add_column("Language", style="dim")
    table.add_column("Size", justify="right")

    for path, content in files:
        table.add_row(path, guess_language(path), f"{len(content.encode('utf-8'))} B")

    console.print(table)
    console.print()


def print_success(message: str) -> None:
    """Print a green success message."""
    console.print(f"[bold green]{message}[/bold green]")


def print_error(message: str) -> None:
    """Print a red error message."""
    console.print(f"[bold red]{message}[/bold red]")


def print_warning(message: str) -> None:
    """Print a yellow warning message."""
    console.print(f"[bold yellow]{message}[/bold yellow]")


# ---------------------------------------------------------------------------
# Port helpers
# ---------------------------------------------------------------------------


async def check_port_available(port: int, host: str = "127.0.0.1") -> bool:
    """Check whether a TCP port is free.

    Attempts a ``connect`` to host:port. If the connection is *refused* the
    port is available; if it *succeeds* something is already listening.
    """
    loop = asyncio.get_running_loop()

    def _probe() -> bool:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.settimeout(1)
        try:
            return sock.connect_ex((host, port)) != 0
        finally:
            sock.close()

    return await loop.run_in_executor(None, _probe)


async def check_ports_available(ports: list[int]) -> dict[int, bool]:
    """Check multiple ports concurrently.

    Returns:
        Mapping of ``{port: is_available}``.
    """
    results = await asyncio.gather(*(check_port_available(p) for p in ports))
    return dict(zip(ports, results))
