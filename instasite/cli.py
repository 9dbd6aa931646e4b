"""Instasite command-line entry point.

Usage::

    instasite generate "A portfolio site for a ceramic artist"
    instasite replay saved-response.txt --no-hold
    python -m instasite.cli generate "A bakery landing page" --backend http://localhost:3000
"""

from __future__ import annotations

import asyncio
import sys
import time
from pathlib import Path
from typing import Optional

from rich.markup import escape
from rich.panel import Panel

from instasite.config import Config
from instasite.generation.client import GenerationClient
from instasite.preview.models import PreviewSnapshot, PreviewStatus
from instasite.preview.orchestrator import PreviewOrchestrator
from instasite.sandbox.handle import get_sandbox_handle
from instasite.session import GenerationSession
from instasite.utils import (
    console,
    format_duration,
    print_error,
    print_file_table,
    print_success,
    print_warning,
)


class _LogEcho:
    """Preview observer that prints each new log entry once."""

    def __init__(self) -> None:
        self._previous: list[str] = []

    def __call__(self, snapshot: PreviewSnapshot) -> None:
        if snapshot.logs and snapshot.logs != self._previous:
            console.print(f"    [dim]{escape(snapshot.logs[-1])}[/dim]")
        self._previous = snapshot.logs


def _build_config(args) -> Config:
    config = Config.from_env()
    if args.backend:
        config.generation.backend_url = args.backend
    if args.workdir:
        config.sandbox.workdir = Path(args.workdir)
    return config


async def _run(args, config: Config) -> int:
    handle = get_sandbox_handle(config)
    orchestrator: Optional[PreviewOrchestrator] = None
    if not args.no_preview:
        # Boot while the model is still generating.
        handle.request_boot()
        orchestrator = PreviewOrchestrator(
            handle,
            config.preview,
            observer=None if args.quiet else _LogEcho(),
        )

    client = GenerationClient(
        base_url=config.generation.backend_url,
        endpoint=config.generation.endpoint,
        timeout=config.generation.timeout,
    )
    session = GenerationSession(client, orchestrator, config)
    started = time.monotonic()

    try:
        if args.command == "generate":
            console.print(Panel(f"[bold]{escape(args.prompt)}[/bold]", title="Generating", style="cyan"))
            with console.status("Waiting for the model..."):
                artifact = await session.submit(args.prompt)
        else:
            text = Path(args.response).read_text(encoding="utf-8")
            artifact = await session.replay(text, chunk_size=args.chunk_size)

        if session.error:
            print_error(session.error)
        if artifact is None:
            print_error("No complete actions found in the response.")
            return 1

        title = artifact.title or artifact.id or "Files"
        print_file_table(artifact.files.items(), title=title)
        for action in artifact.command_actions:
            console.print(f"  [dim]$ {escape(action.content)}[/dim]")
        console.print(f"  Generated in {format_duration(time.monotonic() - started)}")

        if orchestrator is None:
            return 1 if session.error else 0

        snapshot = await orchestrator.wait_until_settled(timeout=args.timeout)
        if snapshot.status is PreviewStatus.ERROR:
            print_error("Preview failed.")
            return 1
        if snapshot.status is not PreviewStatus.READY:
            print_warning(f"Preview still {snapshot.status.value} after {args.timeout}s.")
            return 0

        print_success(f"Preview ready at {snapshot.preview_url}")
        if args.hold:
            console.print("[dim]Press Ctrl+C to stop the preview.[/dim]")
            await asyncio.Event().wait()
        return 0
    finally:
        if orchestrator is not None:
            await orchestrator.stop()
        await handle.shutdown()


def main(argv: Optional[list[str]] = None) -> None:
    """CLI entry point for ``instasite`` / ``python -m instasite.cli``."""
    import argparse

    parser = argparse.ArgumentParser(
        prog="instasite",
        description="Instasite: describe a website, get a running preview",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            '  instasite generate "A landing page for a bakery"\n'
            "  instasite replay response.txt --no-hold\n"
        ),
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    generate = subparsers.add_parser("generate", help="Generate a site from a prompt")
    generate.add_argument("prompt", help="Natural-language description of the site")

    replay = subparsers.add_parser("replay", help="Preview a saved model response")
    replay.add_argument("response", help="Path to a file holding the raw response text")
    replay.add_argument(
        "--chunk-size", type=int, default=64,
        help="Fragment size used to simulate streaming (default: 64)",
    )

    for sub in (generate, replay):
        sub.add_argument("--backend", default=None, help="Generation backend base URL")
        sub.add_argument("--workdir", default=None, help="Sandbox working directory")
        sub.add_argument("--no-preview", action="store_true", help="Only parse; do not run")
        sub.add_argument(
            "--timeout", type=float, default=180.0,
            help="Seconds to wait for the preview to settle (default: 180)",
        )
        sub.add_argument(
            "--no-hold", dest="hold", action="store_false",
            help="Exit as soon as the preview is ready",
        )
        sub.add_argument("--quiet", "-q", action="store_true", help="Do not echo process output")

    args = parser.parse_args(argv)

    if args.command == "replay" and not Path(args.response).exists():
        console.print(f"[bold red]Error:[/bold red] Response file not found: {args.response}")
        sys.exit(1)
    if args.command == "replay" and args.chunk_size < 1:
        console.print("[bold red]Error:[/bold red] --chunk-size must be at least 1")
        sys.exit(1)

    config = _build_config(args)
    try:
        exit_code = asyncio.run(_run(args, config))
    except KeyboardInterrupt:
        console.print("[dim]Stopped.[/dim]")
        exit_code = 0
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
