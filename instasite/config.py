"""Instasite configuration.

Centralised, typed configuration for generation, sandbox and preview. All
settings use Pydantic v2 models so they can be validated at construction time
and serialised to/from JSON or environment variables without boiler-plate.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field


class GenerationConfig(BaseModel):
    """Where the generation backend lives and how long to wait for it."""

    backend_url: str = Field(default="http://localhost:3000")
    endpoint: str = Field(default="/chat")
    timeout: int = Field(default=300, ge=10, description="Streaming read timeout in seconds")


class SandboxConfig(BaseModel):
    """Settings for the local sandbox that previews generated projects."""

    workdir: Path = Field(default=Path("./.instasite/sandbox"))
    preview_host: str = Field(default="localhost")
    preview_ports: list[int] = Field(
        default=[5173, 3000, 8080],
        description="Ports probed for a listening dev server",
    )
    poll_interval: float = Field(default=0.5, gt=0, description="Seconds between port probes")


class PreviewConfig(BaseModel):
    """Tuning knobs for the preview lifecycle."""

    manifest_filename: str = Field(default="package.json")
    install_command: list[str] = Field(default=["npm", "install"])
    run_command: list[str] = Field(default=["npm", "run", "dev"])
    log_limit: int = Field(default=50, ge=1, description="Most recent log entries kept per run")
    preview_during_stream: bool = Field(
        default=False,
        description="Restart the preview on every parsed snapshot instead of after generation",
    )
    echo_status: bool = Field(default=True, description="Print preview transitions to the console")


class Config(BaseModel):
    """Global Instasite configuration.

    Instances are typically created once by the CLI entry point and then
    passed to the session, orchestrator and sandbox handle.
    """

    generation: GenerationConfig = Field(default_factory=GenerationConfig)
    sandbox: SandboxConfig = Field(default_factory=SandboxConfig)
    preview: PreviewConfig = Field(default_factory=PreviewConfig)

    # ------------------------------------------------------------------
    # Serialisation helpers
    # ------------------------------------------------------------------

    def save(self, path: Path) -> Path:
        """Persist the configuration to a JSON file.

        Returns:
            The path where the file was written.
        """
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(self.model_dump_json(indent=2), encoding="utf-8")
        return target

    @classmethod
    def load(cls, path: Path) -> "Config":
        """Load a previously-saved configuration from JSON."""
        raw = Path(path).read_text(encoding="utf-8")
        return cls.model_validate_json(raw)

    @classmethod
    def from_env(cls) -> "Config":
        """Build a ``Config`` from environment variables.

        Recognised variables (all optional):
            INSTASITE_BACKEND_URL, INSTASITE_ENDPOINT, INSTASITE_TIMEOUT,
            INSTASITE_WORKDIR, INSTASITE_PREVIEW_HOST, INSTASITE_PREVIEW_PORTS,
            INSTASITE_MANIFEST, INSTASITE_INSTALL_COMMAND, INSTASITE_RUN_COMMAND,
            INSTASITE_LOG_LIMIT.
        """
        generation_kwargs: dict[str, Any] = {}
        if os.environ.get("INSTASITE_BACKEND_URL"):
            generation_kwargs["backend_url"] = os.environ["INSTASITE_BACKEND_URL"]
        if os.environ.get("INSTASITE_ENDPOINT"):
            generation_kwargs["endpoint"] = os.environ["INSTASITE_ENDPOINT"]
        if os.environ.get("INSTASITE_TIMEOUT"):
            generation_kwargs["timeout"] = int(os.environ["INSTASITE_TIMEOUT"])

        sandbox_kwargs: dict[str, Any] = {}
        if os.environ.get("INSTASITE_WORKDIR"):
            sandbox_kwargs["workdir"] = Path(os.environ["INSTASITE_WORKDIR"])
        if os.environ.get("INSTASITE_PREVIEW_HOST"):
            sandbox_kwargs["preview_host"] = os.environ["INSTASITE_PREVIEW_HOST"]
        if os.environ.get("INSTASITE_PREVIEW_PORTS"):
            ports_str = os.environ["INSTASITE_PREVIEW_PORTS"]
            sandbox_kwargs["preview_ports"] = [
                int(p.strip()) for p in ports_str.split(",") if p.strip()
            ]

        preview_kwargs: dict[str, Any] = {}
        if os.environ.get("INSTASITE_MANIFEST"):
            preview_kwargs["manifest_filename"] = os.environ["INSTASITE_MANIFEST"]
        if os.environ.get("INSTASITE_INSTALL_COMMAND"):
            preview_kwargs["install_command"] = os.environ["INSTASITE_INSTALL_COMMAND"].split()
        if os.environ.get("INSTASITE_RUN_COMMAND"):
            preview_kwargs["run_command"] = os.environ["INSTASITE_RUN_COMMAND"].split()
        if os.environ.get("INSTASITE_LOG_LIMIT"):
            preview_kwargs["log_limit"] = int(os.environ["INSTASITE_LOG_LIMIT"])

        return cls(
            generation=GenerationConfig(**generation_kwargs),
            sandbox=SandboxConfig(**sandbox_kwargs),
            preview=PreviewConfig(**preview_kwargs),
        )
