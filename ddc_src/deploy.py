#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Deploy packager: archive the project, upload it and build/start it remotely.

Stages run in order and each one is reported on its own:

    archiving -> uploading -> remote-building -> remote-starting -> done

A failure in any stage stops the workflow and names that stage.
"""

import fnmatch
import posixpath
import shlex
import tarfile
import tempfile
from enum import Enum
from pathlib import Path
from typing import Optional

from jinja2 import Environment, StrictUndefined, TemplateError
from pydantic import BaseModel
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel

from .errors import (
    ArchiveError,
    CommandFailedError,
    DeployError,
    MissingRequiredArgument,
    RemoteCommandError,
    TransferError,
)
from .executor import WorkflowExecutor
from .models import DeployConfig
from .plan import Invocation

console = Console()


class DeployStage(str, Enum):
    ARCHIVING = "archiving"
    UPLOADING = "uploading"
    REMOTE_BUILDING = "remote-building"
    REMOTE_STARTING = "remote-starting"
    DONE = "done"


class DeployResult(BaseModel):
    stage: DeployStage
    failed_stage: Optional[DeployStage] = None
    exit_code: int = 0
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.failed_stage is None


def load_ignore_patterns(path: Path) -> list[str]:
    """Read glob patterns from an ignore file, skipping blanks and comments"""
    if not path.is_file():
        return []
    patterns = []
    for line in path.read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if line and not line.startswith("#"):
            patterns.append(line.rstrip("/"))
    return patterns


def is_excluded(relative_name: str, patterns: list[str]) -> bool:
    """Match a pattern against the whole relative path or any of its parts"""
    parts = relative_name.split("/")
    for pattern in patterns:
        if fnmatch.fnmatch(relative_name, pattern):
            return True
        if any(fnmatch.fnmatch(part, pattern) for part in parts):
            return True
    return False


def create_archive(project_dir: Path, output: Path, excludes: list[str]) -> Path:
    """Create a gzipped tarball of the directory contents"""
    if not project_dir.is_dir():
        raise ArchiveError(
            DeployStage.ARCHIVING.value, f"Deploy directory not found: {project_dir}"
        )

    def exclude_filter(tarinfo: tarfile.TarInfo) -> Optional[tarfile.TarInfo]:
        if is_excluded(tarinfo.name, excludes):
            return None
        return tarinfo

    try:
        with tarfile.open(output, "w:gz") as tar:
            for item in sorted(project_dir.iterdir()):
                tar.add(item, arcname=item.name, filter=exclude_filter)
    except (OSError, tarfile.TarError) as e:
        raise ArchiveError(
            DeployStage.ARCHIVING.value, f"Failed to archive {project_dir}: {e}"
        ) from e

    return output


class DeployPackager:
    """Runs the deploy stages against one remote target"""

    def __init__(
        self,
        config: DeployConfig,
        executor: WorkflowExecutor,
        compose_command: str = "docker compose",
    ):
        self.config = config
        self.executor = executor
        self.compose_command = config.compose_command or compose_command
        self.templates = Environment(
            undefined=StrictUndefined, keep_trailing_newline=False
        )
        self.templates.filters["quote"] = shlex.quote

    @property
    def remote_archive(self) -> str:
        return posixpath.join(self.config.remote_tmp, self.config.archive_name)

    def excludes_for(self, project_dir: Path) -> list[str]:
        return self.config.excludes + load_ignore_patterns(
            project_dir / self.config.ignore_file
        )

    # ------------------------------------------------------------------
    # Invocations
    # ------------------------------------------------------------------

    def _ssh_options(self, port_flag: str) -> list[str]:
        options = []
        if self.config.ssh_key:
            options.extend(["-i", self.config.ssh_key])
        if self.config.port is not None:
            options.extend([port_flag, str(self.config.port)])
        options.extend(self.config.ssh_options)
        return options

    def upload_invocation(self, archive: Path) -> Invocation:
        return Invocation(
            program="scp",
            args=(
                *self._ssh_options("-P"),
                str(archive),
                f"{self.config.target}:{self.remote_archive}",
            ),
            label="Upload deployment package",
        )

    def remote_invocation(self, template: str, label: str) -> Invocation:
        return Invocation(
            program="ssh",
            args=(*self._ssh_options("-p"), self.config.target, self.render(template)),
            label=label,
        )

    def render(self, template: str) -> str:
        try:
            return self.templates.from_string(template).render(
                remote_dir=self.config.effective_remote_dir,
                archive=self.remote_archive,
                compose=self.compose_command,
                user=self.config.user,
                host=self.config.host,
            )
        except TemplateError as e:
            raise MissingRequiredArgument(f"Invalid remote command template: {e}") from e

    # ------------------------------------------------------------------
    # Workflow
    # ------------------------------------------------------------------

    def deploy(self, project_dir: Path) -> DeployResult:
        """Archive, upload, build and start; report the stage that failed"""
        if not self.config.host:
            raise MissingRequiredArgument(
                "Deploy host is not configured (set deploy.host or pass HOST)"
            )

        # Render both commands up front so template errors surface before any upload
        build = self.remote_invocation(
            self.config.build_template, "Extract and build on remote host"
        )
        start = self.remote_invocation(
            self.config.start_template, "Start services on remote host"
        )

        stage = DeployStage.ARCHIVING
        try:
            with tempfile.TemporaryDirectory(prefix="ddc-deploy-") as tmp:
                console.print(f"[bold]Archiving[/bold] {escape(str(project_dir))}")
                archive = create_archive(
                    project_dir,
                    Path(tmp) / self.config.archive_name,
                    self.excludes_for(project_dir),
                )

                stage = DeployStage.UPLOADING
                console.print(f"[bold]Uploading[/bold] to {escape(self.config.target)}")
                self._run_stage(stage, self.upload_invocation(archive), TransferError)

            stage = DeployStage.REMOTE_BUILDING
            console.print("[bold]Building[/bold] services on remote host")
            self._run_stage(stage, build, RemoteCommandError)

            stage = DeployStage.REMOTE_STARTING
            console.print("[bold]Starting[/bold] services on remote host")
            self._run_stage(stage, start, RemoteCommandError)
        except DeployError as e:
            console.print(
                f"[red]✗ Deploy failed at stage '{e.stage}': {escape(str(e))}[/red]"
            )
            return DeployResult(
                stage=DeployStage(e.stage),
                failed_stage=DeployStage(e.stage),
                exit_code=e.exit_code if e.exit_code is not None else 1,
                message=str(e),
            )

        console.print(
            Panel(
                f"[green]✓[/green] Deployed to {escape(self.config.target)}\n\n"
                f"Directory: {escape(self.config.effective_remote_dir)}",
                title="[bold green]Deploy complete[/bold green]",
                border_style="green",
            )
        )
        return DeployResult(stage=DeployStage.DONE)

    def _run_stage(
        self,
        stage: DeployStage,
        invocation: Invocation,
        error_cls: type[DeployError],
    ):
        try:
            self.executor.run_checked(invocation)
        except CommandFailedError as e:
            raise error_cls(stage.value, str(e), exit_code=e.exit_code) from e
