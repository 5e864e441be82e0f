#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Project manager: configuration loading and command wiring for one project.
"""

from pathlib import Path
from typing import Any, Optional

import typer
import yaml
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape

from .builder import InvocationBuilder
from .deploy import DeployPackager, DeployResult
from .executor import PlanResult, WorkflowExecutor
from .models import Config
from .plan import ParsedArgs, Subcommand

# Rich Console for beautiful output
console = Console()

CONFIG_FILE_NAME = "ddc.yaml"
COMPOSE_FILE_NAMES = (
    "docker-compose.yml",
    "docker-compose.yaml",
    "compose.yml",
    "compose.yaml",
)


# ============================================================================
# Core Project Manager
# ============================================================================


class ProjectManager:
    """Runs shortcut commands against a docker compose project"""

    def __init__(
        self,
        project_root: Path,
        service: Optional[str] = None,
        dry_run: bool = False,
    ):
        self.project_root = project_root
        self.config_path = project_root / CONFIG_FILE_NAME
        self.service = service
        self.dry_run = dry_run
        self._config: Optional[Config] = None

    @property
    def config(self) -> Config:
        if self._config is None:
            self._config = self.load_config()
        return self._config

    def load_config(self) -> Config:
        """Load and validate configuration from ddc.yaml and the environment"""
        data: dict[str, Any] = {}
        if self.config_path.exists():
            try:
                with open(self.config_path, encoding="utf-8") as f:
                    data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                console.print(f"[red]Error: invalid {self.config_path}: {e}[/red]")
                raise typer.Exit(1)
            if not isinstance(data, dict):
                console.print(
                    f"[red]Error: {self.config_path} must contain a mapping[/red]"
                )
                raise typer.Exit(1)

        try:
            return Config(_env_file=self.project_root / ".env", **data)
        except ValidationError as e:
            console.print(f"[red]Error: invalid configuration\n{escape(str(e))}[/red]")
            raise typer.Exit(1)

    def find_compose_file(self) -> Optional[Path]:
        names = (self.config.compose_file,) if self.config.compose_file else ()
        for name in names + COMPOSE_FILE_NAMES:
            path = self.project_root / name
            if path.exists():
                return path
        return None

    def check_compose_file(self):
        """Warn when the project has no compose file"""
        if self.find_compose_file() is None:
            console.print(
                "[yellow]No docker compose file found. "
                "There might be errors executing commands[/yellow]"
            )

    @property
    def builder(self) -> InvocationBuilder:
        return InvocationBuilder(self.config, self.project_root)

    @property
    def executor(self) -> WorkflowExecutor:
        return WorkflowExecutor(self.project_root, dry_run=self.dry_run)

    def run_subcommand(self, subcommand: Subcommand, tail: list[str]) -> PlanResult:
        """Build the plan for a subcommand and run it"""
        args = ParsedArgs(subcommand=subcommand.value, service=self.service, tail=tail)
        plan = self.builder.plan_for(args)
        self.check_compose_file()
        return self.executor.execute(plan)

    def deploy(
        self, deploy_dir: Optional[Path] = None, **overrides: Any
    ) -> DeployResult:
        """Deploy the project (or another directory) to the configured host"""
        updates = {k: v for k, v in overrides.items() if v is not None}
        deploy_config = self.config.deploy.model_copy(update=updates)
        packager = DeployPackager(
            deploy_config, self.executor, self.config.compose_command
        )
        return packager.deploy((deploy_dir or self.project_root).resolve())
