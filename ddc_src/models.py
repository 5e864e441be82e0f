#!/usr/bin/env python3
# -*- coding: utf-8 -*-
#
# Copyright (c) 2026 plumiume
# SPDX-License-Identifier: MIT
# License: MIT License (https://opensource.org/licenses/MIT)
# See LICENSE.txt for details.

"""
Configuration models for ddc-shob.
"""

import shlex
from typing import Optional, Tuple, Type

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import (
    BaseSettings,
    SettingsConfigDict,
    PydanticBaseSettingsSource,
)

from .resolver import DEFAULT_SERVICE

LINT_JOBS = ("black", "flake8", "prospector", "pydocstyle", "mypy")
DEFAULT_LINT_JOBS = ("black", "flake8", "prospector")

DEFAULT_BUILD_TEMPLATE = (
    "mkdir -p {{ remote_dir | quote }}"
    " && tar -xzf {{ archive | quote }} -C {{ remote_dir | quote }}"
    " && rm -f {{ archive | quote }}"
    " && cd {{ remote_dir | quote }}"
    " && {{ compose }} build"
)
DEFAULT_START_TEMPLATE = "cd {{ remote_dir | quote }} && {{ compose }} up -d"


def _check_command(v: str) -> str:
    if not shlex.split(v):
        raise ValueError("command must not be empty")
    return v


# ============================================================================
# Pydantic Models for Configuration
# ============================================================================


class DeployConfig(BaseModel):
    """Remote deploy target configuration"""

    host: Optional[str] = Field(default=None, description="Remote server host or IP")
    user: str = Field(default="ubuntu", description="Remote server user")
    port: Optional[int] = Field(default=None, ge=1, le=65535, description="SSH port")
    ssh_key: Optional[str] = Field(
        default=None,
        description="Private key for ssh/scp (ssh-agent is used when unset)",
    )
    ssh_options: list[str] = Field(
        default_factory=list, description="Extra options passed to ssh and scp"
    )
    remote_dir: Optional[str] = Field(
        default=None, description="Remote project directory (default /home/<user>/web)"
    )
    remote_tmp: str = Field(default="/tmp", description="Remote upload directory")
    archive_name: str = Field(default="deployment.tar.gz")
    compose_command: Optional[str] = Field(
        default=None,
        description="Compose command on the remote host (defaults to compose_command)",
    )
    excludes: list[str] = Field(
        default_factory=lambda: [
            ".git",
            "__pycache__",
            "*.pyc",
            ".env",
            ".venv",
            "node_modules",
            "pg",
        ],
        description="Glob patterns left out of the deploy archive",
    )
    ignore_file: str = Field(
        default=".deployignore",
        description="Project file with extra exclude patterns, one per line",
    )
    build_template: str = Field(
        default=DEFAULT_BUILD_TEMPLATE,
        description="Jinja2 template of the remote extract and build command",
    )
    start_template: str = Field(
        default=DEFAULT_START_TEMPLATE,
        description="Jinja2 template of the remote start command",
    )

    @field_validator("host")
    @classmethod
    def validate_host(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            return None
        return v

    @field_validator("archive_name")
    @classmethod
    def validate_archive_name(cls, v: str) -> str:
        """Archive name must be a bare file name"""
        if not v or "/" in v or v in (".", ".."):
            raise ValueError("archive_name must be a plain file name")
        return v

    @property
    def target(self) -> str:
        return f"{self.user}@{self.host}" if self.user else str(self.host)

    @property
    def effective_remote_dir(self) -> str:
        return self.remote_dir or f"/home/{self.user}/web"


class Config(BaseSettings):
    """Main configuration model"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="DDC_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    default_service: str = Field(
        default=DEFAULT_SERVICE, description="Service used when none is given"
    )
    compose_command: str = Field(
        default="docker compose", description="Container orchestration command"
    )
    compose_file: Optional[str] = Field(
        default=None, description="Compose file passed with -f"
    )
    python: str = Field(default="python", description="Python inside the container")
    manage_script: str = Field(default="manage.py")
    db_folder: str = Field(
        default="pg", description="Local database directory removed by purge-db"
    )
    lint_path: str = Field(
        default="/app", description="Container path checked by lint jobs"
    )
    lint_jobs: list[str] = Field(
        default_factory=lambda: list(DEFAULT_LINT_JOBS),
        description="Lint jobs run when none is named",
    )
    log_lines: int = Field(default=10, ge=0, description="Lines shown by logs")
    deploy: DeployConfig = Field(default_factory=DeployConfig)

    @field_validator("default_service")
    @classmethod
    def validate_default_service(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("default_service must not be empty")
        return v

    @field_validator("compose_command", "python")
    @classmethod
    def validate_command(cls, v: str) -> str:
        return _check_command(v)

    @field_validator("lint_jobs")
    @classmethod
    def validate_lint_jobs(cls, v: list[str]) -> list[str]:
        unknown = [job for job in v if job not in LINT_JOBS]
        if unknown:
            raise ValueError(
                f"Unknown lint jobs: {', '.join(unknown)} "
                f"(expected one of {', '.join(LINT_JOBS)})"
            )
        if not v:
            raise ValueError("lint_jobs must contain at least one job")
        return v

    @property
    def compose_argv(self) -> list[str]:
        argv = shlex.split(self.compose_command)
        if self.compose_file:
            argv.extend(["-f", self.compose_file])
        return argv

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: Type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        """
        Customize settings sources priority.
        Priority: env vars > .env file > YAML (init) > file secrets > defaults
        """
        return env_settings, dotenv_settings, init_settings, file_secret_settings
