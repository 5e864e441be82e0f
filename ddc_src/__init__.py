#!/usr/bin/env python3
# -*- coding: utf-8 -*-

# Copyright (c) 2026 plumiume
# SPDX-License-Identifier: MIT
# License: MIT License (https://opensource.org/licenses/MIT)
# See LICENSE.txt for details.

"""
Django + docker compose developer shortcuts.
"""

from .builder import InvocationBuilder
from .commands import app, main
from .deploy import DeployPackager, DeployResult, DeployStage
from .errors import (
    ArchiveError,
    BuildError,
    CommandFailedError,
    DdcError,
    DeployError,
    FilesystemError,
    InvalidArgument,
    MissingRequiredArgument,
    RemoteCommandError,
    TransferError,
    UnexpectedArgument,
    UnknownSubcommand,
    UnsafePath,
)
from .executor import PlanResult, StepResult, WorkflowExecutor
from .manager import ProjectManager
from .models import Config, DeployConfig
from .plan import Invocation, InvocationPlan, ParsedArgs, Subcommand
from .resolver import DEFAULT_SERVICE, resolve_service

__all__ = [
    # Commands
    "app",
    "main",
    # Manager
    "ProjectManager",
    # Engine
    "DEFAULT_SERVICE",
    "resolve_service",
    "InvocationBuilder",
    "WorkflowExecutor",
    "DeployPackager",
    # Models
    "Config",
    "DeployConfig",
    "Subcommand",
    "ParsedArgs",
    "Invocation",
    "InvocationPlan",
    "StepResult",
    "PlanResult",
    "DeployStage",
    "DeployResult",
    # Errors
    "DdcError",
    "BuildError",
    "UnknownSubcommand",
    "MissingRequiredArgument",
    "UnexpectedArgument",
    "InvalidArgument",
    "FilesystemError",
    "UnsafePath",
    "CommandFailedError",
    "DeployError",
    "ArchiveError",
    "TransferError",
    "RemoteCommandError",
]
