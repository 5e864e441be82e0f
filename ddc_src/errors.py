#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Error types raised while building and running command plans.
"""

from typing import Optional


class DdcError(Exception):
    """Base class for all ddc-shob errors"""


# ============================================================================
# Build-time errors (raised before any process runs)
# ============================================================================


class BuildError(DdcError):
    """Request cannot be turned into an invocation plan"""


class UnknownSubcommand(BuildError):
    def __init__(self, name: str):
        super().__init__(f"Unknown subcommand: {name}")
        self.name = name


class MissingRequiredArgument(BuildError):
    pass


class UnexpectedArgument(BuildError):
    def __init__(self, subcommand: str, tokens: list[str]):
        super().__init__(
            f"Unexpected arguments for '{subcommand}': {' '.join(tokens)}"
        )
        self.subcommand = subcommand
        self.tokens = tokens


class InvalidArgument(BuildError):
    pass


class FilesystemError(DdcError):
    """Missing or unsafe filesystem location"""


class UnsafePath(BuildError, FilesystemError):
    def __init__(self, path: str, reason: str):
        super().__init__(f"Refusing to use path '{path}': {reason}")
        self.path = path
        self.reason = reason


# ============================================================================
# Runtime errors
# ============================================================================


class CommandFailedError(DdcError):
    """External command exited with a non-zero status"""

    def __init__(self, command: str, exit_code: int):
        super().__init__(f"Command failed with exit code {exit_code}: {command}")
        self.command = command
        self.exit_code = exit_code


class DeployError(DdcError):
    """Deploy workflow failed at a specific stage"""

    def __init__(self, stage: str, message: str, exit_code: Optional[int] = None):
        super().__init__(message)
        self.stage = stage
        self.exit_code = exit_code


class ArchiveError(DeployError):
    pass


class TransferError(DeployError):
    pass


class RemoteCommandError(DeployError):
    pass
