#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Typed representation of a parsed request and of the commands it expands to.
"""

import shlex
from enum import Enum
from typing import Iterable, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field

from .errors import UnknownSubcommand


class Subcommand(str, Enum):
    """Shortcut vocabulary understood by ddc-shob"""

    START = "start"
    RESTART = "restart"
    STOP = "stop"
    REBUILD = "rebuild"
    PURGE_DB = "purge-db"
    MIGRATE = "migrate"
    SHOW_URLS = "show-urls"
    ADD_APP = "add-app"
    LINT = "lint"
    PY_TEST = "py-test"
    LOGS = "logs"
    SHELL_PLUS = "shell-plus"
    DEPLOY = "deploy"
    MANAGE_PY = "manage-py"
    EXEC = "exec"
    BUILD = "build"
    STATUS = "status"
    PURGE_DOCKER = "purge-docker"

    @classmethod
    def parse(cls, value: "str | Subcommand") -> "Subcommand":
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            raise UnknownSubcommand(str(value)) from None


class ParsedArgs(BaseModel):
    """Subcommand, optional explicit service and the remaining tokens"""

    subcommand: str
    service: Optional[str] = None
    tail: list[str] = Field(default_factory=list)


class Invocation(BaseModel):
    """One external command to run"""

    model_config = ConfigDict(frozen=True)

    program: str
    args: tuple[str, ...] = ()
    interactive: bool = Field(
        default=False, description="Attach the terminal to the child process"
    )
    best_effort: bool = Field(
        default=False, description="Failure does not abort the remaining plan"
    )
    label: str = ""

    @property
    def argv(self) -> list[str]:
        return [self.program, *self.args]

    def display(self) -> str:
        return shlex.join(self.argv)


class InvocationPlan(BaseModel):
    """Ordered invocations for one subcommand"""

    model_config = ConfigDict(frozen=True)

    subcommand: Subcommand
    service: Optional[str] = None
    steps: tuple[Invocation, ...] = ()


def split_service_token(
    argv: Sequence[str],
    commands: Iterable[str],
    value_options: Iterable[str] = (),
) -> list[str]:
    """Rewrite ``[<service>] <command> ...`` into ``--service <service> <command> ...``

    Leading global options are skipped; ``value_options`` lists the options
    that consume the following token.
    """
    tokens = list(argv)
    commands = set(commands)
    value_options = set(value_options)

    index = 0
    while index < len(tokens) and tokens[index].startswith("-"):
        option = tokens[index]
        if option == "--":
            return tokens
        index += 2 if option in value_options else 1

    if index + 1 >= len(tokens):
        return tokens

    candidate = tokens[index]
    if candidate in commands or tokens[index + 1] not in commands:
        return tokens

    return tokens[:index] + ["--service", candidate] + tokens[index + 1 :]
