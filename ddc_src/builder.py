#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Invocation builder: turns a subcommand into the docker compose / manage.py
commands it stands for.

Everything in this module is pure. Paths are normalised as strings and
nothing is spawned, so a plan can be inspected before it runs.
"""

import os
from pathlib import Path
from typing import Callable, Optional, Sequence

from .errors import (
    BuildError,
    InvalidArgument,
    MissingRequiredArgument,
    UnexpectedArgument,
    UnsafePath,
)
from .models import Config, LINT_JOBS
from .plan import Invocation, InvocationPlan, ParsedArgs, Subcommand
from .resolver import resolve_service

ALL_SERVICES = "all"

# Entries purge-db never deletes, whatever the configured folder says
PROTECTED_NAMES = frozenset(
    {
        ".git",
        "docker-compose.yml",
        "docker-compose.yaml",
        "compose.yml",
        "compose.yaml",
        "manage.py",
        "ddc.yaml",
    }
)

Rule = Callable[[str, list[str]], list[Invocation]]


# ============================================================================
# Tail helpers
# ============================================================================


def take_flag(tail: list[str], *names: str) -> tuple[bool, list[str]]:
    """Remove every occurrence of a flag, report whether it was present"""
    rest = [token for token in tail if token not in names]
    return len(rest) != len(tail), rest


def take_option(tail: list[str], *names: str) -> tuple[Optional[str], list[str]]:
    """Remove ``--opt value`` / ``--opt=value`` and return the last value"""
    value = None
    rest: list[str] = []
    tokens = iter(tail)
    for token in tokens:
        if token in names:
            value = next(tokens, None)
            if value is None:
                raise MissingRequiredArgument(f"Option {token} requires a value")
            continue
        name, sep, inline = token.partition("=")
        if sep and name in names:
            value = inline
            continue
        rest.append(token)
    return value, rest


def positionals(tail: list[str]) -> list[str]:
    return [token for token in tail if not token.startswith("-")]


def leading_positionals(tail: list[str]) -> list[str]:
    """Positionals before the first option; later ones belong to that option"""
    leading = []
    for token in tail:
        if token.startswith("-"):
            break
        leading.append(token)
    return leading


# ============================================================================
# Invocation Builder
# ============================================================================


class InvocationBuilder:
    """Builds invocation plans for one project directory"""

    def __init__(self, config: Config, project_dir: Path):
        self.config = config
        self.project_dir = project_dir
        self._rules: dict[Subcommand, Rule] = {
            Subcommand.START: self._start,
            Subcommand.BUILD: self._build,
            Subcommand.RESTART: self._restart,
            Subcommand.STOP: self._stop,
            Subcommand.REBUILD: self._rebuild,
            Subcommand.PURGE_DB: self._purge_db,
            Subcommand.MIGRATE: self._migrate,
            Subcommand.SHOW_URLS: self._show_urls,
            Subcommand.ADD_APP: self._add_app,
            Subcommand.LINT: self._lint,
            Subcommand.PY_TEST: self._py_test,
            Subcommand.LOGS: self._logs,
            Subcommand.SHELL_PLUS: self._shell_plus,
            Subcommand.MANAGE_PY: self._manage_py,
            Subcommand.EXEC: self._exec,
            Subcommand.STATUS: self._status,
            Subcommand.PURGE_DOCKER: self._purge_docker,
        }

    @property
    def rules(self) -> dict[Subcommand, Rule]:
        return dict(self._rules)

    def plan_for(self, args: ParsedArgs) -> InvocationPlan:
        """Resolve the service for a parsed request and build its plan"""
        service = resolve_service(args.service, self.config.default_service)
        return self.build(args.subcommand, service, args.tail)

    def build(
        self,
        subcommand: "str | Subcommand",
        service: str,
        tail: Sequence[str] = (),
    ) -> InvocationPlan:
        subcommand = Subcommand.parse(subcommand)
        if subcommand is Subcommand.DEPLOY:
            raise BuildError("deploy is run by the deploy packager, not as a plan")

        rule = self._rules[subcommand]
        steps = rule(service, list(tail))
        return InvocationPlan(subcommand=subcommand, service=service, steps=tuple(steps))

    # ------------------------------------------------------------------
    # Command prefixes
    # ------------------------------------------------------------------

    def compose(
        self,
        *args: str,
        label: str = "",
        interactive: bool = False,
        best_effort: bool = False,
    ) -> Invocation:
        program, *prefix = self.config.compose_argv
        return Invocation(
            program=program,
            args=(*prefix, *args),
            label=label,
            interactive=interactive,
            best_effort=best_effort,
        )

    def exec_in(
        self, service: str, *command: str, label: str = "", interactive: bool = False
    ) -> Invocation:
        # Without a terminal attached compose exec needs -T
        exec_args = ["exec"] if interactive else ["exec", "-T"]
        return self.compose(
            *exec_args, service, *command, label=label, interactive=interactive
        )

    def manage(
        self, service: str, *args: str, label: str = "", interactive: bool = False
    ) -> Invocation:
        return self.exec_in(
            service,
            self.config.python,
            self.config.manage_script,
            *args,
            label=label,
            interactive=interactive,
        )

    def _up(self) -> Invocation:
        return self.compose("up", "-d", label="Start all services")

    @staticmethod
    def _reject_tail(subcommand: Subcommand, tail: list[str]):
        if tail:
            raise UnexpectedArgument(subcommand.value, tail)

    # ------------------------------------------------------------------
    # Compose rules
    # ------------------------------------------------------------------

    def _start(self, service: str, tail: list[str]) -> list[Invocation]:
        build, services = take_flag(tail, "--build", "-b")
        steps = []
        if build:
            steps.append(self.compose("build", "--force-rm", label="Build images"))
        steps.append(self.compose("up", "-d", *services, label="Start services"))
        return steps

    def _build(self, service: str, tail: list[str]) -> list[Invocation]:
        return [
            self.compose(
                "build", "--force-rm", service, *tail, label=f"Build {service} image"
            )
        ]

    def _restart(self, service: str, tail: list[str]) -> list[Invocation]:
        restart_all, rest = take_flag(tail, "--all", "-a")
        self._reject_tail(Subcommand.RESTART, rest)
        if restart_all or service == ALL_SERVICES:
            return [self.compose("restart", label="Restart all services")]
        return [self.compose("restart", service, label=f"Restart {service}")]

    def _stop(self, service: str, tail: list[str]) -> list[Invocation]:
        self._reject_tail(Subcommand.STOP, tail)
        return [
            self.compose(
                "rm", "--stop", "--force", "-v", label="Stop and remove all containers"
            )
        ]

    def _rebuild(self, service: str, tail: list[str]) -> list[Invocation]:
        self._reject_tail(Subcommand.REBUILD, tail)
        return [
            # The container may not exist yet
            self.compose(
                "rm",
                "--stop",
                "--force",
                "-v",
                service,
                label=f"Stop and remove {service} container",
                best_effort=True,
            ),
            self.compose("build", "--force-rm", service, label=f"Build {service} image"),
            self._up(),
        ]

    def _status(self, service: str, tail: list[str]) -> list[Invocation]:
        return [self.compose("ps", *tail, label="Show services status")]

    def _logs(self, service: str, tail: list[str]) -> list[Invocation]:
        no_follow, rest = take_flag(tail, "--no-follow")
        _, rest = take_flag(rest, "--follow", "-f")
        lines, rest = take_option(rest, "-n", "--tail")
        self._reject_tail(Subcommand.LOGS, rest)

        if lines is None:
            lines = str(self.config.log_lines)
        elif not (lines.isascii() and lines.isdigit()):
            raise InvalidArgument(f"Number of log lines must be an integer: {lines}")

        args = ["logs", "--timestamps", f"--tail={lines}"]
        if not no_follow:
            args.append("--follow")
        args.append(service)
        return [self.compose(*args, label=f"Logs of {service}", interactive=True)]

    def _purge_docker(self, service: str, tail: list[str]) -> list[Invocation]:
        return [
            Invocation(
                program="docker",
                args=("system", "prune", *tail),
                label="Purge docker cache and storage",
                interactive=True,
            )
        ]

    # ------------------------------------------------------------------
    # purge-db
    # ------------------------------------------------------------------

    def _purge_db(self, service: str, tail: list[str]) -> list[Invocation]:
        volume, rest = take_option(tail, "--volume", "-v")
        paths = positionals(rest)
        extra = [token for token in rest if token not in paths]
        if extra or len(paths) > 1:
            raise UnexpectedArgument(Subcommand.PURGE_DB.value, extra + paths[1:])

        if volume is not None:
            if not volume:
                raise MissingRequiredArgument("Volume name must not be empty")
            if paths:
                raise UnexpectedArgument(Subcommand.PURGE_DB.value, paths)
            remove = Invocation(
                program="docker",
                args=("volume", "rm", volume),
                label=f"Remove database volume {volume}",
            )
        else:
            folder = self.data_dir(paths[0] if paths else self.config.db_folder)
            remove = Invocation(
                program="rm",
                args=("-rf", str(folder)),
                label=f"Remove database folder {folder}",
            )

        return [
            self.compose("rm", "--stop", "--force", label="Stop all containers"),
            remove,
            self._up(),
        ]

    def data_dir(self, raw: str) -> Path:
        """Normalise a database folder and make sure it stays inside the project"""
        root = Path(os.path.abspath(self.project_dir))
        target = Path(os.path.normpath(root / raw))

        if target == root:
            raise UnsafePath(raw, "it is the project directory itself")
        if root not in target.parents:
            raise UnsafePath(raw, f"it is outside of the project directory {root}")
        if target.relative_to(root).parts[0] in PROTECTED_NAMES:
            raise UnsafePath(raw, "it is not a database data directory")
        return target

    # ------------------------------------------------------------------
    # manage.py rules
    # ------------------------------------------------------------------

    def _migrate(self, service: str, tail: list[str]) -> list[Invocation]:
        empty, rest = take_flag(tail, "--empty")
        make, rest = take_flag(rest, "--make")
        name, rest = take_option(rest, "--name", "-n")
        args = leading_positionals(rest)
        application = args[0] if args else None
        migration = args[1] if len(args) > 1 else None

        make_args = ["makemigrations"]
        if empty:
            make_args.append("--empty")
        if name is not None:
            make_args.extend(["--name", name])

        if empty:
            if application is None:
                raise MissingRequiredArgument(
                    "An application name is required for an empty migration"
                )
            make_args.append(application)
            return [
                self.manage(
                    service,
                    *make_args,
                    label=f"Create empty migration for {application}",
                    interactive=True,
                )
            ]

        steps = []
        if (make or name is not None) and migration is None:
            if application is not None:
                make_args.append(application)
            steps.append(
                self.manage(
                    service, *make_args, label="Create migrations", interactive=True
                )
            )
        steps.append(self.manage(service, "migrate", *rest, label="Apply migrations"))
        return steps

    def _show_urls(self, service: str, tail: list[str]) -> list[Invocation]:
        self._reject_tail(Subcommand.SHOW_URLS, tail)
        return [self.manage(service, "show_urls", label="Show urls")]

    def _add_app(self, service: str, tail: list[str]) -> list[Invocation]:
        if not tail or tail[0].startswith("-") or not tail[0].strip():
            raise MissingRequiredArgument("add-app requires an application name")
        name, *rest = tail
        return [self.manage(service, "startapp", name, *rest, label=f"Add app {name}")]

    def _shell_plus(self, service: str, tail: list[str]) -> list[Invocation]:
        self._reject_tail(Subcommand.SHELL_PLUS, tail)
        return [
            self.manage(service, "shell_plus", label="Open shell_plus", interactive=True)
        ]

    def _manage_py(self, service: str, tail: list[str]) -> list[Invocation]:
        if not tail:
            raise MissingRequiredArgument("manage-py requires a management command")
        return [
            self.manage(service, *tail, label=f"manage.py {tail[0]}", interactive=True)
        ]

    def _exec(self, service: str, tail: list[str]) -> list[Invocation]:
        if not tail:
            raise MissingRequiredArgument("exec requires a command to run")
        return [
            self.exec_in(service, *tail, label=f"Run {tail[0]}", interactive=True)
        ]

    def _py_test(self, service: str, tail: list[str]) -> list[Invocation]:
        return [self.exec_in(service, "pytest", *tail, label="Run tests")]

    # ------------------------------------------------------------------
    # lint
    # ------------------------------------------------------------------

    def _lint(self, service: str, tail: list[str]) -> list[Invocation]:
        if tail and tail[0] in LINT_JOBS:
            job, *rest = tail
            convention = level = None
            if job == "pydocstyle":
                convention, rest = take_option(rest, "--convention")
            elif job == "mypy":
                level, rest = take_option(rest, "--level")
            path, extra = self._lint_path(rest)
            return [
                self.lint_job(
                    service, job, path, extra, convention=convention, level=level
                )
            ]

        path, extra = self._lint_path(tail)
        if extra:
            raise UnexpectedArgument(Subcommand.LINT.value, extra)
        return [self.lint_job(service, job, path) for job in self.config.lint_jobs]

    def _lint_path(self, tail: list[str]) -> tuple[str, list[str]]:
        if tail and not tail[0].startswith("-"):
            return tail[0], tail[1:]
        return self.config.lint_path, tail

    def lint_job(
        self,
        service: str,
        job: str,
        path: str,
        extra: Sequence[str] = (),
        convention: Optional[str] = None,
        level: Optional[str] = None,
    ) -> Invocation:
        if job == "black":
            command = ["black", path]
        elif job == "flake8":
            command = ["flake8", path, "--exclude=migrations"]
        elif job == "prospector":
            command = ["prospector", path]
        elif job == "pydocstyle":
            command = [
                "pydocstyle",
                "--convention",
                convention or "numpy",
                path,
                "--match-dir=^(?!migrations).*",
            ]
        elif job == "mypy":
            command = ["mypy", path, f"--{level or 'strict'}"]
        else:
            raise InvalidArgument(f"Unknown lint job: {job}")
        return self.exec_in(service, *command, *extra, label=f"Lint with {job}")
