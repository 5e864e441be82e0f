#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Workflow executor: runs an invocation plan one command at a time.
"""

import contextlib
import os
import signal
import subprocess
import sys
import threading
from pathlib import Path
from typing import Iterator, Optional

from pydantic import BaseModel, Field
from rich.console import Console
from rich.markup import escape

from .errors import CommandFailedError
from .plan import Invocation, InvocationPlan

# Rich Console for beautiful output
console = Console()

EXIT_INTERRUPTED = 130
EXIT_NOT_FOUND = 127


class StepResult(BaseModel):
    invocation: Invocation
    exit_code: int
    output: str = ""


class PlanResult(BaseModel):
    """Outcome of a plan run"""

    exit_code: int = 0
    steps: list[StepResult] = Field(default_factory=list)
    failed: Optional[Invocation] = None
    interrupted: bool = False

    @property
    def ok(self) -> bool:
        return self.failed is None and not self.interrupted


@contextlib.contextmanager
def _sigint_ignored() -> Iterator[None]:
    """Let only the foreground child react to Ctrl+C"""
    if threading.current_thread() is not threading.main_thread():
        yield
        return
    previous = signal.signal(signal.SIGINT, signal.SIG_IGN)
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, previous)


def _default_sigint():
    # Ignored dispositions survive exec, the child must get Ctrl+C back
    signal.signal(signal.SIGINT, signal.SIG_DFL)


class WorkflowExecutor:
    """Runs invocations sequentially in the project directory"""

    def __init__(self, cwd: Path, dry_run: bool = False):
        self.cwd = cwd
        self.dry_run = dry_run

    def execute(self, plan: InvocationPlan) -> PlanResult:
        """Run every step, stopping at the first failure that is not best-effort"""
        result = PlanResult()

        for invocation in plan.steps:
            step = self.run(invocation)
            result.steps.append(step)
            result.exit_code = step.exit_code

            if step.exit_code == EXIT_INTERRUPTED:
                result.interrupted = True
                console.print("[yellow]Remaining steps skipped[/yellow]")
                break

            if step.exit_code == 0:
                continue

            if invocation.best_effort:
                console.print(
                    f"[yellow]{escape(self._describe(invocation))} failed "
                    f"with exit code {step.exit_code}, continuing[/yellow]"
                )
                continue

            result.failed = invocation
            console.print(
                f"[red]✗ {escape(self._describe(invocation))} failed "
                f"with exit code {step.exit_code}[/red]"
            )
            break

        return result

    def run(self, invocation: Invocation) -> StepResult:
        """Run a single invocation and return its exit status"""
        console.print(f"\n[dim]Running: {escape(invocation.display())}[/dim]\n")

        if self.dry_run:
            return StepResult(invocation=invocation, exit_code=0)

        try:
            if invocation.interactive:
                return self._run_attached(invocation)
            return self._run_streamed(invocation)
        except FileNotFoundError:
            console.print(
                f"[red]Error: {escape(invocation.program)} not found[/red]"
            )
            return StepResult(invocation=invocation, exit_code=EXIT_NOT_FOUND)

    def run_checked(self, invocation: Invocation) -> StepResult:
        step = self.run(invocation)
        if step.exit_code != 0:
            raise CommandFailedError(invocation.display(), step.exit_code)
        return step

    def _run_attached(self, invocation: Invocation) -> StepResult:
        with _sigint_ignored():
            completed = subprocess.run(
                invocation.argv,
                cwd=self.cwd,
                preexec_fn=_default_sigint if os.name == "posix" else None,
            )

        exit_code = completed.returncode
        if exit_code == -signal.SIGINT:
            exit_code = EXIT_INTERRUPTED
        elif exit_code < 0:
            exit_code = 128 - exit_code
        return StepResult(invocation=invocation, exit_code=exit_code)

    def _run_streamed(self, invocation: Invocation) -> StepResult:
        lines: list[str] = []
        process = subprocess.Popen(
            invocation.argv,
            cwd=self.cwd,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            errors="replace",
            preexec_fn=_default_sigint if os.name == "posix" else None,
        )
        try:
            for line in process.stdout or ():
                lines.append(line)
                sys.stdout.write(line)
                sys.stdout.flush()
            exit_code = process.wait()
        except KeyboardInterrupt:
            process.terminate()
            try:
                process.wait(timeout=5)
            except subprocess.TimeoutExpired:
                process.kill()
                process.wait()
            console.print("\n[yellow]Interrupted by user[/yellow]")
            exit_code = EXIT_INTERRUPTED
        finally:
            if process.stdout is not None:
                process.stdout.close()

        if exit_code < 0:
            exit_code = 128 - exit_code
        return StepResult(invocation=invocation, exit_code=exit_code, output="".join(lines))

    @staticmethod
    def _describe(invocation: Invocation) -> str:
        return invocation.label or invocation.display()
