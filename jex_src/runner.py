#!/usr/bin/env python3
# -*- coding: utf-8 -*-
#
# Copyright (c) 2026 plumiume
# SPDX-License-Identifier: MIT
# License: MIT License (https://opensource.org/licenses/MIT)
# See LICENSE.txt for details.

"""
Log file setup and external command execution.
"""

import logging
import re
import shlex
import subprocess
from pathlib import Path
from typing import NoReturn, Sequence

import typer
from rich.console import Console
from rich.markup import escape

console = Console(soft_wrap=True)
err_console = Console(stderr=True, soft_wrap=True)

logger = logging.getLogger("jex_src")

LOG_FORMAT = "[%(asctime)s] [%(levelname)s] %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_AFFIRMATIVE = re.compile(r"^[Yy]$")


class JexLogFormatter(logging.Formatter):
    """Formatter that writes WARNING as WARN"""

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        if record.levelno == logging.WARNING:
            line = line.replace("[WARNING]", "[WARN]", 1)
        return line


def setup_logging(log_path: Path) -> logging.Logger:
    """Attach an append-mode file handler to the jex logger.

    Any handler from a previous call is closed and replaced.
    """
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    log_path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(log_path, mode="a", encoding="utf-8")
    handler.setFormatter(JexLogFormatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)
    logger.propagate = False
    return logger


def format_command(cmd: Sequence[str]) -> str:
    return shlex.join(cmd)


def error_exit(message: str) -> NoReturn:
    """Log the message, print it to stderr and exit with status 1"""
    logger.error(message)
    err_console.print(f"[red]ERROR: {escape(message)}[/red]", highlight=False)
    raise typer.Exit(1)


def confirm(question: str, assume_yes: bool = False) -> bool:
    """Ask a yes/no question; only a single 'y' or 'Y' counts as yes"""
    if assume_yes:
        return True
    console.print(f"[yellow]{question} (y/n)[/yellow]")
    try:
        answer = console.input()
    except EOFError:
        return False
    return bool(_AFFIRMATIVE.match(answer.strip()))


# ============================================================================
# Command Runner
# ============================================================================


class CommandRunner:
    """Runs external commands and records each one in the log file"""

    def run(
        self,
        cmd: Sequence[str],
        quiet: bool = False,
        stream: bool = False,
    ) -> subprocess.CompletedProcess[str]:
        """Run one command given as an argument vector.

        With ``stream`` the child inherits the terminal (used for the
        foreground server); otherwise stdout and stderr are captured together.
        Failures are reported but never raised; callers inspect returncode.
        """
        cmd = list(cmd)
        cmd_str = format_command(cmd)

        if not quiet:
            console.print(f"[yellow]> {escape(cmd_str)}[/yellow]", highlight=False)
        logger.info(f"Executing command: {cmd_str}")

        try:
            if stream:
                result = subprocess.run(cmd)
                result = subprocess.CompletedProcess(cmd, result.returncode, "", None)
            else:
                result = subprocess.run(
                    cmd,
                    stdout=subprocess.PIPE,
                    stderr=subprocess.STDOUT,
                    text=True,
                )
        except KeyboardInterrupt:
            console.print("\n[yellow]Interrupted by user[/yellow]")
            logger.warning(f"Interrupted by user: {cmd_str}")
            return subprocess.CompletedProcess(cmd, 130, "", None)
        except FileNotFoundError as e:
            result = subprocess.CompletedProcess(cmd, 127, f"{e}\n", None)

        output = result.stdout or ""
        if result.returncode == 0:
            if output.strip() and not quiet:
                console.print(output.rstrip("\n"), markup=False, highlight=False)
            return result

        logger.error(f"Command failed with exit code {result.returncode}: {cmd_str}")
        if not quiet:
            err_console.print(
                f"[red]Command failed with exit code {result.returncode}[/red]"
            )
            if output.strip():
                err_console.print(output.rstrip("\n"), markup=False, highlight=False)
        return result

    def run_all(
        self, cmds: Sequence[Sequence[str]], quiet: bool = False
    ) -> subprocess.CompletedProcess[str]:
        """Run commands in order, stopping at the first failure"""
        result = subprocess.CompletedProcess([], 0, "", None)
        for cmd in cmds:
            result = self.run(cmd, quiet=quiet)
            if result.returncode != 0:
                break
        return result
