"""Blocking wrappers around the external tools cartage shells out to (git, tar)."""

from __future__ import annotations

import logging
import os
import subprocess
from collections.abc import Sequence

from cartage.foundation.errors import ExternalCommandError

Command = Sequence["str | os.PathLike[str]"]


def _argv(command: Command) -> list[str]:
    return [os.fspath(part) for part in command]


def run_command(
    command: Command,
    *,
    cwd: str | os.PathLike[str] | None = None,
    logger: logging.Logger | None = None,
) -> str:
    """
    Run `command` to completion with stderr folded into stdout.

    The combined output is logged at DEBUG and returned. A non-zero exit
    raises ExternalCommandError carrying the command line.
    """

    argv = _argv(command)
    if logger:
        logger.info("%s", " ".join(argv))

    try:
        completed = subprocess.run(
            argv,
            cwd=cwd,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            check=False,
        )
    except FileNotFoundError as exc:
        raise ExternalCommandError(argv) from exc

    output = completed.stdout or ""
    if logger and output:
        logger.debug("%s", output.rstrip("\n"))
    if completed.returncode != 0:
        raise ExternalCommandError(argv, completed.returncode)
    return output


def capture(command: Command, *, cwd: str | os.PathLike[str] | None = None) -> str:
    """Return the stdout of `command`; stderr passes through to the console."""

    argv = _argv(command)
    try:
        completed = subprocess.run(
            argv, cwd=cwd, stdout=subprocess.PIPE, text=True, check=False
        )
    except FileNotFoundError as exc:
        raise ExternalCommandError(argv) from exc

    if completed.returncode != 0:
        raise ExternalCommandError(argv, completed.returncode)
    return completed.stdout or ""


def capture_bytes(command: Command, *, cwd: str | os.PathLike[str] | None = None) -> bytes:
    argv = _argv(command)
    try:
        completed = subprocess.run(argv, cwd=cwd, stdout=subprocess.PIPE, check=False)
    except FileNotFoundError as exc:
        raise ExternalCommandError(argv) from exc

    if completed.returncode != 0:
        raise ExternalCommandError(argv, completed.returncode)
    return completed.stdout


def pipe_commands(
    producer: Command,
    consumer: Command,
    *,
    logger: logging.Logger | None = None,
) -> None:
    """Run `producer | consumer`, failing on the first non-zero exit status."""

    producer_argv = _argv(producer)
    consumer_argv = _argv(consumer)
    if logger:
        logger.info("%s | %s", " ".join(producer_argv), " ".join(consumer_argv))

    try:
        source = subprocess.Popen(producer_argv, stdout=subprocess.PIPE)
    except FileNotFoundError as exc:
        raise ExternalCommandError(producer_argv) from exc

    try:
        sink = subprocess.Popen(consumer_argv, stdin=source.stdout)
    except FileNotFoundError as exc:
        source.kill()
        source.wait()
        raise ExternalCommandError(consumer_argv) from exc
    finally:
        # The consumer owns the read end now.
        if source.stdout is not None:
            source.stdout.close()

    sink_status = sink.wait()
    source_status = source.wait()

    if sink_status != 0:
        raise ExternalCommandError(consumer_argv, sink_status)
    if source_status != 0:
        raise ExternalCommandError(producer_argv, source_status)
