from __future__ import annotations

import logging
import os
import shlex
import subprocess
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Sequence, TextIO

from ..errors import ToolFailureError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CmdResult:
    argv: list[str]
    returncode: int
    stdout: str
    stderr: str


def _fmt_argv(argv: Sequence[str]) -> str:
    return " ".join(shlex.quote(a) for a in argv)


def run_cmd(
    argv: Sequence[str],
    *,
    check: bool = True,
    env: Mapping[str, str] | None = None,
    cwd: str | None = None,
    input_text: str | None = None,
    dry_run: bool = False,
) -> CmdResult:
    """Run a command with consistent logging.

    - Always logs the command.
    - Captures stdout/stderr for the log.
    - dry_run logs but does not execute.
    - A missing executable is reported like a shell would (returncode 127).
    """

    argv_list = list(argv)
    logger.info("CMD %s", _fmt_argv(argv_list))

    if dry_run:
        return CmdResult(argv=argv_list, returncode=0, stdout="", stderr="")

    try:
        p = subprocess.run(
            argv_list,
            input=input_text,
            text=True,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            cwd=cwd,
            env=dict(os.environ, **(env or {})),
        )
    except FileNotFoundError:
        result = CmdResult(argv=argv_list, returncode=127, stdout="", stderr=f"{argv_list[0]}: command not found")
        if check:
            raise ToolFailureError(argv_list, result.returncode, result.stderr)
        return result

    if p.stdout:
        logger.debug("STDOUT %s", p.stdout.strip())
    if p.stderr:
        logger.debug("STDERR %s", p.stderr.strip())

    if check and p.returncode != 0:
        raise ToolFailureError(argv_list, p.returncode, p.stderr)

    return CmdResult(argv=argv_list, returncode=p.returncode, stdout=p.stdout, stderr=p.stderr)


def stream_cmd(
    argv: Sequence[str],
    *,
    log_path: str,
    echo: TextIO | None = None,
    dry_run: bool = False,
) -> int:
    """Run a command, appending its combined output to log_path and echoing it.

    Returns the exit status; never raises on non-zero.
    """

    argv_list = list(argv)
    logger.info("CMD %s >> %s", _fmt_argv(argv_list), log_path)
    if dry_run:
        return 0

    out = echo or sys.stdout
    Path(log_path).parent.mkdir(parents=True, exist_ok=True)
    with open(log_path, "a", encoding="utf-8") as log:
        try:
            p = subprocess.Popen(argv_list, stdout=subprocess.PIPE, stderr=subprocess.STDOUT, text=True)
        except OSError as e:
            log.write(f"{argv_list[0]}: {e}\n")
            logger.error("Could not start %s: %s", argv_list[0], e)
            return 127
        assert p.stdout is not None
        for line in p.stdout:
            out.write(line)
            log.write(line)
        return p.wait()
