"""
Compiler log output.

Every message goes to stderr; stdout is reserved for what a command prints on
purpose (`--gen` text, `--ast` and `--tok` dumps). A message is shown only when
the context's level admits it. With `log_rich_format` each line carries a
timestamp and its level tag.
"""

#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2025-2026 gwz

import shlex
import sys
import time
from typing import List, Optional

from ul_context import CompilationContext, LogLevel

_LEVEL_TAGS = {
    LogLevel.ERROR: "ERROR",
    LogLevel.WARNING: "WARNING",
    LogLevel.INFO: "INFO",
    LogLevel.DEBUG: "DEBUG",
}


def _prefix(context: CompilationContext, level: LogLevel) -> str:
    if not context.log_rich_format:
        return ""
    timestamp = time.strftime("%Y-%m-%d %H:%M:%S", time.localtime())
    return f"{timestamp} [{_LEVEL_TAGS[level]}] "


def log(context: Optional[CompilationContext], level: LogLevel, message: str) -> None:
    """
    Write `message` to stderr at `level`.

    Without a context there is nothing to filter on, so the message is always
    written, untagged.
    """
    if context is None:
        print(message, file=sys.stderr)
        return
    if level > context.log_level:
        return
    print(f"{_prefix(context, level)}{message}", file=sys.stderr)


def log_error(context: CompilationContext, message: str) -> None:
    """Diagnostics and tool failures; shown at every verbosity."""
    log(context, LogLevel.ERROR, message)


def log_warning(context: CompilationContext, message: str) -> None:
    log(context, LogLevel.WARNING, message)


def log_info(context: CompilationContext, message: str) -> None:
    """Progress of the pipeline (`-v`)."""
    log(context, LogLevel.INFO, message)


def log_debug(context: CompilationContext, message: str) -> None:
    log(context, LogLevel.DEBUG, message)


def log_stage(context: CompilationContext, stage: str, target: Optional[str] = None) -> None:
    """Announce a pipeline stage, e.g. `Parsing 'prog.ul'` or `Linking...`."""
    if target:
        log_info(context, f"{stage} '{target}'")
    else:
        log_info(context, f"{stage}...")


def log_command(context: CompilationContext, cmd: List[str]) -> None:
    """Echo an external command line, quoted so it can be pasted into a shell."""
    log_info(context, f"Running: {shlex.join(cmd)}")
