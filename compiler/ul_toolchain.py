"""
External toolchain glue.

Writes generated target text to disk and runs the assembler / IR compiler and
the linker. Every invocation is blocking, without timeout or retry; any
failure raises ToolchainError and stops the build.
"""

#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2025-2026 gwz

import subprocess
from pathlib import Path
from typing import List

from ul_context import CompilationContext
from ul_errors import ToolchainError
from ul_logger import log_command, log_info, log_debug, log_error, log_warning


def write_artifact(context: CompilationContext, path: Path, text: str) -> Path:
    try:
        path.write_text(text)
    except OSError as e:
        raise ToolchainError(f"[TCH-0030] cannot write {path}: {e}") from e
    log_info(context, f"Generated target code: {path}")
    return path


def run_tool(context: CompilationContext, cmd: List[str]) -> None:
    """
    Run one external tool, raising ToolchainError if it cannot be started or
    exits with a non-zero status.
    """
    log_command(context, cmd)
    try:
        result = subprocess.run(cmd, capture_output=True, text=True)
    except FileNotFoundError as e:
        raise ToolchainError(f"[TCH-0010] '{cmd[0]}' not found: {e}", command=cmd) from e
    except OSError as e:
        raise ToolchainError(f"[TCH-0010] cannot run '{cmd[0]}': {e}", command=cmd) from e

    if result.returncode != 0:
        log_error(context, f"error: [TCH-0020] {cmd[0]} failed with exit status {result.returncode}:")
        if result.stderr:
            log_error(context, result.stderr)
        if result.stdout:
            log_error(context, result.stdout)
        raise ToolchainError(
            f"[TCH-0020] {cmd[0]} failed with exit status {result.returncode}",
            command=cmd,
            stderr=result.stderr,
        )

    if result.stderr:
        log_warning(context, result.stderr)
    log_debug(context, f"{cmd[0]} finished")


def remove_artifacts(context: CompilationContext, *paths: Path) -> None:
    for path in paths:
        if path.exists():
            log_debug(context, f"Removing {path}")
            path.unlink()
