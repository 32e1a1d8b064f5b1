"""
Compilation context for cross-cutting compiler options.

This module defines the CompilationContext dataclass which holds compiler
options that affect multiple stages of compilation (lowering, toolchain
invocation, diagnostics).
"""

#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2025-2026 gwz

import os
from dataclasses import dataclass
from enum import IntEnum
from typing import Optional


class LogLevel(IntEnum):
    """Hierarchical logging levels for the uLisp compiler."""
    SILENT = 0      # No logging
    ERROR = 3       # Error messages only
    WARNING = 6     # Warning messages (default)
    INFO = 10       # General progress messages (-v)
    DEBUG = 30      # Detailed diagnostic information (-vvv)


@dataclass
class CompilationContext:
    """
    Holds cross-cutting compiler options that affect multiple compilation stages.

    Attributes:
        keep_intermediate:      If True, keep the generated .asm/.ll file and the
                                assembler output next to the input after a build.
        assembler:              Assembler / IR compiler command override
                                (default: $ULISP_NASM or nasm, $ULISP_LLC or llc).
        linker:                 Linker command override (default: $CC or gcc).
        log_rich_format:        If True, emit logs in rich format: may include log level, timestamps, etc.
        log_level:              Current logging level.
    """
    keep_intermediate: bool = False
    assembler: Optional[str] = None
    linker: Optional[str] = None
    log_rich_format: bool = False
    log_level: LogLevel = LogLevel.WARNING

    @staticmethod
    def default() -> 'CompilationContext':
        """Create a CompilationContext with default settings."""
        return CompilationContext(log_level=LogLevel.WARNING)

    def resolve_assembler(self, env_var: str, fallback: str) -> str:
        return self.assembler or os.getenv(env_var) or fallback

    def resolve_linker(self) -> str:
        return self.linker or os.getenv("CC") or "gcc"
