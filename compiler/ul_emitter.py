"""
Target text buffer.

Append-only, indentation-aware output owned by exactly one Backend. Knows
nothing about the target syntax beyond the comment marker, which happens to
be `;` for both NASM and LLVM IR.
"""

#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2025-2026 gwz

from dataclasses import dataclass, field
from typing import List

from ul_internal_error import InternalCompilerError


@dataclass
class CodeBuilder:
    """
    Helper for building target code with indentation tracking.
    """
    lines: List[str] = field(default_factory=list)
    indent_level: int = 0
    indent_str: str = "\t"
    comment_str: str = ";"

    def indent(self) -> None:
        self.indent_level += 1

    def dedent(self) -> None:
        if self.indent_level <= 0:
            raise InternalCompilerError("[ICE-1010] dedent below zero")
        self.indent_level -= 1

    def emit(self, line: str = "") -> None:
        """Emit a line with current indentation."""
        if line:
            self.lines.append(self.indent_str * self.indent_level + line)
        else:
            self.lines.append("")

    def emit_raw(self, line: str) -> None:
        """Emit a line without indentation."""
        self.lines.append(line)

    def emit_comment(self, text: str = "") -> None:
        self.emit_raw(f"{self.comment_str} {text}".rstrip())

    def to_string(self) -> str:
        return "\n".join(self.lines) + "\n"
