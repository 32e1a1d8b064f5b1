"""
Compile-time error taxonomy.

Every error aborts the compilation at the point of detection: there is no
recovery and no aggregation. The driver turns the first one into a
Diagnostic and no executable is produced.

Codes:
    GEN-0010  list form does not start with a symbol
    GEN-0011  malformed `def` (arity)
    GEN-0012  malformed `def` (name or parameter list)
    GEN-0013  malformed `def` (parameter is not a symbol)
    GEN-0014  arithmetic primitive arity
    GEN-0015  call arity does not match the function definition, or `main` takes parameters
    GEN-0016  program root is not a `module` form
    GEN-0017  module defines no `main`
    GEN-0018  `def` or `module` used below the top level
    GEN-0019  `def` of a primitive name
    GEN-0020  undefined variable
    GEN-0021  undefined function
    GEN-0022  function name used as a value
    GEN-0030  unsupported literal kind
    GEN-0040  register capacity exceeded (x86)
    GEN-0090  expression nesting too deep to read or lower
    TCH-0010  external tool not found
    TCH-0020  external tool failed
    TCH-0030  cannot write intermediate file
    TCH-0040  intermediate file would overwrite the source or the executable
    DRV-0040  unknown backend
"""

#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2025-2026 gwz

from __future__ import annotations

from typing import Optional

from ul_ast import Node, Span


class CompileError(Exception):
    """Base class for user-facing compilation failures."""

    kind = "error"

    def __init__(self, message: str, span: Optional[Span] = None, filename: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.span = span
        self.filename = filename

    @classmethod
    def at(cls, message: str, node: Optional[Node]) -> "CompileError":
        return cls(message, span=getattr(node, "span", None))

    def format(self) -> str:
        loc = ""
        if self.filename is not None:
            loc = self.filename
            if self.span is not None:
                loc += f":{self.span.start_line}:{self.span.start_column}"
            loc += ": "
        return f"{loc}{self.kind}: {self.message}"


class StructuralError(CompileError):
    """Malformed `def`/`module`/call shape or arity."""
    pass


class UndefinedReferenceError(CompileError):
    """A symbol or function name is not bound in scope at its point of use."""
    pass


class UnsupportedLiteralError(CompileError):
    """A float or boolean literal reached lowering."""
    pass


class ResourceExhaustedError(CompileError):
    """The expression tree is nested too deeply to lower."""
    pass


class ToolchainError(CompileError):
    """An external assembler/compiler/linker could not run or failed."""

    def __init__(self, message: str, command: Optional[list] = None, stderr: str = ""):
        super().__init__(message)
        self.command = command
        self.stderr = stderr


class BackendSelectionError(CompileError, ValueError):
    """Unknown backend name."""
    pass
