#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2025-2026 gwz

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Optional

from ul_ast import Span

_FALLBACK_CODE = "[ICE-9999]"


@dataclass(frozen=True)
class ICELocation:
    filename: Optional[str] = None
    span: Optional[Span] = None

    def prefix(self) -> str:
        if not self.filename:
            return ""
        if self.span is None:
            return f"{self.filename}: "
        return f"{self.filename}:{self.span.start_line}:{self.span.start_column}: "


class InternalCompilerError(RuntimeError):
    """
    A violated backend invariant: emitter misuse, a reused backend instance,
    an AST node of unknown kind. User mistakes are CompileErrors, never ICEs.
    """

    def __init__(self, message: str, loc: ICELocation | None = None):
        super().__init__(message)
        self.message = message
        self.loc = loc or ICELocation()

    def in_file(self, filename: str) -> InternalCompilerError:
        """Same error, attributed to `filename` (the backend does not know it)."""
        return InternalCompilerError(self.message, replace(self.loc, filename=filename))

    def format(self) -> str:
        message = self.message if "[ICE-" in self.message else f"{_FALLBACK_CODE} {self.message}"
        return f"{self.loc.prefix()}internal compiler error: {message}"
