#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2025-2026 gwz

import os
from dataclasses import dataclass
from typing import List, Optional

from ul_errors import CompileError
from ul_lexer import LexerError
from ul_parser import ParseError


@dataclass
class Diagnostic:
    kind: str  # "error" or "warning"
    message: str
    filename: Optional[str] = None  # file path

    # Primary location (start of the span)
    line: Optional[int] = None
    column: Optional[int] = None

    # Optional end of span (exclusive)
    end_line: Optional[int] = None
    end_column: Optional[int] = None

    # Return the one-line header; snippets will be printed at the call site
    def format(self) -> str:
        loc = ""
        if self.filename is not None:
            loc += f"{os.path.abspath(str(self.filename))}"
        if self.line is not None:
            loc += f":{self.line}"
            if self.column is not None:
                loc += f":{self.column}"
        if loc:
            loc += ": "
        return f"{loc}{self.kind}: {self.message}"

    def snippet(self, source_lines: List[str]) -> List[str]:
        """
        Render the primary line as `N | text` plus a caret underline of the
        span. Returns nothing when the line is not in `source_lines`.

        A span reaching past its first line is underlined to the end of it.
        """
        if self.line is None or not (1 <= self.line <= len(source_lines)):
            return []

        text = source_lines[self.line - 1]
        width = max(5, len(str(self.line)))
        rendered = [f"{self.line:>{width}} | {text}"]
        if self.column is None:
            return rendered

        start = max(1, self.column)
        if self.end_line is None or self.end_column is None:
            end = start
        elif self.end_line == self.line:
            end = max(start, self.end_column)
        else:
            end = len(text) + 1
        carets = "^" * max(1, end - start)
        rendered.append(" " * width + " | " + " " * (start - 1) + carets)
        return rendered


def diag_from_error(err: Exception, filename: Optional[str] = None) -> Diagnostic:
    """
    Build a Diagnostic from the first (and only) error of a failed compilation.
    """
    if isinstance(err, LexerError):
        return Diagnostic(
            kind="error",
            message=f"syntax: {err.message}",
            filename=err.filename,
            line=err.line,
            column=err.column,
        )

    if isinstance(err, ParseError):
        line = column = None
        if err.token is not None:
            line, column = err.token.line, err.token.column
        return Diagnostic(
            kind="error",
            message=f"syntax: {err.message}",
            filename=err.filename or filename,
            line=line,
            column=column,
        )

    if isinstance(err, CompileError):
        line = column = end_line = end_column = None
        if err.span is not None:
            line = err.span.start_line
            column = err.span.start_column
            end_line = err.span.end_line
            end_column = err.span.end_column
        return Diagnostic(
            kind=err.kind,
            message=err.message,
            filename=err.filename or filename,
            line=line,
            column=column,
            end_line=end_line,
            end_column=end_column,
        )

    return Diagnostic(kind="error", message=str(err), filename=filename)
