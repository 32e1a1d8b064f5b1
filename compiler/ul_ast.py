#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2025-2026 gwz

from dataclasses import dataclass, field
from typing import List, Optional


# ==========================
# AST definitions
# ==========================


@dataclass
class Span:
    start_line: int
    start_column: int
    end_line: int
    end_column: int


@dataclass
class Node:
    span: Optional[Span] = field(default=None, repr=False, compare=False, kw_only=True)


class Expr(Node):
    pass


@dataclass
class SList(Expr):
    """A parenthesized form: call, primitive invocation, `def` or `module`."""
    items: List[Expr]

    @property
    def head(self) -> Optional[Expr]:
        return self.items[0] if self.items else None

    @property
    def args(self) -> List[Expr]:
        return self.items[1:]


# --- atoms ---

@dataclass
class Symbol(Expr):
    name: str


@dataclass
class Integer(Expr):
    value: int  # 32-bit signed


@dataclass
class Float(Expr):
    value: float


@dataclass
class Boolean(Expr):
    value: bool


def describe(expr: Expr) -> str:
    """Short human-readable name of an expression kind, for messages."""
    if isinstance(expr, SList):
        return "list"
    if isinstance(expr, Symbol):
        return f"symbol '{expr.name}'"
    if isinstance(expr, Integer):
        return f"integer {expr.value}"
    if isinstance(expr, Float):
        return f"float {expr.value}"
    if isinstance(expr, Boolean):
        return "boolean"
    return type(expr).__name__
