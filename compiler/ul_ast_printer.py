"""
S-expression dump of a parsed program, as printed by `ulc --ast`.

Every node gets its own line: lists open with their head on the same line and
indent their remaining items by two spaces; closing parens trail the last item.
Each line ends with the node's source span as a `;` comment, so the dump reads
back as valid uLisp.
"""

#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2025-2026 gwz

from typing import List, Optional

from ul_ast import Span, Expr, SList, Symbol, Integer, Float, Boolean

INDENT = "  "


def _format_span(span: Optional[Span]) -> str:
    if span is None:
        return ""
    return f" ; {span.start_line}:{span.start_column}-{span.end_line}:{span.end_column}"


def format_atom(expr: Expr) -> str:
    if isinstance(expr, Symbol):
        return expr.name
    if isinstance(expr, Boolean):
        return "#t" if expr.value else "#f"
    if isinstance(expr, Integer):
        return str(expr.value)
    if isinstance(expr, Float):
        return repr(expr.value)
    if isinstance(expr, SList) and not expr.items:
        return "()"
    raise TypeError(f"not an atom: {type(expr).__name__}")


def _is_nested_list(expr: Expr) -> bool:
    return isinstance(expr, SList) and bool(expr.items)


def format_lines(expr: Expr, depth: int = 0, closing: str = "") -> List[str]:
    """
    Lines for `expr` at nesting `depth`; `closing` holds the parens of
    enclosing lists that end right after this node.
    """
    ind = INDENT * depth
    if not _is_nested_list(expr):
        return [f"{ind}{format_atom(expr)}{closing}{_format_span(expr.span)}"]

    items = list(expr.items)
    # An atom head shares the opening line; a list head gets its own lines.
    head = "" if _is_nested_list(items[0]) else format_atom(items.pop(0))
    if not items:
        return [f"{ind}({head}){closing}{_format_span(expr.span)}"]

    lines = [f"{ind}({head}{_format_span(expr.span)}"]
    for i, item in enumerate(items):
        last = i == len(items) - 1
        lines.extend(format_lines(item, depth + 1, ")" + closing if last else ""))
    return lines


def format_expr(expr: Expr) -> str:
    return "\n".join(format_lines(expr))
