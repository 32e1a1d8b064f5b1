#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2025-2026 gwz

import re
from dataclasses import dataclass
from typing import List, Optional

from ul_ast import Span, Expr, SList, Symbol, Integer, Float, Boolean
from ul_errors import ResourceExhaustedError
from ul_lexer import TokenKind, Token, Lexer

INT32_MIN = -(2 ** 31)
INT32_MAX = 2 ** 31 - 1

_INT_RE = re.compile(r"[+-]?\d+\Z")
_FLOAT_RE = re.compile(r"[+-]?(\d+\.\d*|\.\d+|\d+)([eE][+-]?\d+)?\Z")
_BOOLEANS = {"#t": True, "#f": False}


# ==========================
# Parser
# ==========================

@dataclass
class ParseError(Exception):
    message: str
    token: Optional[Token] = None
    filename: Optional[str] = None


class Parser:
    """
    S-expression reader.

    `parse_program` returns exactly one root, always a `module` form: a source
    file holding a single `(module ...)` yields it unchanged, anything else is
    wrapped in a synthetic `(module ...)`.
    """

    def __init__(self, tokens: List[Token], filename: Optional[str] = None) -> None:
        self.tokens = tokens
        self.index = 0
        self.filename = filename

    @classmethod
    def from_source(cls, source: str, filename: Optional[str] = None) -> "Parser":
        lexer = Lexer(source, filename=filename or "<input>")
        return cls(lexer.tokenize(), filename=filename)

    # --- token utilities ---

    def _peek(self) -> Token:
        return self.tokens[self.index]

    def _last(self) -> Token:
        return self.tokens[self.index - 1 if self.index > 0 else 0]

    def _at_end(self) -> bool:
        return self._peek().kind is TokenKind.EOF

    def _advance(self) -> Token:
        tok = self._peek()
        if not self._at_end():
            self.index += 1
        return tok

    def _check(self, kind: TokenKind) -> bool:
        return self._peek().kind is kind

    def _span_start(self) -> Span:
        here = self._peek()
        return Span(here.line, here.column, here.line, here.column)

    def _extend_span(self, start: Span) -> Span:
        here = self._last()
        return Span(
            start.start_line,
            start.start_column,
            here.line,
            here.column + len(here.text),
        )

    # --- grammar ---

    def parse_program(self) -> SList:
        forms: List[Expr] = []
        while not self._at_end():
            start = self._peek()
            try:
                forms.append(self.parse_expr())
            except RecursionError as e:
                raise ResourceExhaustedError(
                    "[GEN-0090] expression nesting too deep to read",
                    span=Span(start.line, start.column, start.line, start.column + 1),
                    filename=self.filename,
                ) from e
        if not forms:
            raise ParseError("[PAR-0010] empty program: expected a '(module ...)' form", self._peek(), self.filename)

        if len(forms) == 1 and _is_module_form(forms[0]):
            return forms[0]

        first, last = forms[0].span, forms[-1].span
        span = None
        if first is not None and last is not None:
            span = Span(first.start_line, first.start_column, last.end_line, last.end_column)
        return SList([Symbol("module", span=span)] + forms, span=span)

    def parse_expr(self) -> Expr:
        tok = self._peek()
        if tok.kind is TokenKind.EOF:
            raise ParseError("[PAR-0020] unexpected end of input", tok, self.filename)
        if tok.kind is TokenKind.RPAREN:
            raise ParseError("[PAR-0030] unexpected ')'", tok, self.filename)
        if tok.kind is TokenKind.LPAREN:
            return self._parse_list()
        self._advance()
        return self._parse_atom(tok)

    def _parse_list(self) -> SList:
        start = self._span_start()
        open_tok = self._advance()
        items: List[Expr] = []
        while not self._check(TokenKind.RPAREN):
            if self._at_end():
                raise ParseError("[PAR-0040] unclosed '(': expected ')'", open_tok, self.filename)
            items.append(self.parse_expr())
        self._advance()
        return SList(items, span=self._extend_span(start))

    def _parse_atom(self, tok: Token) -> Expr:
        span = Span(tok.line, tok.column, tok.line, tok.column + len(tok.text))
        text = tok.text

        if _INT_RE.match(text):
            value = int(text)
            if not (INT32_MIN <= value <= INT32_MAX):
                raise ParseError(
                    f"[PAR-0050] integer literal {text} exceeds 32-bit signed range", tok, self.filename
                )
            return Integer(value, span=span)
        if _FLOAT_RE.match(text):
            return Float(float(text), span=span)
        if text in _BOOLEANS:
            return Boolean(_BOOLEANS[text], span=span)
        return Symbol(text, span=span)


def _is_module_form(expr: Expr) -> bool:
    return isinstance(expr, SList) and isinstance(expr.head, Symbol) and expr.head.name == "module"


def parse(source: str, filename: Optional[str] = None) -> SList:
    """Read a whole program into its `module` root."""
    return Parser.from_source(source, filename=filename).parse_program()
