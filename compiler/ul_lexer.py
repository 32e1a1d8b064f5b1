#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2025-2026 gwz

from dataclasses import dataclass
from enum import Enum, auto
from typing import List


# ==========================
# Tokens and lexer
# ==========================

class TokenKind(Enum):
    # Special
    EOF = auto()

    LPAREN = auto()  # (
    RPAREN = auto()  # )
    ATOM = auto()  # anything else up to whitespace, a paren or a comment


# Characters that end an atom.
DELIMITERS = "();"


@dataclass
class Token:
    kind: TokenKind
    text: str
    line: int
    column: int

    def __repr__(self) -> str:
        return f"{self.text!r}" if self.kind != TokenKind.EOF else "end-of-file"


@dataclass
class LexerError(Exception):
    message: str
    filename: str
    line: int
    column: int


class Lexer:
    def __init__(self, source: str, filename: str = "<input>") -> None:
        self.source = source
        self.filename = filename
        self.length = len(source)
        self.index = 0
        self.line = 1
        self.column = 1

    @classmethod
    def from_source(cls, source: str) -> "Lexer":
        return cls(source)

    # --- low-level char utilities ---

    def _at_end(self) -> bool:
        return self.index >= self.length

    def _peek(self) -> str:
        if self._at_end():
            return "\0"
        return self.source[self.index]

    def _advance(self) -> str:
        c = self._peek()
        if not self._at_end():
            self.index += 1
            if c == "\n":
                self.line += 1
                self.column = 1
            else:
                self.column += 1
        return c

    def _error(self, message: str, line: int, column: int) -> LexerError:
        return LexerError(message, self.filename, line, column)

    # --- main API ---

    def tokenize(self) -> List[Token]:
        tokens: List[Token] = []
        while True:
            tok = self._next_token()
            tokens.append(tok)
            if tok.kind is TokenKind.EOF:
                break
        return tokens

    def _next_token(self) -> Token:
        self._skip_ws_and_comments()
        start_line, start_col = self.line, self.column

        if self._at_end():
            return Token(TokenKind.EOF, "", start_line, start_col)

        c = self._advance()

        if c == "(":
            return Token(TokenKind.LPAREN, c, start_line, start_col)
        if c == ")":
            return Token(TokenKind.RPAREN, c, start_line, start_col)
        if c == '"':
            raise self._error("[LEX-0010] string literals are not supported", start_line, start_col)
        if c == "'":
            raise self._error("[LEX-0020] quoted forms are not supported", start_line, start_col)

        text = [c]
        while not self._at_end() and not self._peek().isspace() and self._peek() not in DELIMITERS:
            nxt = self._peek()
            if nxt in "\"'":
                raise self._error(f"[LEX-0030] unexpected character {nxt!r} in atom", self.line, self.column)
            text.append(self._advance())
        return Token(TokenKind.ATOM, "".join(text), start_line, start_col)

    def _skip_ws_and_comments(self) -> None:
        while not self._at_end():
            c = self._peek()
            if c.isspace():
                self._advance()
            elif c == ";":
                # line comment
                while not self._at_end() and self._peek() != "\n":
                    self._advance()
            else:
                break
