#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2025-2026 gwz

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from ul_ast import SList
from ul_backend import Backend
from ul_context import CompilationContext
from ul_diagnostics import Diagnostic, diag_from_error
from ul_errors import CompileError
from ul_internal_error import InternalCompilerError
from ul_lexer import Lexer, LexerError
from ul_logger import log_debug, log_info, log_stage
from ul_parser import Parser, ParseError
from ul_targets import DEFAULT_BACKEND, create_backend


@dataclass
class CompilationResult:
    """
    Outcome of one driver run.

    On failure every product after the failing stage is None and
    `diagnostics` holds exactly one error.
    """
    filename: str
    backend: Optional[str] = None
    ast: Optional[SList] = None
    target_text: Optional[str] = None
    executable: Optional[Path] = None
    diagnostics: List[Diagnostic] = field(default_factory=list)

    def has_errors(self) -> bool:
        return any(d.kind == "error" for d in self.diagnostics)


class UlispDriver:
    """
    Pipeline:
      - read file
      - tokenize and parse into one `module` root
      - lower with the selected backend
      - assemble and link

    Entry points:
      - load(path): read + parse only.
      - compile(path, backend): up to the generated target text.
      - build(path, output, backend): up to the native executable.
    """

    def __init__(self, context: CompilationContext | None = None):
        self.context = context or CompilationContext.default()

    # --- Public API ---

    def load(self, path: str | Path) -> CompilationResult:
        result = CompilationResult(filename=str(path))
        try:
            result.ast = self._load_single_file(path)
        except (CompileError, LexerError, ParseError) as e:
            result.diagnostics.append(diag_from_error(e, str(path)))
        except FileNotFoundError as e:
            result.diagnostics.append(Diagnostic(kind="error", message=f"file: [DRV-0010] {e}"))
        except OSError as e:
            result.diagnostics.append(Diagnostic(kind="error", message=f"file: [DRV-0020] {e}"))
        return result

    def compile(self, path: str | Path, backend_name: str = DEFAULT_BACKEND) -> CompilationResult:
        backend, result = self._select_backend(path, backend_name)
        if backend is None:
            return result
        self._lower(path, backend, result)
        return result

    def build(
            self,
            path: str | Path,
            output: str | Path = "a.out",
            backend_name: str = DEFAULT_BACKEND,
    ) -> CompilationResult:
        backend, result = self._select_backend(path, backend_name)
        if backend is None:
            return result
        self._lower(path, backend, result)
        if result.has_errors():
            return result

        input_base = str(Path(path).with_suffix(""))
        try:
            result.executable = backend.build(result.target_text, input_base, str(output), source_path=str(path))
        except CompileError as e:
            result.diagnostics.append(diag_from_error(e))
        return result

    # --- Internal helpers ---

    def _select_backend(self, path: str | Path, backend_name: str) -> tuple[Optional[Backend], CompilationResult]:
        result = CompilationResult(filename=str(path), backend=backend_name)
        try:
            backend = create_backend(backend_name, self.context)
        except CompileError as e:
            result.diagnostics.append(diag_from_error(e))
            return None, result
        log_debug(self.context, f"Selected backend '{backend.name}'")
        return backend, result

    def _lower(self, path: str | Path, backend: Backend, result: CompilationResult) -> None:
        loaded = self.load(path)
        result.ast = loaded.ast
        result.diagnostics.extend(loaded.diagnostics)
        if result.has_errors():
            return
        try:
            result.target_text = backend.compile(result.ast)
        except CompileError as e:
            result.diagnostics.append(diag_from_error(e, str(path)))
        except InternalCompilerError as e:
            raise e.in_file(str(path)) from e

    def _load_single_file(self, path: str | Path) -> SList:
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"uLisp source file not found: {path}")

        log_stage(self.context, "Reading", str(path))
        text = path.read_text(encoding="utf-8")
        return self.parse_source(text, file_path=str(path))

    def parse_source(self, text: str, file_path: str = "<input>") -> SList:
        log_debug(self.context, f"Lexing {file_path}")
        lexer = Lexer(text, filename=file_path)
        tokens = lexer.tokenize()
        log_debug(self.context, f"Lexed {len(tokens)} token(s) from {file_path}")

        log_stage(self.context, "Parsing", file_path)
        parser = Parser(tokens, filename=file_path)
        root = parser.parse_program()
        log_info(self.context, f"Parsed {len(root.args)} top-level form(s) from {file_path}")
        return root
