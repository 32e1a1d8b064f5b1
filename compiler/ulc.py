#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2025-2026 gwz

import argparse
import subprocess
import tempfile
from pathlib import Path
from typing import Dict, List

from ul_ast_printer import format_expr
from ul_context import CompilationContext, LogLevel
from ul_driver import CompilationResult, UlispDriver
from ul_internal_error import InternalCompilerError
from ul_lexer import Lexer, LexerError, TokenKind
from ul_logger import log_info, log_error
from ul_targets import DEFAULT_BACKEND, BackendKind

DEFAULT_OUTPUT = "a.out"


def print_diagnostics(result: CompilationResult, context: CompilationContext) -> None:
    """Log every diagnostic, followed by the offending source line when it can be read."""
    sources: Dict[str, List[str]] = {}

    for diag in result.diagnostics:
        log_error(context, diag.format())
        if not diag.filename or diag.line is None:
            continue
        if diag.filename not in sources:
            try:
                sources[diag.filename] = Path(diag.filename).read_text(encoding="utf-8").splitlines()
            except OSError:
                sources[diag.filename] = []
        for line in diag.snippet(sources[diag.filename]):
            log_error(context, line)


def build_compilation_context(args: argparse.Namespace) -> CompilationContext:
    """Build a CompilationContext from command-line arguments."""
    verbosity = getattr(args, 'verbosity', 0)
    if verbosity >= 3:
        log_level = LogLevel.DEBUG
    elif verbosity >= 1:
        log_level = LogLevel.INFO
    else:
        log_level = LogLevel.ERROR

    return CompilationContext(
        keep_intermediate=getattr(args, 'keep_intermediate', False),
        assembler=getattr(args, 'assembler', None),
        linker=getattr(args, 'linker', None),
        log_rich_format=getattr(args, 'log', False),
        log_level=log_level,
    )


def cmd_build(args: argparse.Namespace) -> int:
    """Build an executable from a uLisp source file."""
    context = build_compilation_context(args)
    driver = UlispDriver(context=context)

    output = args.output or DEFAULT_OUTPUT
    try:
        result = driver.build(args.input, output, args.backend)
    except InternalCompilerError as e:
        log_error(context, e.format())
        return 1
    print_diagnostics(result, context=context)
    return 1 if result.has_errors() else 0


def cmd_run(args: argparse.Namespace) -> int:
    """Build to a temporary executable, run it and return its exit status."""
    context = build_compilation_context(args)
    with tempfile.NamedTemporaryFile(mode='w', suffix='', delete=False) as f:
        temp_exe = f.name

    try:
        driver = UlispDriver(context=context)
        result = driver.build(args.input, temp_exe, args.backend)
        print_diagnostics(result, context=context)
        if result.has_errors():
            return 1

        log_info(context, f"Running: {temp_exe}")
        run_result = subprocess.run([temp_exe])
        return run_result.returncode

    except InternalCompilerError as e:
        log_error(context, e.format())
        return 1
    # Handle Ctrl-C gracefully
    except KeyboardInterrupt:
        return 130
    finally:
        if Path(temp_exe).exists():
            Path(temp_exe).unlink()


def cmd_gen(args: argparse.Namespace) -> int:
    """Print (or write) the generated assembly / IR."""
    context = build_compilation_context(args)
    driver = UlispDriver(context=context)

    try:
        result = driver.compile(args.input, args.backend)
    except InternalCompilerError as e:
        log_error(context, e.format())
        return 1
    print_diagnostics(result, context=context)
    if result.has_errors():
        return 1

    if args.output:
        Path(args.output).write_text(result.target_text)
    else:
        print(result.target_text, end="")
    return 0


def cmd_ast(args: argparse.Namespace) -> int:
    """Pretty-print the parsed AST."""
    context = build_compilation_context(args)
    driver = UlispDriver(context=context)

    result = driver.load(args.input)
    print_diagnostics(result, context=context)
    if result.has_errors():
        return 1

    print(format_expr(result.ast))
    return 0


def cmd_tok(args: argparse.Namespace) -> int:
    """Dump lexer tokens."""
    context = build_compilation_context(args)
    path = Path(args.input)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        log_error(context, f"error: [ULC-0010] cannot read {path}: {e}")
        return 1

    try:
        tokens = Lexer(text, filename=str(path)).tokenize()
    except LexerError as e:
        log_error(context, f"{e.filename}:{e.line}:{e.column}: error: syntax: {e.message}")
        return 1

    for tok in tokens:
        if tok.kind is TokenKind.EOF:
            continue
        # Format: file:line:col: KIND  'text'
        print(f"{path}:{tok.line}:{tok.column}:\t{tok.kind.name:<8} {tok.text!r}")
    return 0


def main(argv=None) -> None:
    parser = argparse.ArgumentParser(prog="ulc", description="uLisp compiler")

    parser.add_argument("input", help="uLisp source file")
    parser.add_argument("-o", "--output",
                        help=f"Output path (default: {DEFAULT_OUTPUT}; with --gen: stdout)")
    parser.add_argument("-b", "--backend",
                        default=DEFAULT_BACKEND,
                        help=f"Code generation target: {', '.join(k.value for k in BackendKind)} "
                             f"(default: {DEFAULT_BACKEND})")
    parser.add_argument("-v", "--verbose",
                        action='count',
                        default=0,
                        dest='verbosity',
                        help="Increase verbosity: -v=INFO, -vvv=DEBUG")
    parser.add_argument("-l", "--log",
                        action='store_true',
                        default=False,
                        help="Enable rich log formatting (timestamps, levels)")
    parser.add_argument("--keep-intermediate",
                        action="store_true",
                        help="Keep the generated .asm/.ll file and the assembler output next to the input")
    parser.add_argument("--assembler",
                        help="Assembler / IR compiler to use (default: $ULISP_NASM or nasm, $ULISP_LLC or llc)")
    parser.add_argument("--linker",
                        help="Linker to use (default: $CC or gcc)")

    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--run", "-r", dest="mode", action="store_const", const="run",
                      help="Build and run, exiting with the program's exit status")
    mode.add_argument("--gen", "-S", dest="mode", action="store_const", const="gen",
                      help="Emit the generated assembly / IR instead of building")
    mode.add_argument("--ast", dest="mode", action="store_const", const="ast",
                      help="Pretty-print the parsed AST")
    mode.add_argument("--tok", dest="mode", action="store_const", const="tok",
                      help="Dump lexer tokens")
    parser.set_defaults(mode="build")

    args = parser.parse_args(argv)

    handlers = {
        "build": cmd_build,
        "run": cmd_run,
        "gen": cmd_gen,
        "ast": cmd_ast,
        "tok": cmd_tok,
    }
    rc = handlers[args.mode](args)
    raise SystemExit(rc)


if __name__ == "__main__":
    main()
