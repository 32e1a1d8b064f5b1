"""
uLisp Code Generation Backend

Shared lowering skeleton for every target.

The backend walks the AST in destination-passing style: every lowering method
takes the location where the value of the current expression must end up
(`destination`, or None when the value is discarded) and returns nothing.
Targets plug in by implementing the small set of `emit_*` hooks below; the
walk, call dispatch, primitive dispatch, shape checks and the `def`/`module`
protocol live here.

Responsibilities:
- Split and validate list forms (`def`, `module`, calls, arithmetic)
- Resolve names through the Scope and fork it per function body
- Dispatch primitives (`def`, `module`, `+`, `-`, `*`) on their raw arguments
- Track user function arities
- Drive the external toolchain for `build`
"""

#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2025-2026 gwz

from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Dict, List, Mapping, NoReturn, Optional, Tuple

from ul_ast import Expr, SList, Symbol, Integer, Float, Boolean, describe
from ul_context import CompilationContext
from ul_emitter import CodeBuilder
from ul_errors import (
    StructuralError, UndefinedReferenceError, UnsupportedLiteralError, ResourceExhaustedError, ToolchainError,
)
from ul_internal_error import InternalCompilerError, ICELocation
from ul_logger import log_debug, log_info, log_stage
from ul_scope import Scope
from ul_toolchain import write_artifact, run_tool, remove_artifacts

# Name of the user entry function in source code, and the target name it is
# renamed to so that it cannot clash with the toolchain's own `main`.
USER_ENTRY = "main"
ENTRY_TARGET = "program_main"


class Primitive(Enum):
    """Operators lowered directly by the backend instead of as calls."""
    DEFINE = "def"
    MODULE = "module"
    ADD = "+"
    SUB = "-"
    MUL = "*"


class Backend:
    """
    Base class for code generation targets.

    Contract:
        text = backend.compile(ast)           # lower a `module` root to target text
        backend.build(text, base, output)     # produce a native executable

    A Backend instance compiles exactly one program.
    """

    # Target name as accepted by the command line.
    name: str = ""
    # Suffix of the generated text file and of the assembler/IR compiler output.
    intermediate_suffix: str = ""
    object_suffix: str = ""

    def __init__(self, context: Optional[CompilationContext] = None) -> None:
        self.context = context or CompilationContext.default()
        self.out = CodeBuilder()
        # Top-level expressions, run by the startup scaffold before `main`.
        self.entry_code = CodeBuilder(indent_level=1)
        self.primitives: Mapping[str, Primitive] = MappingProxyType({p.value: p for p in Primitive})
        # Target name -> parameter count, for every function defined so far.
        self.functions: Dict[str, int] = {}
        self._compiled = False

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def compile(self, ast: Expr) -> str:
        """
        Lower a whole program and return the complete target text.

        Raises a CompileError subclass on the first problem; no partial text is
        ever returned.
        """
        if self._compiled:
            self.ice("[ICE-1020] backend instance already used for a compilation")
        self._compiled = True

        if not _is_form(ast, Primitive.MODULE.value):
            raise StructuralError.at(
                f"[GEN-0016] program root must be a '(module ...)' form, got {describe(ast)}", ast
            )

        log_stage(self.context, "Lowering with backend", self.name)
        scope = self.new_scope()
        self.emit_prefix()
        try:
            self.compile_expression(ast, None, scope)
        except RecursionError as e:
            raise ResourceExhaustedError.at("[GEN-0090] expression nesting too deep to lower", ast) from e

        entry = scope.get(USER_ENTRY)
        if entry is None or entry not in self.functions:
            raise StructuralError.at(f"[GEN-0017] module does not define '{USER_ENTRY}'", ast)
        self.emit_postfix(entry)

        log_debug(self.context, f"Lowered {len(self.functions)} function(s) into {len(self.out.lines)} line(s)")
        return self.out.to_string()

    def build(self, text: str, input_base: str, output: str, source_path: Optional[str] = None) -> Path:
        """
        Write `text` next to `input_base`, run the assembler / IR compiler and
        the linker, and return the path of the executable.

        Nothing is written when an intermediate file would land on the source
        file (`source_path`) or on the executable.
        """
        source_file = Path(f"{input_base}{self.intermediate_suffix}")
        object_file = Path(f"{input_base}{self.object_suffix}")
        exe_path = Path(output)

        protected = [exe_path] + ([Path(source_path)] if source_path is not None else [])
        for artifact in (source_file, object_file):
            for path in protected:
                if artifact.resolve() == path.resolve():
                    raise ToolchainError(
                        f"[TCH-0040] intermediate file {artifact} would overwrite {path}; "
                        f"rename the source file or choose another output"
                    )

        write_artifact(self.context, source_file, text)
        try:
            log_stage(self.context, "Assembling", str(source_file))
            run_tool(self.context, self.assembler_command(source_file, object_file))
            log_stage(self.context, "Linking", str(exe_path))
            run_tool(self.context, self.linker_command(object_file, exe_path))
        finally:
            if not self.context.keep_intermediate:
                remove_artifacts(self.context, source_file, object_file)

        log_info(self.context, f"Built executable: {exe_path}")
        return exe_path

    # ------------------------------------------------------------------
    # Lowering
    # ------------------------------------------------------------------

    def compile_expression(self, expr: Expr, destination: Optional[str], scope: Scope) -> None:
        if isinstance(expr, SList):
            operator, args = self._split_function(expr)
            self.compile_call(operator, args, destination, scope, expr)
            return

        if isinstance(expr, Symbol):
            location = scope.get(expr.name)
            if location is None:
                raise UndefinedReferenceError.at(f"[GEN-0020] undefined variable '{expr.name}'", expr)
            if location in self.functions:
                raise UndefinedReferenceError.at(
                    f"[GEN-0022] '{expr.name}' is a function and cannot be used as a value", expr
                )
            self.emit_load(location, destination)
            return

        if isinstance(expr, Integer):
            self.emit_literal(expr.value, destination)
            return

        if isinstance(expr, (Float, Boolean)):
            raise UnsupportedLiteralError.at(
                f"[GEN-0030] unsupported literal kind: {describe(expr)}", expr
            )

        self.ice(f"[ICE-1030] unknown expression node {type(expr).__name__}", expr)

    def compile_call(
            self,
            operator: Symbol,
            args: List[Expr],
            destination: Optional[str],
            scope: Scope,
            node: SList,
    ) -> None:
        primitive = self.primitives.get(operator.name)
        if primitive is not None:
            match primitive:
                case Primitive.DEFINE:
                    self.compile_define(args, destination, scope, node)
                case Primitive.MODULE:
                    self.compile_module(args, destination, scope, node)
                case Primitive.ADD | Primitive.SUB | Primitive.MUL:
                    self.compile_arithmetic(primitive, args, destination, scope, node)
            return

        function = scope.get(operator.name)
        if function is None or function not in self.functions:
            raise UndefinedReferenceError.at(f"[GEN-0021] undefined function '{operator.name}'", operator)

        arity = self.functions[function]
        if len(args) != arity:
            raise StructuralError.at(
                f"[GEN-0015] function '{operator.name}' expects {arity} argument(s), got {len(args)}", node
            )

        self.emit_call(function, args, destination, scope)

    def compile_arithmetic(
            self,
            primitive: Primitive,
            args: List[Expr],
            destination: Optional[str],
            scope: Scope,
            node: SList,
    ) -> None:
        if len(args) != 2:
            raise StructuralError.at(
                f"[GEN-0014] '{primitive.value}' expects exactly 2 arguments, got {len(args)}", node
            )
        self.emit_operation(primitive, args[0], args[1], destination, scope)

    def compile_define(
            self,
            args: List[Expr],
            destination: Optional[str],
            scope: Scope,
            node: SList,
    ) -> None:
        if destination is not None:
            raise StructuralError.at("[GEN-0018] 'def' is only allowed at module level", node)
        name, params, body = self._split_define(args, node)
        if name.name == USER_ENTRY and params:
            raise StructuralError.at(
                f"[GEN-0015] entry function '{USER_ENTRY}' must take no parameters, got {len(params)}", node
            )

        # The function is visible to itself and to everything lowered after it.
        hint = ENTRY_TARGET if name.name == USER_ENTRY else None
        target = scope.register(name.name, hint)
        self.functions[target] = len(params)
        log_debug(self.context, f"Lowering function '{name.name}' as '{target}' ({len(params)} parameter(s))")

        # Parameter and temporary bindings stay in the child scope.
        child_scope = scope.fork()
        locations = self.bind_params(params, child_scope, node)

        self.emit_prologue(target, locations)
        ret = self.return_location(child_scope)
        self.compile_expression(body, ret, child_scope)
        self.emit_epilogue(ret, locations)

    def compile_module(
            self,
            args: List[Expr],
            destination: Optional[str],
            scope: Scope,
            node: SList,
    ) -> None:
        if destination is not None:
            raise StructuralError.at("[GEN-0018] 'module' is only allowed at module level", node)
        for expression in args:
            if _is_form(expression, Primitive.DEFINE.value) or _is_form(expression, Primitive.MODULE.value):
                self.compile_expression(expression, None, scope)
            else:
                self.compile_toplevel(expression, scope)

    def compile_toplevel(self, expression: Expr, scope: Scope) -> None:
        """
        Lower a module-level expression into the startup scaffold. Its value is
        discarded; it runs before `main`, in source order.
        """
        out, self.out = self.out, self.entry_code
        try:
            self.compile_expression(expression, None, scope)
        finally:
            self.out = out

    # ------------------------------------------------------------------
    # Target hooks
    # ------------------------------------------------------------------

    def new_scope(self) -> Scope:
        return Scope()

    def emit_prefix(self) -> None:
        pass

    def emit_postfix(self, entry: str) -> None:
        """Emit the startup scaffold calling the renamed user entry `entry`."""
        raise NotImplementedError

    def emit_literal(self, value: int, destination: Optional[str]) -> None:
        raise NotImplementedError

    def emit_load(self, location: str, destination: Optional[str]) -> None:
        raise NotImplementedError

    def emit_operation(
            self, primitive: Primitive, left: Expr, right: Expr, destination: Optional[str], scope: Scope
    ) -> None:
        raise NotImplementedError

    def emit_call(self, function: str, args: List[Expr], destination: Optional[str], scope: Scope) -> None:
        raise NotImplementedError

    def bind_params(self, params: List[Symbol], scope: Scope, node: SList) -> List[str]:
        """Register parameters in the function's scope; return their locations."""
        raise NotImplementedError

    def emit_prologue(self, function: str, params: List[str]) -> None:
        raise NotImplementedError

    def return_location(self, scope: Scope) -> str:
        raise NotImplementedError

    def emit_epilogue(self, ret: str, params: List[str]) -> None:
        raise NotImplementedError

    def assembler_command(self, source_file: Path, object_file: Path) -> List[str]:
        raise NotImplementedError

    def linker_command(self, object_file: Path, exe_path: Path) -> List[str]:
        return [self.context.resolve_linker(), "-o", str(exe_path), str(object_file)]

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def ice(self, message: str, node=None) -> NoReturn:
        span = getattr(node, "span", None) if node is not None else None
        raise InternalCompilerError(message, ICELocation(filename=None, span=span))

    def _split_function(self, expr: SList) -> Tuple[Symbol, List[Expr]]:
        head = expr.head
        if head is None:
            raise StructuralError.at("[GEN-0010] cannot evaluate an empty list", expr)
        if not isinstance(head, Symbol):
            raise StructuralError.at(
                f"[GEN-0010] first list item must be a symbol, got {describe(head)}", head
            )
        return head, expr.args

    def _split_define(self, args: List[Expr], node: SList) -> Tuple[Symbol, List[Symbol], Expr]:
        if len(args) != 3:
            raise StructuralError.at(
                f"[GEN-0011] 'def' expects a name, a parameter list and a body, got {len(args)} argument(s)",
                node,
            )
        name, params, body = args

        if not isinstance(name, Symbol):
            raise StructuralError.at(
                f"[GEN-0012] first item of 'def' must be a symbol, got {describe(name)}", name
            )
        if name.name in self.primitives:
            raise StructuralError.at(f"[GEN-0019] cannot redefine primitive '{name.name}'", name)
        if not isinstance(params, SList):
            raise StructuralError.at(
                f"[GEN-0012] second item of 'def' must be a parameter list, got {describe(params)}", params
            )

        seen = set()
        for param in params.items:
            if not isinstance(param, Symbol):
                raise StructuralError.at(
                    f"[GEN-0013] function parameter must be a symbol, got {describe(param)}", param
                )
            if param.name in seen:
                raise StructuralError.at(f"[GEN-0013] duplicate parameter '{param.name}'", param)
            seen.add(param.name)

        return name, list(params.items), body


def _is_form(expr: Expr, operator: str) -> bool:
    return isinstance(expr, SList) and isinstance(expr.head, Symbol) and expr.head.name == operator
