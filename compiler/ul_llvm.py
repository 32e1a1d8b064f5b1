"""
LLVM IR backend.

Every lowered value is assigned exactly once to a fresh `%name` taken from the
scope; nothing is ever overwritten. All values are `i32`.
"""

#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2025-2026 gwz

from pathlib import Path
from typing import List, Optional

from ul_ast import Expr, SList, Symbol
from ul_backend import Backend, Primitive
from ul_scope import Scope

INSTRUCTIONS = {
    Primitive.ADD: "add",
    Primitive.SUB: "sub",
    Primitive.MUL: "mul",
}


class LLVMBackend(Backend):
    name = "llvm"
    intermediate_suffix = ".ll"
    object_suffix = ".s"

    def new_scope(self) -> Scope:
        scope = Scope()
        scope.reserve("main")
        return scope

    def emit_prefix(self) -> None:
        self.out.emit_comment("Generated with ulisp")
        self.out.emit_comment()
        self.out.emit_comment("To compile run the following:")
        self.out.emit_comment("$ llc -o program.s program.ll")
        self.out.emit_comment("$ gcc -o program program.s")
        self.out.emit()

    def emit_postfix(self, entry: str) -> None:
        self.out.emit_raw("define i32 @main() {")
        self.out.indent()
        self.out.lines.extend(self.entry_code.lines)
        self.out.emit(f"%status = call i32 @{entry}()")
        self.out.emit("ret i32 %status")
        self.out.dedent()
        self.out.emit_raw("}")

    # --- values ---

    def emit_literal(self, value: int, destination: Optional[str]) -> None:
        if destination is None:
            return
        self.out.emit(f"%{destination} = add i32 {value}, 0")

    def emit_load(self, location: str, destination: Optional[str]) -> None:
        if destination is None:
            return
        self.out.emit(f"%{destination} = add i32 %{location}, 0")

    def emit_operation(
            self, primitive: Primitive, left: Expr, right: Expr, destination: Optional[str], scope: Scope
    ) -> None:
        arg1 = scope.symbol()
        arg2 = scope.symbol()
        self.compile_expression(left, arg1, scope)
        self.compile_expression(right, arg2, scope)
        if destination is None:
            destination = scope.symbol()
        self.out.emit(f"%{destination} = {INSTRUCTIONS[primitive]} i32 %{arg1}, %{arg2}")

    # --- calls ---

    def emit_call(self, function: str, args: List[Expr], destination: Optional[str], scope: Scope) -> None:
        operands = []
        for arg in args:
            sym = scope.symbol()
            self.compile_expression(arg, sym, scope)
            operands.append(f"i32 %{sym}")

        call = f"call i32 @{function}({', '.join(operands)})"
        if destination is None:
            self.out.emit(call)
        else:
            self.out.emit(f"%{destination} = {call}")

    # --- functions ---

    def bind_params(self, params: List[Symbol], scope: Scope, node: SList) -> List[str]:
        return [scope.register(param.name) for param in params]

    def emit_prologue(self, function: str, params: List[str]) -> None:
        safe_params = ", ".join(f"i32 %{p}" for p in params)
        self.out.emit_raw(f"define i32 @{function}({safe_params}) {{")
        self.out.indent()

    def return_location(self, scope: Scope) -> str:
        return scope.symbol()

    def emit_epilogue(self, ret: str, params: List[str]) -> None:
        self.out.emit(f"ret i32 %{ret}")
        self.out.dedent()
        self.out.emit_raw("}")
        self.out.emit()

    # --- toolchain ---

    def assembler_command(self, source_file: Path, object_file: Path) -> List[str]:
        llc = self.context.resolve_assembler("ULISP_LLC", "llc")
        return [llc, "-relocation-model=pic", "-o", str(object_file), str(source_file)]
