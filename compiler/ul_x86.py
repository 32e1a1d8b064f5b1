"""
x86-64 NASM backend.

Values live in registers or are encoded inline as decimal literals.

Calling convention:
- up to three arguments in rdi, rsi, rdx;
- result in rax;
- a function copies each incoming argument into a callee-saved register
  (rbx, rbp, r12) in its prologue and binds the parameter name to that
  register, so parameters survive nested calls in the body.

Arithmetic keeps the left operand on the machine stack while the right one is
lowered, then combines them through the scratch register r11.
"""

#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2025-2026 gwz

import sys
from pathlib import Path
from typing import List, Optional

from ul_ast import Expr, SList, Symbol
from ul_backend import Backend, Primitive
from ul_context import CompilationContext
from ul_errors import StructuralError
from ul_scope import Scope

PARAM_REGISTERS = ("rdi", "rsi", "rdx")
LOCAL_REGISTERS = ("rbx", "rbp", "r12")
RETURN_REGISTER = "rax"
SCRATCH_REGISTER = "r11"

# Never handed out as function labels.
RESERVED_NAMES = (
    "rax", "rbx", "rcx", "rdx", "rsi", "rdi", "rbp", "rsp",
    "r8", "r9", "r10", "r11", "r12", "r13", "r14", "r15",
    "main", "_main",
)

INSTRUCTIONS = {
    Primitive.ADD: "add",
    Primitive.SUB: "sub",
    Primitive.MUL: "imul",
}

EXIT_SYSCALL = {
    "linux": "60",
    "darwin": "0x2000001",
}


class X86Backend(Backend):
    name = "x86"
    intermediate_suffix = ".asm"
    object_suffix = ".o"

    def __init__(self, context: Optional[CompilationContext] = None, platform: Optional[str] = None) -> None:
        super().__init__(context)
        self.platform = platform or sys.platform

    @property
    def is_darwin(self) -> bool:
        return self.platform == "darwin"

    @property
    def entry_symbol(self) -> str:
        # Mach-O prefixes C symbols with an underscore.
        return "_main" if self.is_darwin else "main"

    @property
    def object_format(self) -> str:
        return "macho64" if self.is_darwin else "elf64"

    # --- scaffold ---

    def new_scope(self) -> Scope:
        scope = Scope()
        scope.reserve(*RESERVED_NAMES)
        return scope

    def emit_prefix(self) -> None:
        self.out.emit_comment("Generated with ulisp")
        self.out.emit_comment()
        self.out.emit_comment("To compile run the following:")
        self.out.emit_comment(f"$ nasm -f {self.object_format} program.asm")
        self.out.emit_comment("$ gcc -o program program.o")
        self.out.emit()
        self.out.indent()
        self.out.emit(f"global {self.entry_symbol}")
        self.out.emit()
        self.out.emit("section .text")
        self.out.dedent()
        self.out.emit()

    def emit_postfix(self, entry: str) -> None:
        self.out.emit_raw(f"{self.entry_symbol}:")
        self.out.indent()
        self.out.lines.extend(self.entry_code.lines)
        self.out.emit(f"call {_label(entry)}")
        self.out.emit(f"mov rdi, {RETURN_REGISTER}")
        self.out.emit(f"mov rax, {EXIT_SYSCALL['darwin' if self.is_darwin else 'linux']}")
        self.out.emit("syscall")
        self.out.dedent()
        if not self.is_darwin:
            self.out.emit()
            self.out.indent()
            self.out.emit("section .note.GNU-stack noalloc noexec nowrite progbits")
            self.out.dedent()

    # --- values ---

    def emit_literal(self, value: int, destination: Optional[str]) -> None:
        if destination is None:
            return
        self.out.emit(f"mov {destination}, {value}")

    def emit_load(self, location: str, destination: Optional[str]) -> None:
        if destination is None or destination == location:
            return
        self.out.emit(f"mov {destination}, {location}")

    def emit_operation(
            self, primitive: Primitive, left: Expr, right: Expr, destination: Optional[str], scope: Scope
    ) -> None:
        self.compile_expression(left, RETURN_REGISTER, scope)
        self.out.emit(f"push {RETURN_REGISTER}")
        self.compile_expression(right, RETURN_REGISTER, scope)
        self.out.emit(f"mov {SCRATCH_REGISTER}, {RETURN_REGISTER}")
        self.out.emit(f"pop {RETURN_REGISTER}")
        self.out.emit(f"{INSTRUCTIONS[primitive]} {RETURN_REGISTER}, {SCRATCH_REGISTER}")
        self.emit_load(RETURN_REGISTER, destination)

    # --- calls ---

    def emit_call(self, function: str, args: List[Expr], destination: Optional[str], scope: Scope) -> None:
        registers = PARAM_REGISTERS[:len(args)]

        # Save param registers to the stack
        for register in registers:
            self.out.emit(f"push {register}")

        # Compile arguments and store in param registers
        for register, arg in zip(registers, args):
            self.compile_expression(arg, register, scope)

        self.out.emit(f"call {_label(function)}")

        for register in reversed(registers):
            self.out.emit(f"pop {register}")

        self.emit_load(RETURN_REGISTER, destination)

    # --- functions ---

    def bind_params(self, params: List[Symbol], scope: Scope, node: SList) -> List[str]:
        if len(params) > len(PARAM_REGISTERS):
            raise StructuralError.at(
                f"[GEN-0040] x86 backend supports at most {len(PARAM_REGISTERS)} parameters, got {len(params)}",
                node,
            )
        return [scope.bind(param.name, LOCAL_REGISTERS[i]) for i, param in enumerate(params)]

    def emit_prologue(self, function: str, params: List[str]) -> None:
        self.out.emit_raw(f"{_label(function)}:")
        self.out.indent()
        for i, local in enumerate(params):
            self.out.emit(f"push {local}")
            self.out.emit(f"mov {local}, {PARAM_REGISTERS[i]}")

    def return_location(self, scope: Scope) -> str:
        return RETURN_REGISTER

    def emit_epilogue(self, ret: str, params: List[str]) -> None:
        for local in reversed(params):
            self.out.emit(f"pop {local}")
        self.out.emit("ret")
        self.out.dedent()
        self.out.emit()

    # --- toolchain ---

    def assembler_command(self, source_file: Path, object_file: Path) -> List[str]:
        nasm = self.context.resolve_assembler("ULISP_NASM", "nasm")
        return [nasm, "-f", self.object_format, "-o", str(object_file), str(source_file)]


def _label(function: str) -> str:
    # `$` makes NASM read the name as an identifier even if it spells an
    # instruction or register (e.g. a user function called `add`).
    return f"${function}"
