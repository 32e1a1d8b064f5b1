"""
Tests for the x86-64 NASM backend.

Checks the exact instruction sequences for the calling convention, the
arithmetic lowering and the startup scaffold.
"""

#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2026 gwz

import pytest

from ul_errors import StructuralError
from ul_parser import parse
from ul_x86 import X86Backend


def lower(src: str, platform: str = "linux") -> str:
    return X86Backend(platform=platform).compile(parse(src))


def body_of(asm: str, label: str) -> list[str]:
    """Instruction lines of one function, up to and including its `ret`."""
    lines = asm.splitlines()
    start = lines.index(f"{label}:") + 1
    end = lines.index("\tret", start) + 1
    return [line.strip() for line in lines[start:end]]


# ============================================================================
# Header and scaffold
# ============================================================================


def test_header_and_entry_scaffold_linux():
    asm = lower("(module (def main () 42))")

    assert asm.startswith("; Generated with ulisp\n")
    assert "; $ nasm -f elf64 program.asm" in asm
    assert "\tglobal main" in asm
    assert "\tsection .text" in asm
    assert "main:\n\tcall $program_main\n\tmov rdi, rax\n\tmov rax, 60\n\tsyscall\n" in asm
    assert "section .note.GNU-stack" in asm


def test_entry_scaffold_darwin():
    asm = lower("(module (def main () 42))", platform="darwin")

    assert "\tglobal _main" in asm
    assert "_main:\n\tcall $program_main" in asm
    assert "mov rax, 0x2000001" in asm
    assert "GNU-stack" not in asm


def test_literal_body():
    asm = lower("(module (def main () 42))")

    assert body_of(asm, "$program_main") == ["mov rax, 42", "ret"]


# ============================================================================
# Arithmetic
# ============================================================================


def test_addition_uses_stack_slot_and_scratch_register():
    asm = lower("(module (def main () (+ 1 2)))")

    assert body_of(asm, "$program_main") == [
        "mov rax, 1",
        "push rax",
        "mov rax, 2",
        "mov r11, rax",
        "pop rax",
        "add rax, r11",
        "ret",
    ]


def test_nested_arithmetic_keeps_operand_order():
    asm = lower("(module (def main () (* (- 10 4) 2)))")

    assert body_of(asm, "$program_main") == [
        "mov rax, 10",
        "push rax",
        "mov rax, 4",
        "mov r11, rax",
        "pop rax",
        "sub rax, r11",
        "push rax",
        "mov rax, 2",
        "mov r11, rax",
        "pop rax",
        "imul rax, r11",
        "ret",
    ]


# ============================================================================
# Functions and calls
# ============================================================================


def test_parameters_are_copied_into_preserved_registers():
    asm = lower("(module (def add (a b) (+ a b)) (def main () (add 3 4)))")

    assert body_of(asm, "$add") == [
        "push rbx",
        "mov rbx, rdi",
        "push rbp",
        "mov rbp, rsi",
        "mov rax, rbx",
        "push rax",
        "mov rax, rbp",
        "mov r11, rax",
        "pop rax",
        "add rax, r11",
        "pop rbp",
        "pop rbx",
        "ret",
    ]


def test_call_saves_and_restores_argument_registers():
    asm = lower("(module (def add (a b) (+ a b)) (def main () (add 3 4)))")

    assert body_of(asm, "$program_main") == [
        "push rdi",
        "push rsi",
        "mov rdi, 3",
        "mov rsi, 4",
        "call $add",
        "pop rsi",
        "pop rdi",
        "ret",
    ]


def test_call_result_moved_into_argument_register_after_restore():
    asm = lower(
        """
        (module
          (def id (x) x)
          (def main () (id (id 5))))
        """
    )

    assert body_of(asm, "$program_main") == [
        "push rdi",
        "push rdi",
        "mov rdi, 5",
        "call $id",
        "pop rdi",
        "mov rdi, rax",
        "call $id",
        "pop rdi",
        "ret",
    ]


def test_swapped_parameters_read_preserved_registers():
    # Reading `a` after `b` was stored into rdi must still see the original
    # value of `a`.
    asm = lower(
        """
        (module
          (def sub2 (a b) (- a b))
          (def flip (a b) (sub2 b a))
          (def main () (flip 1 10)))
        """
    )

    assert body_of(asm, "$flip")[4:10] == [
        "push rdi",
        "push rsi",
        "mov rdi, rbp",
        "mov rsi, rbx",
        "call $sub2",
        "pop rsi",
    ]


def test_function_named_like_an_instruction_is_escaped():
    asm = lower("(module (def add (a) a) (def main () (add 1)))")

    assert "$add:" in asm
    assert "call $add" in asm


def test_function_named_like_a_register_is_renamed():
    asm = lower("(module (def rax () 1) (def main () (rax)))")

    assert "$rax2:" in asm
    assert "call $rax2" in asm


def test_dashes_in_names_are_sanitized():
    asm = lower("(module (def add-one (x) (+ x 1)) (def main () (add-one 1)))")

    assert "$add_one:" in asm
    assert "call $add_one" in asm


def test_more_than_three_parameters_is_rejected():
    with pytest.raises(StructuralError) as excinfo:
        lower("(module (def f (a b c d) a) (def main () 0))")

    assert "[GEN-0040]" in excinfo.value.message


def test_three_parameters_use_r12():
    asm = lower("(module (def f (a b c) c) (def main () (f 1 2 3)))")

    f_body = body_of(asm, "$f")
    assert "mov r12, rdx" in f_body
    assert "mov rax, r12" in f_body
    assert f_body[-4:] == ["pop r12", "pop rbp", "pop rbx", "ret"]


def test_top_level_expressions_run_before_main():
    asm = lower("(module (def f (a) a) (f 5) (+ 1 2) (def main () 0))")

    lines = asm.splitlines()
    start = lines.index("main:") + 1
    assert [line.strip() for line in lines[start:start + 12]] == [
        "push rdi",
        "mov rdi, 5",
        "call $f",
        "pop rdi",
        "mov rax, 1",
        "push rax",
        "mov rax, 2",
        "mov r11, rax",
        "pop rax",
        "add rax, r11",
        "call $program_main",
        "mov rdi, rax",
    ]
