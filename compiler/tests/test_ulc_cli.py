#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2026 gwz

import pytest

import ul_x86
import ulc
from ul_internal_error import InternalCompilerError


def _patch_handlers(monkeypatch):
    calls = []

    def _mk_handler(name):
        def _handler(args):
            calls.append((name, args))
            return 0

        return _handler

    monkeypatch.setattr(ulc, "cmd_run", _mk_handler("run"))
    monkeypatch.setattr(ulc, "cmd_build", _mk_handler("build"))
    monkeypatch.setattr(ulc, "cmd_gen", _mk_handler("gen"))
    monkeypatch.setattr(ulc, "cmd_tok", _mk_handler("tok"))
    monkeypatch.setattr(ulc, "cmd_ast", _mk_handler("ast"))
    return calls


def _run_main(argv):
    with pytest.raises(SystemExit) as exc:
        ulc.main(argv)
    return exc.value.code


# ============================================================================
# Argument handling
# ============================================================================


def test_default_mode_is_build(monkeypatch):
    calls = _patch_handlers(monkeypatch)

    rc = _run_main(["prog.ul"])

    assert rc == 0
    assert len(calls) == 1
    name, args = calls[0]
    assert name == "build"
    assert args.input == "prog.ul"
    assert args.backend == "x86"
    assert args.output is None
    assert args.keep_intermediate is False


@pytest.mark.parametrize(
    "flag, mode",
    [
        ("--run", "run"),
        ("-r", "run"),
        ("--gen", "gen"),
        ("-S", "gen"),
        ("--ast", "ast"),
        ("--tok", "tok"),
    ],
)
def test_mode_flags_select_handler(monkeypatch, flag, mode):
    calls = _patch_handlers(monkeypatch)

    rc = _run_main([flag, "prog.ul"])

    assert rc == 0
    assert [name for name, _ in calls] == [mode]


def test_mode_flags_are_mutually_exclusive(monkeypatch, capsys):
    calls = _patch_handlers(monkeypatch)

    rc = _run_main(["--run", "--gen", "prog.ul"])

    assert rc == 2
    assert calls == []
    assert "not allowed with argument" in capsys.readouterr().err


def test_build_options_are_forwarded(monkeypatch):
    calls = _patch_handlers(monkeypatch)

    _run_main([
        "prog.ul", "-o", "out", "-b", "llvm", "--keep-intermediate",
        "--assembler", "my-llc", "--linker", "clang", "-vvv", "-l",
    ])

    _, args = calls[0]
    context = ulc.build_compilation_context(args)
    assert args.output == "out"
    assert args.backend == "llvm"
    assert context.keep_intermediate is True
    assert context.assembler == "my-llc"
    assert context.linker == "clang"
    assert context.log_rich_format is True
    assert context.log_level == ulc.LogLevel.DEBUG


@pytest.mark.parametrize(
    "argv, level",
    [
        (["prog.ul"], ulc.LogLevel.ERROR),
        (["-v", "prog.ul"], ulc.LogLevel.INFO),
        (["-vvv", "prog.ul"], ulc.LogLevel.DEBUG),
    ],
)
def test_verbosity_maps_to_log_level(monkeypatch, argv, level):
    calls = _patch_handlers(monkeypatch)

    _run_main(argv)

    _, args = calls[0]
    assert ulc.build_compilation_context(args).log_level == level


def test_handler_status_becomes_exit_code(monkeypatch):
    monkeypatch.setattr(ulc, "cmd_build", lambda args: 1)

    assert _run_main(["prog.ul"]) == 1


# ============================================================================
# Commands against real files (no external toolchain needed)
# ============================================================================


def test_gen_prints_assembly(write_ul_file, capsys):
    src = write_ul_file("answer", "(module (def main () 42))")

    rc = _run_main(["--gen", str(src)])

    out = capsys.readouterr().out
    assert rc == 0
    assert "$program_main:" in out
    assert "mov rax, 42" in out


def test_gen_writes_llvm_ir_to_output(write_ul_file, tmp_path):
    src = write_ul_file("answer", "(module (def main () 42))")
    out_file = tmp_path / "answer.ll"

    rc = _run_main(["-S", "-b", "llvm", "-o", str(out_file), str(src)])

    assert rc == 0
    assert "define i32 @program_main() {" in out_file.read_text()


def test_gen_reports_diagnostic_with_snippet(write_ul_file, capsys):
    src = write_ul_file("bad", "(module\n  (def main () (+ 1 oops)))\n")

    rc = _run_main(["--gen", str(src)])

    err = capsys.readouterr().err
    assert rc == 1
    assert "bad.ul:2:21: error: [GEN-0020] undefined variable 'oops'" in err
    assert "    2 |   (def main () (+ 1 oops)))" in err
    assert " " * 5 + " | " + " " * 20 + "^^^^" in err


def test_unknown_backend_is_reported(write_ul_file, capsys):
    src = write_ul_file("answer", "(module (def main () 42))")

    rc = _run_main(["--gen", "-b", "arm", str(src)])

    assert rc == 1
    assert "[DRV-0040] unsupported backend 'arm'" in capsys.readouterr().err


def test_missing_input_is_reported(tmp_path, capsys):
    rc = _run_main(["--gen", str(tmp_path / "nope.ul")])

    assert rc == 1
    assert "[DRV-0010]" in capsys.readouterr().err


def test_ast_dump(write_ul_file, capsys):
    src = write_ul_file("answer", "(def main () 42)")

    rc = _run_main(["--ast", str(src)])

    out = capsys.readouterr().out
    assert rc == 0
    assert out.splitlines() == [
        "(module ; 1:1-1:17",
        "  (def ; 1:1-1:17",
        "    main ; 1:6-1:10",
        "    () ; 1:11-1:13",
        "    42)) ; 1:14-1:16",
    ]


def test_tok_dump(write_ul_file, capsys):
    src = write_ul_file("answer", "(def main () 42)")

    rc = _run_main(["--tok", str(src)])

    lines = capsys.readouterr().out.splitlines()
    assert rc == 0
    assert len(lines) == 7
    assert lines[0].endswith(":1:1:\tLPAREN   '('")
    assert lines[5].endswith(":1:14:\tATOM     '42'")


def test_tok_reports_lexer_error(write_ul_file, capsys):
    src = write_ul_file("quoted", '(def main () "hi")')

    rc = _run_main(["--tok", str(src)])

    assert rc == 1
    assert "[LEX-0010]" in capsys.readouterr().err


def test_build_failure_returns_one(write_ul_file, capsys):
    src = write_ul_file("nomain", "(module (def f () 1))")

    rc = _run_main([str(src)])

    assert rc == 1
    assert "[GEN-0017]" in capsys.readouterr().err


def test_internal_error_is_reported_with_file(write_ul_file, capsys, monkeypatch):
    def _broken_prefix(self):
        raise InternalCompilerError("[ICE-1010] dedent below zero")

    monkeypatch.setattr(ul_x86.X86Backend, "emit_prefix", _broken_prefix)
    src = write_ul_file("answer", "(module (def main () 42))")

    rc = _run_main(["--gen", str(src)])

    assert rc == 1
    assert f"{src}: internal compiler error: [ICE-1010] dedent below zero" in capsys.readouterr().err


def test_deeply_nested_source_is_reported(write_ul_file, capsys):
    src = write_ul_file("deep", "(module (def main () " + "(+ 1 " * 3000 + "1" + ")" * 3000 + "))")

    rc = _run_main(["--gen", str(src)])

    assert rc == 1
    assert "[GEN-0090] expression nesting too deep to read" in capsys.readouterr().err
