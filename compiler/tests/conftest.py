#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2026 gwz

from __future__ import annotations

import shutil
import subprocess
import sys
from pathlib import Path
from textwrap import dedent

import pytest

PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from ul_context import CompilationContext, LogLevel
from ul_driver import UlispDriver
from ul_parser import parse
from ul_targets import create_backend

BACKENDS = ["x86", "llvm"]

# Tools each backend needs on PATH for end-to-end tests.
TOOLCHAINS = {
    "x86": ("nasm", "gcc"),
    "llvm": ("llc", "gcc"),
}


def toolchain_available(backend: str) -> bool:
    return sys.platform.startswith("linux") and all(shutil.which(tool) for tool in TOOLCHAINS[backend])


@pytest.fixture
def context() -> CompilationContext:
    return CompilationContext(log_level=LogLevel.SILENT)


@pytest.fixture
def parse_source():
    def _parse(src: str):
        return parse(dedent(src))

    return _parse


@pytest.fixture
def compile_source(context):
    """Lower a source string with the named backend and return the target text.

    Usage:
        def test_something(compile_source):
            asm = compile_source("x86", "(module (def main () 42))")
            assert "mov rax, 42" in asm
    """

    def _compile(backend_name: str, src: str) -> str:
        backend = create_backend(backend_name, context)
        return backend.compile(parse(dedent(src)))

    return _compile


@pytest.fixture
def write_ul_file(tmp_path: Path):
    def _write(name: str, content: str) -> Path:
        file_path = tmp_path / f"{name}.ul"
        file_path.write_text(dedent(content))
        return file_path

    return _write


@pytest.fixture
def build_and_run(write_ul_file, tmp_path: Path, context):
    """Build a program with the real toolchain and return its exit status."""

    def _build_and_run(backend_name: str, src: str) -> int:
        if not toolchain_available(backend_name):
            pytest.skip(f"toolchain for '{backend_name}' not available")

        source = write_ul_file(f"prog_{backend_name}", src)
        exe = tmp_path / f"prog_{backend_name}"
        result = UlispDriver(context=context).build(source, exe, backend_name)
        assert not result.has_errors(), [d.format() for d in result.diagnostics]

        run = subprocess.run([str(exe)], capture_output=True, text=True, timeout=10)
        return run.returncode

    return _build_and_run
