#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2025-2026 gwz

from enum import Enum
from typing import Optional

from ul_backend import Backend
from ul_context import CompilationContext
from ul_errors import BackendSelectionError
from ul_llvm import LLVMBackend
from ul_x86 import X86Backend

DEFAULT_BACKEND = "x86"


class BackendKind(Enum):
    X86 = "x86"
    LLVM = "llvm"

    @classmethod
    def from_name(cls, name: str) -> "BackendKind":
        for kind in cls:
            if kind.value == name:
                return kind
        supported = ", ".join(k.value for k in cls)
        raise BackendSelectionError(f"[DRV-0040] unsupported backend '{name}' (expected one of: {supported})")


def create_backend(name: str, context: Optional[CompilationContext] = None) -> Backend:
    """Instantiate a fresh backend by its command-line name."""
    kind = BackendKind.from_name(name)
    if kind is BackendKind.X86:
        return X86Backend(context)
    return LLVMBackend(context)
