"""
Scope

Maps source-level identifiers to target-safe, unique target-level names.
One Scope is created per compilation; each function body lowers into a
forked copy so parameters and temporaries never leak into the enclosing
scope.
"""

#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2025-2026 gwz

from __future__ import annotations

import copy
import re
from dataclasses import dataclass, field
from typing import Dict, Optional, Set

# Prefix of synthesized temporaries.
TEMP_PREFIX = "sym"

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_.]")


def safe_name(name: str) -> str:
    """
    Turn a source identifier into one both NASM labels and LLVM local/global
    names accept: `-` and any other unsafe character become `_`, and a leading
    digit or dot gets a `_` prefix.
    """
    safe = _UNSAFE_CHARS.sub("_", name.replace("-", "_"))
    if not safe or safe[0].isdigit() or safe[0] == ".":
        safe = f"_{safe}"
    return safe


@dataclass
class Scope:
    """
    Source name -> target name table.

    Invariants:
    - every target name handed out by this scope (or the lineage it was forked
      from, up to the fork) is distinct;
    - re-registering a source name yields a new target name with an increasing
      numeric suffix, and the newest binding wins on lookup.
    """
    locals: Dict[str, str] = field(default_factory=dict)
    # Every target name ever produced, including those of shadowed bindings.
    _taken: Set[str] = field(default_factory=set)

    def register(self, name: str, hint: Optional[str] = None) -> str:
        """
        Bind `name` to a fresh target name derived from `hint` (or from `name`
        itself) and return it.
        """
        target = self._fresh(safe_name(hint if hint is not None else name))
        self.locals[name] = target
        return target

    def bind(self, name: str, target: str) -> str:
        """
        Bind `name` to an exact target location chosen by the backend (e.g. a
        physical register). The location is reserved so generated names never
        collide with it.
        """
        self._taken.add(target)
        self.locals[name] = target
        return target

    def reserve(self, *targets: str) -> None:
        """Mark target names (registers, toolchain symbols) as unavailable."""
        self._taken.update(targets)

    def symbol(self) -> str:
        """
        Synthesize a temporary. Temporaries reserve a target name but bind no
        source name, so they can never shadow a user identifier like `sym3`.
        """
        return self._fresh(f"{TEMP_PREFIX}{len(self)}")

    def _fresh(self, base: str) -> str:
        target = base
        n = 1
        while target in self._taken:
            n += 1
            target = f"{base}{n}"
        self._taken.add(target)
        return target

    def get(self, name: str) -> Optional[str]:
        return self.locals.get(name)

    def fork(self) -> Scope:
        """Independent child scope for a function body."""
        return Scope(locals=copy.deepcopy(self.locals), _taken=set(self._taken))

    def __contains__(self, name: str) -> bool:
        return name in self.locals

    def __len__(self) -> int:
        return len(self._taken)
