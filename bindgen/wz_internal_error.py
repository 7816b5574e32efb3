#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2025-2026 gwz

# wz_internal_error.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class ICELocation:
    world: Optional[str]
    function: Optional[str] = None


class InternalGeneratorError(RuntimeError):
    """
    ICE = generator bug / violated pipeline invariant.
    Not for user mistakes (those are GeneratorErrors).
    """

    def __init__(self, message: str, loc: ICELocation | None = None):
        super().__init__(message)
        self.message = message
        self.loc = loc

    def format(self) -> str:
        message = self.message
        if not "[ICE-" in message:
            message = f"[ICE-9999] {message}"
        if self.loc and self.loc.world:
            if self.loc.function is not None:
                return f"world '{self.loc.world}', function '{self.loc.function}': internal generator error: {message}"
            return f"world '{self.loc.world}': internal generator error: {message}"
        return f"internal generator error: {message}"
