#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2025-2026 gwz

import os
from dataclasses import dataclass
from typing import Optional


DIAGNOSTIC_CODE_FAMILIES = {
    "CFG": [
        "CFG-0010",  # malformed key=value entry
        "CFG-0020",  # unknown or ill-typed option
        "CFG-0030",  # exported scope has no implementation container
        "CFG-0040",  # unreadable or invalid config file
    ],
    "SCH": [
        "SCH-0010",  # schema document failed validation
        "SCH-0020",  # dangling package/interface/type id
        "SCH-0030",  # requested world not found
        "SCH-0040",  # unsupported type
        "SCH-0050",  # unsupported result arity
        "SCH-0060",  # ambiguous world selection
    ],
    "GEN": [
        "GEN-0010",  # cannot read input file
        "GEN-0020",  # cannot write output file
    ],
    # ICE codes are internal generator errors raised as exceptions,
    # not user-facing diagnostics; they are excluded from this registry.
}


@dataclass
class Diagnostic:
    kind: str  # "error" or "warning"
    message: str
    filename: Optional[str] = None  # input file path
    function: Optional[str] = None  # offending function, if any

    def format(self) -> str:
        loc = ""
        if self.filename is not None:
            loc += f"{os.path.abspath(str(self.filename))}"
        if self.function is not None:
            loc += f"({self.function})"
        if loc:
            loc += ": "
        return f"{loc}{self.kind}: {self.message}"


# ============================================================================
# Error taxonomy
# ============================================================================

class GeneratorError(Exception):
    """
    A user-facing failure that aborts generation before any output is written.

    `message` should carry the diagnostic code, e.g. "[SCH-0040] ...".
    """

    code = "GEN-0000"

    def __init__(self, message: str, *, function: Optional[str] = None, filename: Optional[str] = None):
        if f"[{self.code[:3]}-" not in message:
            message = f"[{self.code}] {message}"
        super().__init__(message)
        self.message = message
        self.function = function
        self.filename = filename

    def to_diagnostic(self) -> Diagnostic:
        return Diagnostic(kind="error", message=self.message, filename=self.filename, function=self.function)

    def format(self) -> str:
        return self.to_diagnostic().format()


class SchemaError(GeneratorError):
    """Unsupported or malformed schema shape."""
    code = "SCH-0010"


class UnsupportedType(SchemaError):
    """A primitive or compound type the Zig backend does not implement."""
    code = "SCH-0040"

    def __init__(self, type_name: str, *, function: Optional[str] = None, position: Optional[str] = None):
        where = f" in {position}" if position else ""
        func = f" of function '{function}'" if function else ""
        super().__init__(
            f"[SCH-0040] unsupported type '{type_name}'{where}{func}",
            function=function,
        )
        self.type_name = type_name
        self.position = position


class UnsupportedArity(SchemaError):
    """A function with more than one result."""
    code = "SCH-0050"

    def __init__(self, function: str, count: int):
        super().__init__(
            f"[SCH-0050] function '{function}' has {count} results; at most one is supported",
            function=function,
        )
        self.count = count


class ConfigError(GeneratorError):
    """Malformed configuration input."""
    code = "CFG-0020"
