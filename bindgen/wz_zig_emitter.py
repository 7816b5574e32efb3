"""
Zig Code Emitter

Handles Zig-specific code emission. Knows how to spell Zig syntax, but not why or when.
All decisions about what a binding contains live in the FunctionBindingEmitter and the
WorldAssembler.
"""

#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2025-2026 gwz

import re
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence, Tuple

# Zig keywords; usable as the reserved-word set for keyword avoidance.
ZIG_KEYWORDS = frozenset({
    "addrspace", "align", "allowzero", "and", "anyframe", "anytype", "asm",
    "async", "await", "break", "callconv", "catch", "comptime", "const",
    "continue", "defer", "else", "enum", "errdefer", "error", "export",
    "extern", "false", "fn", "for", "if", "inline", "linksection", "noalias",
    "nosuspend", "null", "opaque", "or", "orelse", "packed", "pub", "resume",
    "return", "struct", "suspend", "switch", "test", "threadlocal", "true",
    "try", "type", "undefined", "union", "unreachable", "usingnamespace",
    "var", "volatile", "while",
})

_IDENT_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


@dataclass
class ZigCodeBuilder:
    """
    Append-only Zig text accumulator with indentation tracking.

    One builder is owned by one assembler run; per-function fragments are
    built in their own builders and merged with extend().
    """
    lines: List[str] = field(default_factory=list)
    indent_level: int = 0
    indent_str: str = "    "  # 4 spaces, as zig fmt

    def indent(self) -> None:
        self.indent_level += 1

    def dedent(self) -> None:
        assert self.indent_level > 0, "dedent below zero"
        self.indent_level -= 1

    def emit(self, line: str = "") -> None:
        """Emit a line with current indentation."""
        if line:
            self.lines.append(self.indent_str * self.indent_level + line)
        else:
            self.lines.append("")

    def extend(self, other: 'ZigCodeBuilder') -> None:
        """Merge another builder's lines, re-indented to the current level."""
        for line in other.lines:
            self.emit(line)

    def to_string(self) -> str:
        return "\n".join(self.lines)


class ZigEmitter:
    """
    Zig syntax helpers.

    Responsibilities:
    - Spell declarations, signatures and statements in Zig
    - Quote identifiers and string literals

    Does NOT:
    - Decide which bindings exist
    - Map schema types (see TypeMapper)
    """

    # ============================================================================
    # Literals and identifiers
    # ============================================================================

    @staticmethod
    def string_literal(text: str) -> str:
        escaped = text.replace("\\", "\\\\").replace("\"", "\\\"").replace("\n", "\\n")
        return f"\"{escaped}\""

    @staticmethod
    def identifier(name: str) -> str:
        """Return `name` as-is when it is a plain identifier, otherwise as `@"..."`."""
        if _IDENT_RE.match(name) and name not in ZIG_KEYWORDS:
            return name
        return "@" + ZigEmitter.string_literal(name)

    # ============================================================================
    # Declarations
    # ============================================================================

    @staticmethod
    def header(world_name: str) -> List[str]:
        return [
            "// Generated by wzgen. DO NOT EDIT.",
            f"// world: {world_name}",
        ]

    @staticmethod
    def import_std() -> str:
        return "const std = @import(\"std\");"

    @staticmethod
    def const_decl(name: str, value: str, type_: Optional[str] = None) -> str:
        if type_:
            return f"const {name}: {type_} = {value};"
        return f"const {name} = {value};"

    @staticmethod
    def param_list(params: Sequence[Tuple[str, str]]) -> str:
        return ", ".join(f"{name}: {ty}" for name, ty in params)

    @staticmethod
    def fn_header(
        name: str,
        params: Sequence[Tuple[str, str]],
        return_type: Optional[str],
        *,
        c_callconv: bool = False,
        export: bool = False,
        pub: bool = False,
    ) -> str:
        """Function signature followed by the opening brace."""
        prefix = ""
        if pub:
            prefix += "pub "
        if export:
            prefix += "export "
        callconv = " callconv(.C)" if c_callconv else ""
        ret = return_type or "void"
        return f"{prefix}fn {name}({ZigEmitter.param_list(params)}){callconv} {ret} {{"

    @staticmethod
    def container_open(name: str) -> str:
        return f"const {name} = struct {{"

    @staticmethod
    def container_close() -> str:
        return "};"

    # ============================================================================
    # Statements
    # ============================================================================

    @staticmethod
    def slice_of(ptr: str, length: str) -> str:
        return f"{ptr}[0..{length}]"

    @staticmethod
    def call(callee: str, args: Iterable[str]) -> str:
        return f"{callee}({', '.join(args)})"

    @staticmethod
    def discard(name: str) -> str:
        return f"_ = {name};"

    @staticmethod
    def ret(value: Optional[str] = None) -> str:
        if value is None:
            return "return;"
        return f"return {value};"

    @staticmethod
    def panic(message: str) -> str:
        return f"@panic({ZigEmitter.string_literal(message)});"

    @staticmethod
    def write_u32_le(buffer: str, offset: int, value: str) -> str:
        return f"std.mem.writeInt(u32, {buffer}[{offset}..{offset + 4}], {value}, .little);"

    @staticmethod
    def read_u32_le(buffer: str, offset: int) -> str:
        return f"std.mem.readInt(u32, {buffer}[{offset}..{offset + 4}], .little)"

    @staticmethod
    def export_registration(symbol: str, export_name: str) -> str:
        return f"@export({symbol}, .{{ .name = {ZigEmitter.string_literal(export_name)} }});"

    @staticmethod
    def program_entry() -> str:
        return "pub fn main() void {}"
