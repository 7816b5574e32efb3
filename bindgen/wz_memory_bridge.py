#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2025-2026 gwz

from typing import List

from wz_abi import RETURN_AREA_ALIGN, RETURN_AREA_SIZE
from wz_zig_emitter import ZigCodeBuilder, ZigEmitter

ALLOC_FN = "alloc"
FREE_FN = "free"
REALLOC_EXPORT = "cabi_realloc"
RETURN_AREA = "ret_area"
ALLOCATOR = "allocator"
MAX_ALIGN = "max_align"


class MemoryBridge:
    """
    Runtime memory contract of the generated artifact.

    The preamble defines three operations shared by every binding:

    - alloc(len):  used by LOWER; panics on out-of-memory since an export
                   has no way to report failure to its caller.
    - cabi_realloc(orig_ptr, orig_size, alignment, new_size): exported for
                   the caller; returns null on failure, allocates fresh
                   memory when orig_ptr is null.
    - free(ptr, len): used only by post-return entry points.

    The bridge also spells the calls, so LOWER and POST-RETURN cannot drift
    from the preamble's names.
    """

    def preamble(self) -> ZigCodeBuilder:
        out = ZigCodeBuilder()
        out.emit(ZigEmitter.import_std())
        out.emit()
        out.emit("var gpa = std.heap.GeneralPurposeAllocator(.{}){};")
        out.emit(f"const {ALLOCATOR} = gpa.allocator();")
        out.emit()
        out.emit(f"const {MAX_ALIGN} = 8;")
        out.emit(f"var {RETURN_AREA}: [{RETURN_AREA_SIZE}]u8 align({RETURN_AREA_ALIGN}) = undefined;")
        out.emit()
        self._emit_alloc(out)
        out.emit()
        self._emit_free(out)
        out.emit()
        self._emit_realloc(out)
        return out

    def _emit_alloc(self, out: ZigCodeBuilder) -> None:
        out.emit(ZigEmitter.fn_header(ALLOC_FN, [("len", "usize")], "[*]u8"))
        out.indent()
        out.emit(f"const buf = {ALLOCATOR}.alignedAlloc(u8, {MAX_ALIGN}, len) catch |e| {{")
        out.indent()
        out.emit("std.debug.panic(\"allocation of {d} bytes failed: {}\", .{ len, e });")
        out.dedent()
        out.emit("};")
        out.emit(ZigEmitter.ret("buf.ptr"))
        out.dedent()
        out.emit("}")

    def _emit_free(self, out: ZigCodeBuilder) -> None:
        out.emit(ZigEmitter.fn_header(FREE_FN, [("ptr", "[*]u8"), ("len", "usize")], "void"))
        out.indent()
        out.emit(ZigEmitter.const_decl("buf", f"@alignCast({ZigEmitter.slice_of('ptr', 'len')})",
                                       f"[]align({MAX_ALIGN}) u8"))
        out.emit(f"{ALLOCATOR}.free(buf);")
        out.dedent()
        out.emit("}")

    def _emit_realloc(self, out: ZigCodeBuilder) -> None:
        params = [("orig_ptr", "?[*]u8"), ("orig_size", "usize"), ("alignment", "usize"), ("new_size", "usize")]
        out.emit(ZigEmitter.fn_header(REALLOC_EXPORT, params, "?[*]u8", export=True))
        out.indent()
        out.emit(ZigEmitter.discard("alignment"))
        out.emit("if (orig_ptr) |ptr| {")
        out.indent()
        out.emit(ZigEmitter.const_decl("old", f"@alignCast({ZigEmitter.slice_of('ptr', 'orig_size')})",
                                       f"[]align({MAX_ALIGN}) u8"))
        out.emit(f"const grown = {ALLOCATOR}.realloc(old, new_size) catch return null;")
        out.emit(ZigEmitter.ret("grown.ptr"))
        out.dedent()
        out.emit("}")
        out.emit(f"const buf = {ALLOCATOR}.alignedAlloc(u8, {MAX_ALIGN}, new_size) catch return null;")
        out.emit(ZigEmitter.ret("buf.ptr"))
        out.dedent()
        out.emit("}")

    # ============================================================================
    # Call spelling
    # ============================================================================

    def allocate_call(self, size_expr: str) -> str:
        return ZigEmitter.call(ALLOC_FN, [size_expr])

    def free_call(self, ptr_expr: str, size_expr: str) -> str:
        return ZigEmitter.call(FREE_FN, [ptr_expr, size_expr]) + ";"

    def return_area(self) -> str:
        return RETURN_AREA

    def return_area_address(self) -> str:
        return f"&{RETURN_AREA}"

    def runtime_symbols(self) -> List[str]:
        """Top-level names the preamble defines; bindings must not reuse them."""
        return [ALLOC_FN, FREE_FN, REALLOC_EXPORT, RETURN_AREA, ALLOCATOR, MAX_ALIGN, "gpa", "std", "main"]
