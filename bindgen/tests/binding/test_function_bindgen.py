#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2026 gwz

import pytest

from conftest import function_doc, make_context
from wz_diagnostics import UnsupportedArity
from wz_function_bindgen import FunctionBindingEmitter
from wz_memory_bridge import MemoryBridge
from wz_name_resolver import NameResolver, WorldScope
from wz_schema import InterfaceKey, NameKey
from wz_schema_loader import schema_from_json
from wz_type_mapper import TypeMapper


def _emitter(doc, oracle=None, **options):
    resolve = schema_from_json(doc)
    context = make_context(**options)
    resolver = NameResolver(resolve, context.options)
    resolver.prepare(0)
    return resolve, FunctionBindingEmitter(resolver, TypeMapper(resolve), MemoryBridge(), context, oracle)


def _world_doc(*entries):
    return {"worlds": [{"name": "w", "exports": list(entries)}]}


def test_scalar_function_binding(calculator_doc):
    resolve, emitter = _emitter(calculator_doc)
    add = resolve.worlds[0].exports[NameKey("add")].function

    block = emitter.emit(WorldScope(0), add)

    assert block.entry_symbol == "__export_add"
    assert block.export_name == "add"
    assert block.lift.lines == []
    assert block.invoke.lines == ["const result = Guest.add(a, b);"]
    assert block.lower.lines == ["return result;"]
    assert block.post_return is None
    assert block.entry().lines[0] == "fn __export_add(a: u32, b: u32) callconv(.C) u32 {"


def test_string_function_binding(text_ops_doc):
    resolve, emitter = _emitter(text_ops_doc)
    shout = resolve.interfaces[0].functions["shout"]

    block = emitter.emit(InterfaceKey(0), shout)

    assert block.entry_symbol == "__export_text_ops_format_shout"
    assert block.export_name == "text:ops/format#shout"
    assert block.lift.lines == ["const s = sPtr[0..sLength];"]
    assert block.invoke.lines == ["const result = TextOpsFormat.shout(s);"]
    assert block.entry().lines[0] == (
        "fn __export_text_ops_format_shout(sPtr: [*]u8, sLength: u32) callconv(.C) [*]u8 {"
    )


def test_lift_never_allocates(text_ops_doc):
    resolve, emitter = _emitter(text_ops_doc)

    block = emitter.emit(InterfaceKey(0), resolve.interfaces[0].functions["shout"])

    assert not any("alloc(" in line for line in block.lift.lines)


def test_list_like_lower_allocates_once_and_fills_return_area(text_ops_doc):
    resolve, emitter = _emitter(text_ops_doc)

    block = emitter.emit(InterfaceKey(0), resolve.interfaces[0].functions["shout"])

    lower = block.lower.lines
    assert sum("alloc(" in line for line in lower) == 1
    assert "const result_ptr = alloc(result_bytes.len);" in lower
    assert "std.mem.writeInt(u32, ret_area[0..4], @intCast(@intFromPtr(result_ptr)), .little);" in lower
    assert "std.mem.writeInt(u32, ret_area[4..8], @intCast(result.len), .little);" in lower
    assert lower[-1] == "return &ret_area;"


def test_post_return_frees_lowered_buffer(text_ops_doc):
    resolve, emitter = _emitter(text_ops_doc)

    block = emitter.emit(InterfaceKey(0), resolve.interfaces[0].functions["shout"])

    assert block.post_return_symbol == "__post_return_text_ops_format_shout"
    assert block.post_return_export_name == "cabi_post_text:ops/format#shout"
    assert block.post_return.lines == [
        "fn __post_return_text_ops_format_shout(arg: [*]u8) callconv(.C) void {",
        "    const addr = std.mem.readInt(u32, arg[0..4], .little);",
        "    const len = std.mem.readInt(u32, arg[4..8], .little);",
        "    const ptr: [*]u8 = @ptrFromInt(addr);",
        "    free(ptr, len * @sizeOf(u8));",
        "}",
    ]


def test_list_result_frees_element_bytes():
    doc = {
        "types": [{"kind": {"list": "u32"}}],
        "worlds": [{"name": "w", "exports": [function_doc("ids", results=[0])]}],
    }
    resolve, emitter = _emitter(doc)

    block = emitter.emit(WorldScope(0), resolve.worlds[0].exports[NameKey("ids")].function)

    assert "    free(ptr, len * @sizeOf(u32));" in block.post_return.lines


def test_post_return_follows_oracle(text_ops_doc):
    resolve, emitter = _emitter(text_ops_doc, oracle=lambda func: False)

    block = emitter.emit(InterfaceKey(0), resolve.interfaces[0].functions["shout"])

    assert block.post_return is None
    assert block.post_return_registrations() == []


def test_oracle_true_without_allocation_releases_nothing(calculator_doc):
    resolve, emitter = _emitter(calculator_doc, oracle=lambda func: True)

    block = emitter.emit(WorldScope(0), resolve.worlds[0].exports[NameKey("add")].function)

    assert block.post_return_export_name == "cabi_post_add"
    assert "    _ = arg;" in block.post_return.lines
    assert not any("free(" in line for line in block.post_return.lines)


def test_zero_result_function_is_plain_call():
    doc = _world_doc(function_doc("log-line", params=[("msg", "string")]))
    resolve, emitter = _emitter(doc)

    block = emitter.emit(WorldScope(0), resolve.worlds[0].exports[NameKey("log-line")].function)

    assert block.invoke.lines == ["Guest.logLine(msg);"]
    assert block.lower.lines == []
    assert block.entry().lines[0] == "fn __export_log_line(msgPtr: [*]u8, msgLength: u32) callconv(.C) void {"


def test_parameter_names_do_not_shadow_locals():
    doc = _world_doc(function_doc("echo", params=[("result", "u8"), ("alloc", "u8")], results=["u8"]))
    resolve, emitter = _emitter(doc)

    block = emitter.emit(WorldScope(0), resolve.worlds[0].exports[NameKey("echo")].function)

    assert block.invoke.lines == ["const result = Guest.echo(result_, alloc_);"]


def test_multi_result_function_is_rejected_before_emission():
    doc = _world_doc(function_doc("pair", results=["u32", "u32"]))
    resolve, emitter = _emitter(doc)

    with pytest.raises(UnsupportedArity):
        emitter.emit(WorldScope(0), resolve.worlds[0].exports[NameKey("pair")].function)

    assert emitter.resolver.claim_symbol("__export_pair") == "__export_pair"


def test_stub_method_discards_parameters(text_ops_doc):
    resolve, emitter = _emitter(text_ops_doc)

    block = emitter.emit(InterfaceKey(0), resolve.interfaces[0].functions["shout"])

    assert block.stub.lines == [
        "pub fn shout(s: []u8) []u8 {",
        "    _ = s;",
        "    @panic(\"unimplemented: text:ops/format#shout\");",
        "}",
    ]


def test_registrations(text_ops_doc):
    resolve, emitter = _emitter(text_ops_doc)

    block = emitter.emit(InterfaceKey(0), resolve.interfaces[0].functions["shout"])

    assert block.registrations() == [
        "@export(__export_text_ops_format_shout, .{ .name = \"text:ops/format#shout\" });"
    ]
    assert block.post_return_registrations() == [
        "@export(__post_return_text_ops_format_shout, .{ .name = \"cabi_post_text:ops/format#shout\" });"
    ]
