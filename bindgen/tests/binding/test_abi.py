#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2026 gwz

import pytest

from conftest import has_error_code
from wz_abi import flatten_signature, guest_export_needs_post_return
from wz_diagnostics import UnsupportedArity, UnsupportedType
from wz_schema import Function, TypeRef, get_primitive_type
from wz_schema_loader import schema_from_json
from wz_type_mapper import TypeMapper


def _resolve(types=()):
    return schema_from_json({"types": list(types), "worlds": [{"name": "w"}]})


def _func(name, params=(), results=()):
    return Function(
        name,
        tuple((n, get_primitive_type(t) if isinstance(t, str) else t) for n, t in params),
        tuple(get_primitive_type(t) if isinstance(t, str) else t for t in results),
    )


def test_scalar_parameters_map_one_to_one():
    sig = flatten_signature(TypeMapper(_resolve()), _func("add", [("a", "u32"), ("b", "u32")], ["u32"]), str)

    assert [(p.name, p.wire_type) for p in sig.params] == [("a", "u32"), ("b", "u32")]
    assert sig.result == "u32"
    assert sig.storage_params == [("a", "u32"), ("b", "u32")]
    assert sig.storage_result == "u32"


def test_list_like_parameters_expand_in_place():
    func = _func("mix", [("n", "u8"), ("s", "string"), ("flag", "bool")])

    sig = flatten_signature(TypeMapper(_resolve()), func, str)

    assert [(p.name, p.wire_type) for p in sig.params] == [
        ("n", "u8"),
        ("sPtr", "[*]u8"),
        ("sLength", "u32"),
        ("flag", "bool"),
    ]
    assert sig.result is None
    assert sig.storage_params[1] == ("s", "[]u8")


def test_string_result_is_one_pointer():
    sig = flatten_signature(TypeMapper(_resolve()), _func("shout", [("s", "string")], ["string"]), str)

    assert sig.param_types() == ["[*]u8", "u32"]
    assert sig.result == "[*]u8"
    assert sig.storage_result == "[]u8"


def test_param_name_callback_is_applied():
    sig = flatten_signature(
        TypeMapper(_resolve()), _func("f", [("in-text", "string")]), lambda n: n.replace("-", "_")
    )

    assert [p.name for p in sig.params] == ["in_textPtr", "in_textLength"]


def test_multiple_results_are_rejected():
    with pytest.raises(UnsupportedArity) as exc:
        flatten_signature(TypeMapper(_resolve()), _func("pair", results=["u32", "u32"]), str)

    assert has_error_code(exc.value, "SCH-0050")
    assert exc.value.function == "pair"
    assert exc.value.count == 2


def test_unsupported_parameter_names_function_and_position():
    resolve = _resolve([{"kind": {"option": "u32"}}])

    with pytest.raises(UnsupportedType) as exc:
        flatten_signature(TypeMapper(resolve), _func("maybe", [("x", TypeRef(0))]), str)

    assert exc.value.function == "maybe"
    assert "parameter 'x'" in exc.value.message


@pytest.mark.parametrize(
    "types, result, expected",
    [
        ([], "u32", False),
        ([], "string", True),
        ([{"kind": {"list": "u8"}}], TypeRef(0), True),
        ([{"kind": {"list": "string"}}], TypeRef(0), True),
        ([{"kind": {"option": "string"}}], TypeRef(0), True),
        ([{"kind": {"option": "u8"}}], TypeRef(0), False),
        ([{"kind": {"record": [{"name": "a", "type": "u8"}, {"name": "b", "type": "string"}]}}], TypeRef(0), True),
        ([{"kind": {"enum": ["a"]}}], TypeRef(0), False),
        ([{"kind": {"type": "string"}}], TypeRef(0), True),
    ],
)
def test_post_return_oracle(types, result, expected):
    resolve = _resolve(types)

    assert guest_export_needs_post_return(resolve, _func("f", results=[result])) is expected


def test_post_return_oracle_without_results():
    assert guest_export_needs_post_return(_resolve(), _func("f", [("s", "string")])) is False
