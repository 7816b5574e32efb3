#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2026 gwz

import pytest

from conftest import has_error_code, make_context
from wz_diagnostics import SchemaError
from wz_driver import BindgenDriver
from wz_schema_loader import schema_from_json


def _two_worlds():
    return schema_from_json({"worlds": [{"name": "alpha"}, {"name": "beta"}]})


def test_select_only_world(calculator_doc):
    driver = BindgenDriver(context=make_context())

    assert driver.select_world(schema_from_json(calculator_doc)) == 0


def test_select_world_by_name():
    driver = BindgenDriver(context=make_context())

    assert driver.select_world(_two_worlds(), "beta") == 1


def test_unknown_world_lists_known_worlds():
    driver = BindgenDriver(context=make_context())

    with pytest.raises(SchemaError) as exc:
        driver.select_world(_two_worlds(), "gamma")

    assert has_error_code(exc.value, "SCH-0030")
    assert "known worlds: 'alpha', 'beta'" in exc.value.message


def test_several_worlds_need_a_name():
    driver = BindgenDriver(context=make_context())

    with pytest.raises(SchemaError) as exc:
        driver.select_world(_two_worlds())

    assert has_error_code(exc.value, "SCH-0060")


def test_run_end_to_end(write_schema, text_ops_doc):
    driver = BindgenDriver(context=make_context(stubs=True))

    files = driver.run(write_schema(text_ops_doc))

    assert list(files) == ["text-tools.zig"]
    assert "const TextOpsFormat = struct {" in files["text-tools.zig"]


def test_run_with_named_world(write_schema, calculator_doc):
    calculator_doc["worlds"].append({"name": "other"})
    driver = BindgenDriver(context=make_context(stubs=True))

    files = driver.run(write_schema(calculator_doc), "other")

    assert list(files) == ["other.zig"]
    assert "__export_add" not in files["other.zig"]


def test_custom_oracle_is_used(write_schema, calculator_doc):
    driver = BindgenDriver(context=make_context(stubs=True), post_return_oracle=lambda func: True)

    text = driver.run(write_schema(calculator_doc))["calculator.zig"]

    assert "@export(__post_return_add, .{ .name = \"cabi_post_add\" });" in text
