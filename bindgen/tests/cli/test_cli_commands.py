#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2026 gwz

import json

import pytest

from conftest import function_doc
import wzgen


def _run_main(argv):
    with pytest.raises(SystemExit) as exc:
        wzgen.main(argv)
    return exc.value.code


def test_gen_writes_world_file(write_schema, text_ops_doc, tmp_path):
    schema = write_schema(text_ops_doc)
    out_dir = tmp_path / "out"

    rc = _run_main(["gen", "--stubs", "-o", str(out_dir), str(schema)])

    assert rc == 0
    text = (out_dir / "text-tools.zig").read_text()
    assert text.startswith("// Generated by wzgen. DO NOT EDIT.\n// world: text-tools\n")
    assert "@export(__export_text_ops_format_shout, .{ .name = \"text:ops/format#shout\" });" in text


def test_gen_stdout_writes_nothing(write_schema, calculator_doc, tmp_path, monkeypatch, capsys):
    schema = write_schema(calculator_doc)
    monkeypatch.chdir(tmp_path)

    rc = _run_main(["gen", "--stdout", "--exports", "world=@import(\"calc.zig\")", str(schema)])

    assert rc == 0
    out = capsys.readouterr().out
    assert "const Guest = @import(\"calc.zig\");" in out
    assert out.endswith("pub fn main() void {}\n")
    assert not (tmp_path / "calculator.zig").exists()


def test_gen_reports_missing_implementation(write_schema, text_ops_doc, tmp_path, capsys):
    rc = _run_main(["gen", "-o", str(tmp_path), str(write_schema(text_ops_doc))])

    assert rc == 1
    assert "[CFG-0030]" in capsys.readouterr().err
    assert not (tmp_path / "text-tools.zig").exists()


def test_gen_reads_config_file(write_schema, text_ops_doc, tmp_path):
    config = tmp_path / "wzgen.json"
    config.write_text(json.dumps({"stubs": True, "with": {"text:ops/format": "Fmt"}}))

    rc = _run_main(["gen", "-c", str(config), "-o", str(tmp_path), str(write_schema(text_ops_doc))])

    assert rc == 0
    assert "const Fmt = struct {" in (tmp_path / "text-tools.zig").read_text()


def test_flags_override_config_file(write_schema, text_ops_doc, tmp_path):
    config = tmp_path / "wzgen.json"
    config.write_text(json.dumps({"stubs": True, "export_prefix": "v1-"}))

    rc = _run_main([
        "gen", "-c", str(config), "--export-prefix", "v2-", "-o", str(tmp_path), str(write_schema(text_ops_doc)),
    ])

    assert rc == 0
    assert ".name = \"v2-text:ops/format#shout\"" in (tmp_path / "text-tools.zig").read_text()


def test_check_success_and_failure(write_schema, text_ops_doc, capsys):
    schema = write_schema(text_ops_doc)

    assert _run_main(["check", "--stubs", str(schema)]) == 0
    assert _run_main(["check", str(schema)]) == 1
    assert "[CFG-0030]" in capsys.readouterr().err


def test_check_unknown_world(write_schema, calculator_doc, capsys):
    rc = _run_main(["check", "--stubs", "-w", "nope", str(write_schema(calculator_doc))])

    assert rc == 1
    assert "[SCH-0030]" in capsys.readouterr().err


def test_check_missing_schema(tmp_path, capsys):
    rc = _run_main(["check", str(tmp_path / "absent.json")])

    assert rc == 1
    assert "[GEN-0010]" in capsys.readouterr().err


def test_names_dump(write_schema, text_ops_doc, capsys):
    text_ops_doc["types"] = [{"name": "bytes", "owner": {"interface": 0}, "kind": {"list": "u8"}}]
    text_ops_doc["interfaces"][0]["types"] = {"bytes": 0}
    text_ops_doc["worlds"][0]["exports"].append(function_doc("ping"))

    rc = _run_main(["names", "--skip", "ping", str(write_schema(text_ops_doc))])

    assert rc == 0
    lines = capsys.readouterr().out.splitlines()
    assert lines[0] == "=== world text-tools ==="
    assert lines[1:6] == [
        "  TextOpsFormat",
        "    identifier: text_ops_format",
        "    export key: text:ops/format",
        "    functions:",
        "      text:ops/format#shout",
    ]
    assert lines[6] == "    types:"
    assert lines[7].split() == ["bytes", "list<u8>", "ListU8End"]
    assert "    export key: <world>" in lines
    assert "      ping [skipped]" in lines


def test_names_marks_remapped_scopes(write_schema, text_ops_doc, capsys):
    rc = _run_main(["names", "--with", "text:ops/format=Fmt", str(write_schema(text_ops_doc))])

    assert rc == 0
    assert "  Fmt (remapped)" in capsys.readouterr().out.splitlines()


def test_abi_dump(write_schema, text_ops_doc, capsys):
    text_ops_doc["worlds"][0]["exports"].append(
        function_doc("add", params=[("a", "u32"), ("b", "u32")], results=["u32"])
    )

    rc = _run_main(["abi", str(write_schema(text_ops_doc))])

    assert rc == 0
    assert capsys.readouterr().out.splitlines() == [
        "text:ops/format#shout(sPtr: [*]u8, sLength: u32) -> [*]u8  [post-return]",
        "add(a: u32, b: u32) -> u32",
    ]


def test_abi_reports_unsupported_functions(write_schema, calculator_doc, capsys):
    calculator_doc["worlds"][0]["exports"].append(function_doc("divmod", results=["u32", "u32"]))

    rc = _run_main(["abi", str(write_schema(calculator_doc))])

    captured = capsys.readouterr()
    assert rc == 1
    assert captured.out.splitlines() == ["add(a: u32, b: u32) -> u32", "divmod: unsupported"]
    assert "[SCH-0050]" in captured.err


def test_gen_rejects_non_identifier_remap(write_schema, text_ops_doc, tmp_path, capsys):
    rc = _run_main([
        "gen", "--stubs", "--with", "text:ops/format=my-fmt", "-o", str(tmp_path), str(write_schema(text_ops_doc)),
    ])

    assert rc == 1
    assert "[CFG-0020]" in capsys.readouterr().err
    assert not (tmp_path / "text-tools.zig").exists()


@pytest.mark.parametrize("results, code", [(["u32", "u32"], "SCH-0050"), ([0], "SCH-0040")])
def test_gen_unsupported_schema_writes_nothing(write_schema, calculator_doc, tmp_path, capsys, results, code):
    calculator_doc["types"] = [{"kind": {"option": "u8"}}]
    calculator_doc["worlds"][0]["exports"].append(function_doc("pair", results=results))
    out_dir = tmp_path / "out"

    rc = _run_main(["gen", "--stubs", "-o", str(out_dir), str(write_schema(calculator_doc))])

    assert rc == 1
    assert f"[{code}]" in capsys.readouterr().err
    assert not out_dir.exists()


def test_abi_reports_internal_errors(write_schema, capsys):
    doc = {
        "types": [{"name": "a", "kind": {"type": 1}}, {"name": "b", "kind": {"type": 0}}],
        "worlds": [{"name": "w", "exports": [function_doc("loop", params=[("x", 0)])]}],
    }

    rc = _run_main(["abi", str(write_schema(doc))])

    captured = capsys.readouterr()
    assert rc == 1
    assert captured.out.splitlines() == ["loop: unsupported"]
    assert "[ICE-1110]" in captured.err
