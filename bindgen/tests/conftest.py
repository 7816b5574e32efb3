#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2026 gwz

from __future__ import annotations

import copy
import json
import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from wz_backend import WorldAssembler
from wz_context import GenerationContext, LogLevel
from wz_options import ExportKey, GeneratorOptions
from wz_schema_loader import schema_from_json


# world "calculator" exporting `add(a: u32, b: u32) -> u32` with no interface
CALCULATOR_DOC = {
    "worlds": [
        {
            "name": "calculator",
            "exports": [
                {
                    "key": "add",
                    "item": {
                        "function": {
                            "name": "add",
                            "params": [{"name": "a", "type": "u32"}, {"name": "b", "type": "u32"}],
                            "results": ["u32"],
                        }
                    },
                }
            ],
        }
    ]
}

# interface "text:ops/format" exporting `shout(s: string) -> string`
TEXT_OPS_DOC = {
    "packages": [{"namespace": "text", "name": "ops"}],
    "interfaces": [
        {
            "name": "format",
            "package": 0,
            "functions": [
                {"name": "shout", "params": [{"name": "s", "type": "string"}], "results": ["string"]},
            ],
        }
    ],
    "worlds": [
        {
            "name": "text-tools",
            "package": 0,
            "exports": [{"key": {"interface": 0}, "item": {"interface": 0}}],
        }
    ],
}


@pytest.fixture
def repo_root() -> Path:
    return PROJECT_ROOT


@pytest.fixture
def calculator_doc() -> dict:
    return copy.deepcopy(CALCULATOR_DOC)


@pytest.fixture
def text_ops_doc() -> dict:
    return copy.deepcopy(TEXT_OPS_DOC)


@pytest.fixture
def write_schema(tmp_path: Path):
    """Write a schema document to a JSON file and return its path."""

    def _write(doc: dict, name: str = "schema.json") -> Path:
        path = tmp_path / name
        path.write_text(json.dumps(doc, indent=2))
        return path

    return _write


def make_context(**options) -> GenerationContext:
    """GenerationContext with the given GeneratorOptions fields; logging silenced."""
    if "exports" in options:
        options["exports"] = {ExportKey.parse(k): v for k, v in options["exports"].items()}
    return GenerationContext(options=GeneratorOptions(**options), log_level=LogLevel.SILENT)


@pytest.fixture
def generate():
    """Generate the files for a schema document.

    Usage:
        def test_something(generate, calculator_doc):
            files = generate(calculator_doc, stubs=True)
            assert "calculator.zig" in files
    """

    def _generate(doc: dict, world: int = 0, oracle=None, **options):
        resolve = schema_from_json(doc)
        assembler = WorldAssembler(resolve, context=make_context(**options), post_return_oracle=oracle)
        return assembler.generate(world)

    return _generate


def function_doc(name: str, params=(), results=()) -> dict:
    """A world-level function export entry."""
    return {
        "key": name,
        "item": {
            "function": {
                "name": name,
                "params": [{"name": n, "type": t} for n, t in params],
                "results": list(results),
            }
        },
    }


def has_error_code(error, code: str) -> bool:
    """Check if an error's message carries the given code, e.g. "SCH-0040" or "[SCH-0040]"."""
    if not code.startswith("["):
        code = f"[{code}]"
    return code in str(error)
