"""
Generator options.

Typed configuration for the Zig binding generator. Options can be supplied
as keyword arguments, as the `key=value,key=value` strings accepted on the
command line, or as a JSON config file; every source is validated here so
generation never starts with a malformed configuration.
"""

#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2025-2026 gwz

import json
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, FrozenSet, Iterator, Mapping, Optional, Tuple

import jsonschema

from wz_diagnostics import ConfigError


OPTIONS_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "additionalProperties": False,
    "properties": {
        "reserved_words": {"type": "array", "items": {"type": "string", "minLength": 1}},
        "exports": {
            "anyOf": [
                {"type": "string"},
                {"type": "object", "additionalProperties": {"type": "string", "minLength": 1}},
            ]
        },
        "stubs": {"type": "boolean"},
        "with": {
            "anyOf": [
                {"type": "string"},
                {"type": "object", "additionalProperties": {"type": "string", "minLength": 1}},
            ]
        },
        "skip": {"type": "array", "items": {"type": "string"}},
        "export_prefix": {"type": ["string", "null"]},
    },
}


# Container names chosen through `with` must be plain identifiers.
_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


@dataclass(frozen=True, order=True)
class ExportKey:
    """
    Key of the export-override map.

    `name` is None for the world itself (spelled `world` in config input),
    otherwise the scope's export key, e.g. `text:ops/format`.
    """
    name: Optional[str] = None

    @staticmethod
    def world() -> 'ExportKey':
        return ExportKey(None)

    @staticmethod
    def parse(key: str) -> 'ExportKey':
        if key == "world":
            return ExportKey.world()
        return ExportKey(key)

    def is_world(self) -> bool:
        return self.name is None

    def __str__(self) -> str:
        return "world" if self.name is None else self.name


@dataclass(frozen=True)
class GeneratorOptions:
    """
    Recognized generator options.

    Attributes:
        reserved_words: Identifiers that get a trailing '_' when a resolved name matches.
        exports:        Implementation container per exported scope (`world` or a scope key),
                        given as a Zig expression such as `@import("impl.zig").Format`.
        stubs:          Emit skeleton containers with placeholder bodies for scopes
                        without an `exports` entry.
        with_:          Canonical interface key -> caller-chosen container name.
        skip:           Function names that get no binding.
        export_prefix:  Prefix prepended to every registered export name.
    """
    reserved_words: FrozenSet[str] = frozenset()
    exports: Mapping[ExportKey, str] = field(default_factory=dict)
    stubs: bool = False
    with_: Mapping[str, str] = field(default_factory=dict)
    skip: FrozenSet[str] = frozenset()
    export_prefix: Optional[str] = None

    def __post_init__(self):
        for key, name in self.with_.items():
            if not _IDENTIFIER_RE.match(name):
                raise ConfigError(f"[CFG-0020] invalid option at 'with/{key}': '{name}' is not an identifier")

    @staticmethod
    def from_mapping(payload: Mapping[str, Any]) -> 'GeneratorOptions':
        """Build options from a decoded config object, validating it first."""
        try:
            jsonschema.validate(dict(payload), OPTIONS_SCHEMA)
        except jsonschema.ValidationError as e:
            location = "/".join(str(p) for p in e.absolute_path) or "<root>"
            raise ConfigError(f"[CFG-0020] invalid option at '{location}': {e.message}") from e

        exports = payload.get("exports", {})
        if isinstance(exports, str):
            export_map = parse_exports(exports)
        else:
            export_map = {ExportKey.parse(k): v for k, v in exports.items()}

        with_ = payload.get("with", {})
        if isinstance(with_, str):
            with_ = parse_with(with_)

        return GeneratorOptions(
            reserved_words=frozenset(payload.get("reserved_words", ())),
            exports=export_map,
            stubs=bool(payload.get("stubs", False)),
            with_=dict(with_),
            skip=frozenset(payload.get("skip", ())),
            export_prefix=payload.get("export_prefix"),
        )

    def implementation_for(self, key: ExportKey) -> Optional[str]:
        return self.exports.get(key)


# ============================================================================
# `key=value,key=value` parsing
# ============================================================================

def iterate_key_value_string(s: str) -> Iterator[Tuple[str, str]]:
    """
    Split `k1=v1,k2=v2` into pairs.

    Raises ConfigError for entries without '=' or with an empty key.
    """
    for entry in s.split(","):
        key, sep, value = entry.partition("=")
        key = key.strip()
        if not sep or not key:
            raise ConfigError(
                f"[CFG-0010] expected string of form `<key>=<value>[,<key>=<value>...]`; got `{s}`"
            )
        yield key, value.strip()


def parse_key_value_map(s: str) -> Dict[str, str]:
    if not s:
        return {}
    result: Dict[str, str] = {}
    for key, value in iterate_key_value_string(s):
        if key in result:
            raise ConfigError(f"[CFG-0010] duplicate key '{key}' in `{s}`")
        result[key] = value
    return result


def parse_exports(s: str) -> Dict[ExportKey, str]:
    return {ExportKey.parse(k): v for k, v in parse_key_value_map(s).items()}


def parse_with(s: str) -> Dict[str, str]:
    return parse_key_value_map(s)


def load_options_file(path: Path) -> GeneratorOptions:
    """Read a JSON config file into GeneratorOptions."""
    try:
        payload = json.loads(Path(path).read_text(encoding="utf-8"))
    except OSError as e:
        raise ConfigError(f"[CFG-0040] cannot read config file '{path}': {e}", filename=str(path)) from e
    except json.JSONDecodeError as e:
        raise ConfigError(f"[CFG-0040] config file '{path}' is not valid JSON: {e}", filename=str(path)) from e
    if not isinstance(payload, dict):
        raise ConfigError(f"[CFG-0040] JSON root in '{path}' must be an object", filename=str(path))
    return GeneratorOptions.from_mapping(payload)
