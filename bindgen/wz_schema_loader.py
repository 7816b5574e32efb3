"""
Schema loader.

Reads a resolved interface schema from its JSON form and builds the typed
model in wz_schema. The document is validated with jsonschema first; id
references are checked afterwards, since they cannot be expressed in the
JSON schema itself.

Document layout (all ids are list indices):

    {
      "packages":   [{"namespace": "text", "name": "ops", "version": null}],
      "interfaces": [{"name": "format", "package": 0, "types": {"bytes": 0},
                      "functions": [{"name": "shout",
                                     "params": [{"name": "s", "type": "string"}],
                                     "results": ["string"]}]}],
      "types":      [{"name": "bytes", "owner": {"interface": 0}, "kind": {"list": "u8"}}],
      "worlds":     [{"name": "formatter", "package": 0, "imports": [],
                      "exports": [{"key": {"interface": 0}, "item": {"interface": 0}}]}]
    }

A type is either a primitive name or an integer type id.
"""

#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2025-2026 gwz

import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import jsonschema

from wz_diagnostics import GeneratorError, SchemaError
from wz_schema import (
    WIT_PRIMITIVE_TYPES,
    Case, EnumKind, Field, FlagsKind, FutureKind, Function, FunctionItem, HandleKind, Interface,
    InterfaceItem, InterfaceKey, InterfaceOwner, ListKind, NameKey, OptionKind, Package, RecordKind,
    Resolve, ResourceKind, ResultKind, StreamKind, TupleKind, Type, TypeAlias, TypeDef, TypeDefKind,
    TypeItem, TypeRef, VariantKind, World, WorldItem, WorldKey, WorldOwner, get_primitive_type,
)


_TYPE = {"$ref": "#/$defs/type"}
_OPT_TYPE = {"anyOf": [_TYPE, {"type": "null"}]}
_ID = {"type": "integer", "minimum": 0}
_NAMED_TYPE = {
    "type": "object",
    "required": ["name", "type"],
    "properties": {"name": {"type": "string"}, "type": _TYPE},
}

RESOLVE_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": ["worlds"],
    "properties": {
        "packages": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["namespace", "name"],
                "properties": {
                    "namespace": {"type": "string", "minLength": 1},
                    "name": {"type": "string", "minLength": 1},
                    "version": {"type": ["string", "null"]},
                },
            },
        },
        "interfaces": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "name": {"type": ["string", "null"]},
                    "package": {"anyOf": [_ID, {"type": "null"}]},
                    "types": {"type": "object", "additionalProperties": _ID},
                    "functions": {"type": "array", "items": {"$ref": "#/$defs/function"}},
                },
            },
        },
        "types": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["kind"],
                "properties": {
                    "name": {"type": ["string", "null"]},
                    "owner": {
                        "anyOf": [
                            {"type": "null"},
                            {"type": "object", "required": ["world"], "properties": {"world": _ID}},
                            {"type": "object", "required": ["interface"], "properties": {"interface": _ID}},
                        ]
                    },
                    "kind": {"$ref": "#/$defs/kind"},
                },
            },
        },
        "worlds": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["name"],
                "properties": {
                    "name": {"type": "string", "minLength": 1},
                    "package": {"anyOf": [_ID, {"type": "null"}]},
                    "imports": {"type": "array", "items": {"$ref": "#/$defs/world_entry"}},
                    "exports": {"type": "array", "items": {"$ref": "#/$defs/world_entry"}},
                },
            },
        },
    },
    "$defs": {
        "type": {
            "anyOf": [
                {"type": "string", "enum": list(WIT_PRIMITIVE_TYPES)},
                _ID,
            ]
        },
        "function": {
            "type": "object",
            "required": ["name"],
            "properties": {
                "name": {"type": "string", "minLength": 1},
                "params": {"type": "array", "items": _NAMED_TYPE},
                "results": {"type": "array", "items": {"anyOf": [_TYPE, _NAMED_TYPE]}},
            },
        },
        "world_entry": {
            "type": "object",
            "required": ["key", "item"],
            "properties": {
                "key": {
                    "anyOf": [
                        {"type": "string", "minLength": 1},
                        {"type": "object", "required": ["interface"], "properties": {"interface": _ID}},
                    ]
                },
                "item": {
                    "type": "object",
                    "minProperties": 1,
                    "maxProperties": 1,
                    "properties": {
                        "interface": _ID,
                        "function": {"$ref": "#/$defs/function"},
                        "type": _ID,
                    },
                    "additionalProperties": False,
                },
            },
        },
        "kind": {
            "anyOf": [
                {"type": "string", "enum": ["resource"]},
                {
                    "type": "object",
                    "minProperties": 1,
                    "maxProperties": 1,
                    "additionalProperties": False,
                    "properties": {
                        "type": _TYPE,
                        "list": _TYPE,
                        "option": _TYPE,
                        "result": {
                            "type": "object",
                            "properties": {"ok": _OPT_TYPE, "err": _OPT_TYPE},
                        },
                        "tuple": {"type": "array", "items": _TYPE},
                        "record": {"type": "array", "items": _NAMED_TYPE},
                        "variant": {
                            "type": "array",
                            "items": {
                                "type": "object",
                                "required": ["name"],
                                "properties": {"name": {"type": "string"}, "type": _OPT_TYPE},
                            },
                        },
                        "enum": {"type": "array", "items": {"type": "string"}},
                        "flags": {"type": "array", "items": {"type": "string"}},
                        "resource": {"type": "object"},
                        "handle": {
                            "type": "object",
                            "minProperties": 1,
                            "maxProperties": 1,
                            "additionalProperties": False,
                            "properties": {"own": _ID, "borrow": _ID},
                        },
                        "future": _OPT_TYPE,
                        "stream": _OPT_TYPE,
                    },
                },
            ]
        },
    },
}


def load_schema(path: Path) -> Resolve:
    """
    Read and build a Resolve from a JSON file.

    Raises GeneratorError (GEN-0010) if the file cannot be read and
    SchemaError for invalid documents.
    """
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise GeneratorError(f"[GEN-0010] cannot read schema '{path}': {e}", filename=str(path)) from e
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as e:
        raise SchemaError(f"[SCH-0010] schema '{path}' is not valid JSON: {e}", filename=str(path)) from e
    return schema_from_json(payload, filename=str(path))


def schema_from_json(payload: Any, filename: Optional[str] = None) -> Resolve:
    """Validate a decoded schema document and build the typed model."""
    try:
        jsonschema.validate(payload, RESOLVE_SCHEMA)
    except jsonschema.ValidationError as e:
        location = "/".join(str(p) for p in e.absolute_path) or "<root>"
        raise SchemaError(f"[SCH-0010] invalid schema at '{location}': {e.message}", filename=filename) from e

    builder = _ResolveBuilder(payload, filename)
    return builder.build()


class _ResolveBuilder:
    """Turns a validated document into a Resolve, checking every id."""

    def __init__(self, payload: Dict[str, Any], filename: Optional[str]):
        self.payload = payload
        self.filename = filename
        self.n_packages = len(payload.get("packages", []))
        self.n_interfaces = len(payload.get("interfaces", []))
        self.n_types = len(payload.get("types", []))
        self.n_worlds = len(payload.get("worlds", []))

    def build(self) -> Resolve:
        resolve = Resolve()
        for raw in self.payload.get("packages", []):
            resolve.packages.append(Package(raw["namespace"], raw["name"], raw.get("version")))
        for idx, raw in enumerate(self.payload.get("interfaces", [])):
            resolve.interfaces.append(self._interface(idx, raw))
        for idx, raw in enumerate(self.payload.get("types", [])):
            resolve.types.append(self._typedef(idx, raw))
        for raw in self.payload.get("worlds", []):
            resolve.worlds.append(self._world(raw))
        return resolve

    # --- id checks ---

    def _check_id(self, kind: str, value: int, limit: int, where: str) -> int:
        if not (0 <= value < limit):
            raise SchemaError(f"[SCH-0020] {where} refers to unknown {kind} id {value}", filename=self.filename)
        return value

    def _opt_package(self, value: Optional[int], where: str) -> Optional[int]:
        if value is None:
            return None
        return self._check_id("package", value, self.n_packages, where)

    # --- types ---

    def _type(self, raw: Any, where: str) -> Type:
        if isinstance(raw, str):
            return get_primitive_type(raw)
        return TypeRef(self._check_id("type", raw, self.n_types, where))

    def _opt_type(self, raw: Any, where: str) -> Optional[Type]:
        return None if raw is None else self._type(raw, where)

    def _kind(self, raw: Any, where: str) -> TypeDefKind:
        if raw == "resource":
            return ResourceKind()
        (tag, body), = raw.items()
        if tag == "type":
            return TypeAlias(self._type(body, where))
        elif tag == "list":
            return ListKind(self._type(body, where))
        elif tag == "option":
            return OptionKind(self._type(body, where))
        elif tag == "result":
            return ResultKind(self._opt_type(body.get("ok"), where), self._opt_type(body.get("err"), where))
        elif tag == "tuple":
            return TupleKind(tuple(self._type(t, where) for t in body))
        elif tag == "record":
            return RecordKind(tuple(Field(f["name"], self._type(f["type"], where)) for f in body))
        elif tag == "variant":
            return VariantKind(tuple(Case(c["name"], self._opt_type(c.get("type"), where)) for c in body))
        elif tag == "enum":
            return EnumKind(tuple(body))
        elif tag == "flags":
            return FlagsKind(tuple(body))
        elif tag == "resource":
            return ResourceKind()
        elif tag == "handle":
            (ownership, resource), = body.items()
            return HandleKind(ownership, self._check_id("type", resource, self.n_types, where))
        elif tag == "future":
            return FutureKind(self._opt_type(body, where))
        elif tag == "stream":
            return StreamKind(self._opt_type(body, where))
        # unreachable after schema validation
        raise SchemaError(f"[SCH-0010] {where}: unknown type kind '{tag}'", filename=self.filename)

    def _typedef(self, idx: int, raw: Dict[str, Any]) -> TypeDef:
        where = f"type {idx}"
        owner = None
        raw_owner = raw.get("owner")
        if raw_owner is not None:
            if "world" in raw_owner:
                owner = WorldOwner(self._check_id("world", raw_owner["world"], self.n_worlds, where))
            else:
                owner = InterfaceOwner(self._check_id("interface", raw_owner["interface"], self.n_interfaces, where))
        return TypeDef(name=raw.get("name"), kind=self._kind(raw["kind"], where), owner=owner)

    # --- functions and interfaces ---

    def _function(self, raw: Dict[str, Any], where: str) -> Function:
        where = f"{where}, function '{raw['name']}'"
        params: List[Tuple[str, Type]] = [
            (p["name"], self._type(p["type"], where)) for p in raw.get("params", [])
        ]
        results: List[Type] = []
        for r in raw.get("results", []):
            # named results flatten to their types
            results.append(self._type(r["type"] if isinstance(r, dict) else r, where))
        return Function(raw["name"], tuple(params), tuple(results))

    def _interface(self, idx: int, raw: Dict[str, Any]) -> Interface:
        where = f"interface {idx}"
        iface = Interface(name=raw.get("name"), package=self._opt_package(raw.get("package"), where))
        for name, type_id in raw.get("types", {}).items():
            iface.types[name] = self._check_id("type", type_id, self.n_types, where)
        for raw_func in raw.get("functions", []):
            func = self._function(raw_func, where)
            if func.name in iface.functions:
                raise SchemaError(f"[SCH-0010] {where} defines function '{func.name}' twice", filename=self.filename)
            iface.functions[func.name] = func
        return iface

    # --- worlds ---

    def _world_entries(self, entries: List[Dict[str, Any]], where: str) -> Dict[WorldKey, WorldItem]:
        items: Dict[WorldKey, WorldItem] = {}
        for entry in entries:
            raw_key = entry["key"]
            if isinstance(raw_key, str):
                key: WorldKey = NameKey(raw_key)
            else:
                key = InterfaceKey(self._check_id("interface", raw_key["interface"], self.n_interfaces, where))
                raw_iface = self.payload["interfaces"][key.interface]
                if raw_iface.get("name") is None or raw_iface.get("package") is None:
                    raise SchemaError(
                        f"[SCH-0010] {where}: interface {key.interface} used as a key needs a name and a package",
                        filename=self.filename,
                    )

            raw_item = entry["item"]
            item: WorldItem
            if "interface" in raw_item:
                item = InterfaceItem(self._check_id("interface", raw_item["interface"], self.n_interfaces, where))
            elif "function" in raw_item:
                item = FunctionItem(self._function(raw_item["function"], where))
            else:
                item = TypeItem(self._check_id("type", raw_item["type"], self.n_types, where))

            if isinstance(key, InterfaceKey) and not isinstance(item, InterfaceItem):
                raise SchemaError(f"[SCH-0010] {where}: interface key must name an interface item", filename=self.filename)
            if isinstance(key, InterfaceKey) and key.interface != item.interface:
                raise SchemaError(
                    f"[SCH-0010] {where}: key interface {key.interface} does not match item interface {item.interface}",
                    filename=self.filename,
                )
            if key in items:
                raise SchemaError(f"[SCH-0010] {where}: duplicate entry for key {raw_key!r}", filename=self.filename)
            items[key] = item
        return items

    def _world(self, raw: Dict[str, Any]) -> World:
        where = f"world '{raw['name']}'"
        world = World(name=raw["name"], package=self._opt_package(raw.get("package"), where))
        world.imports = self._world_entries(raw.get("imports", []), f"{where} imports")
        world.exports = self._world_entries(raw.get("exports", []), f"{where} exports")
        return world
