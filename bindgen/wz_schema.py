#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2025-2026 gwz

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple, Union

# ========================================
# Resolved interface schema (read-only).
# ========================================

WIT_PRIMITIVE_TYPES = (
    "bool", "u8", "u16", "u32", "u64", "s8", "s16", "s32", "s64",
    "f32", "f64", "char", "string",
)


class Type:
    """
    Base class for schema types.
    Concrete types are PrimitiveType and TypeRef.
    """
    pass


@dataclass(frozen=True)
class PrimitiveType(Type):
    name: str  # one of WIT_PRIMITIVE_TYPES


@dataclass(frozen=True)
class TypeRef(Type):
    id: int  # index into Resolve.types


# --- type definition kinds ---

class TypeDefKind:
    pass


@dataclass(frozen=True)
class TypeAlias(TypeDefKind):
    target: Type


@dataclass(frozen=True)
class ListKind(TypeDefKind):
    element: Type


@dataclass(frozen=True)
class OptionKind(TypeDefKind):
    inner: Type


@dataclass(frozen=True)
class ResultKind(TypeDefKind):
    ok: Optional[Type]
    err: Optional[Type]


@dataclass(frozen=True)
class TupleKind(TypeDefKind):
    types: Tuple[Type, ...]


@dataclass(frozen=True)
class Field:
    name: str
    type: Type


@dataclass(frozen=True)
class RecordKind(TypeDefKind):
    fields: Tuple[Field, ...]


@dataclass(frozen=True)
class Case:
    name: str
    type: Optional[Type]


@dataclass(frozen=True)
class VariantKind(TypeDefKind):
    cases: Tuple[Case, ...]


@dataclass(frozen=True)
class EnumKind(TypeDefKind):
    cases: Tuple[str, ...]


@dataclass(frozen=True)
class FlagsKind(TypeDefKind):
    flags: Tuple[str, ...]


@dataclass(frozen=True)
class ResourceKind(TypeDefKind):
    pass


@dataclass(frozen=True)
class HandleKind(TypeDefKind):
    ownership: str  # "own" or "borrow"
    resource: int  # TypeId of the resource


@dataclass(frozen=True)
class FutureKind(TypeDefKind):
    payload: Optional[Type]


@dataclass(frozen=True)
class StreamKind(TypeDefKind):
    payload: Optional[Type]


# --- type owners ---

@dataclass(frozen=True)
class WorldOwner:
    world: int


@dataclass(frozen=True)
class InterfaceOwner:
    interface: int


TypeOwner = Union[WorldOwner, InterfaceOwner, None]


@dataclass(frozen=True)
class TypeDef:
    name: Optional[str]
    kind: TypeDefKind
    owner: TypeOwner = None


# --- packages, interfaces, functions ---

@dataclass(frozen=True)
class Package:
    namespace: str
    name: str
    version: Optional[str] = None

    def qualified(self) -> str:
        """`namespace:name[@version]` as used in export keys."""
        base = f"{self.namespace}:{self.name}"
        if self.version:
            return f"{base}@{self.version}"
        return base


@dataclass(frozen=True)
class Function:
    name: str
    params: Tuple[Tuple[str, Type], ...] = ()
    results: Tuple[Type, ...] = ()


@dataclass
class Interface:
    name: Optional[str]
    package: Optional[int] = None
    functions: Dict[str, Function] = field(default_factory=dict)
    types: Dict[str, int] = field(default_factory=dict)


# --- world keys and items ---

@dataclass(frozen=True)
class NameKey:
    """An item named directly inside a world (`export foo: interface { ... }`)."""
    name: str


@dataclass(frozen=True)
class InterfaceKey:
    """An item referring to a package-level interface by id."""
    interface: int


WorldKey = Union[NameKey, InterfaceKey]


@dataclass(frozen=True)
class InterfaceItem:
    interface: int


@dataclass(frozen=True)
class FunctionItem:
    function: Function


@dataclass(frozen=True)
class TypeItem:
    type: int


WorldItem = Union[InterfaceItem, FunctionItem, TypeItem]


@dataclass
class World:
    name: str
    package: Optional[int] = None
    imports: Dict[WorldKey, WorldItem] = field(default_factory=dict)
    exports: Dict[WorldKey, WorldItem] = field(default_factory=dict)


@dataclass
class Resolve:
    """
    The resolved schema graph. Ids are list indices.

    Built once by the schema loader; never mutated by generation.
    """
    packages: List[Package] = field(default_factory=list)
    interfaces: List[Interface] = field(default_factory=list)
    types: List[TypeDef] = field(default_factory=list)
    worlds: List[World] = field(default_factory=list)

    def world_by_name(self, name: str) -> Optional[int]:
        for idx, world in enumerate(self.worlds):
            if world.name == name:
                return idx
        return None


# --- constructors for builtins ---

_PRIMITIVE_CACHE: Dict[str, PrimitiveType] = {}


def get_primitive_type(name: str) -> PrimitiveType:
    """
    Get (or create) the canonical PrimitiveType for a given name.
    """
    if name not in WIT_PRIMITIVE_TYPES:
        raise ValueError(f"unknown primitive type '{name}'")
    if name not in _PRIMITIVE_CACHE:
        _PRIMITIVE_CACHE[name] = PrimitiveType(name)
    return _PRIMITIVE_CACHE[name]


# --- type stringification for diagnostics ---

def format_type(t: Optional[Type], resolve: Optional[Resolve] = None) -> str:
    if t is None:
        return "<none>"
    if isinstance(t, PrimitiveType):
        return t.name
    if isinstance(t, TypeRef):
        if resolve is None or not (0 <= t.id < len(resolve.types)):
            return f"type#{t.id}"
        typedef = resolve.types[t.id]
        if typedef.name is not None:
            return typedef.name
        return format_type_kind(typedef.kind, resolve)
    return repr(t)


def format_type_kind(kind: TypeDefKind, resolve: Optional[Resolve] = None) -> str:
    if isinstance(kind, TypeAlias):
        return format_type(kind.target, resolve)
    elif isinstance(kind, ListKind):
        return f"list<{format_type(kind.element, resolve)}>"
    elif isinstance(kind, OptionKind):
        return f"option<{format_type(kind.inner, resolve)}>"
    elif isinstance(kind, ResultKind):
        ok = format_type(kind.ok, resolve) if kind.ok is not None else "_"
        err = format_type(kind.err, resolve) if kind.err is not None else "_"
        return f"result<{ok}, {err}>"
    elif isinstance(kind, TupleKind):
        return f"tuple<{', '.join(format_type(t, resolve) for t in kind.types)}>"
    elif isinstance(kind, RecordKind):
        return "record"
    elif isinstance(kind, VariantKind):
        return "variant"
    elif isinstance(kind, EnumKind):
        return "enum"
    elif isinstance(kind, FlagsKind):
        return "flags"
    elif isinstance(kind, ResourceKind):
        return "resource"
    elif isinstance(kind, HandleKind):
        return f"{kind.ownership}<{format_type(TypeRef(kind.resource), resolve)}>"
    elif isinstance(kind, FutureKind):
        return f"future<{format_type(kind.payload, resolve)}>"
    elif isinstance(kind, StreamKind):
        return f"stream<{format_type(kind.payload, resolve)}>"
    return repr(kind)
