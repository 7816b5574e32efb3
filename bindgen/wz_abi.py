"""
Canonical ABI flattening.

Turns a schema function signature into the flat list of primitive wire words
crossing the export boundary, and classifies which functions need a
post-return entry point.
"""

#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2025-2026 gwz

from dataclasses import dataclass, field
from typing import Callable, List, Optional, Set, Tuple

from wz_diagnostics import UnsupportedArity
from wz_schema import (
    Function, ListKind, OptionKind, PrimitiveType, RecordKind, Resolve, ResultKind, TupleKind, Type,
    TypeAlias, VariantKind,
)
from wz_type_mapper import TypeMapper
from wz_zig_emitter import ZigEmitter

# Size of the scratch buffer holding a lowered (pointer, length) result.
RETURN_AREA_SIZE = 8
RETURN_AREA_ALIGN = 4

PTR_SUFFIX = "Ptr"
LENGTH_SUFFIX = "Length"

PostReturnOracle = Callable[[Function], bool]


@dataclass
class AbiParam:
    """One wire word of a flattened parameter."""
    name: str
    wire_type: str


@dataclass
class AbiSignature:
    """
    Flat wire signature of an exported function.

    Attributes:
        params:       Ordered (wire name, wire type) pairs. A list-like parameter
                      contributes `<name>Ptr` and `<name>Length` in its own position.
        result:       Wire result type, or None when the function returns nothing.
        storage_params: Ordered (lifted name, storage type) pairs as the implementation sees them.
        storage_result: Storage type of the single result, or None.
    """
    params: List[AbiParam] = field(default_factory=list)
    result: Optional[str] = None
    storage_params: List[Tuple[str, str]] = field(default_factory=list)
    storage_result: Optional[str] = None

    def param_types(self) -> List[str]:
        return [p.wire_type for p in self.params]


def flatten_signature(mapper: TypeMapper, func: Function, param_name: Callable[[str], str]) -> AbiSignature:
    """
    Flatten `func` into an AbiSignature.

    `param_name` turns a schema parameter name into the lifted identifier;
    every name in the result is already quoted for Zig.
    Raises UnsupportedArity for more than one result and UnsupportedType for
    any parameter or result the mapper cannot spell.
    """
    if len(func.results) > 1:
        raise UnsupportedArity(func.name, len(func.results))

    sig = AbiSignature()
    for raw_name, ty in func.params:
        name = param_name(raw_name)
        position = f"parameter '{raw_name}'"
        storage = mapper.storage_type(ty, function=func.name, position=position)
        sig.storage_params.append((ZigEmitter.identifier(name), storage))
        words = mapper.wire_types(ty, function=func.name, position=position)
        if mapper.is_list_like(ty):
            sig.params.append(AbiParam(ZigEmitter.identifier(f"{name}{PTR_SUFFIX}"), words[0]))
            sig.params.append(AbiParam(ZigEmitter.identifier(f"{name}{LENGTH_SUFFIX}"), words[1]))
        else:
            sig.params.append(AbiParam(ZigEmitter.identifier(name), words[0]))

    if func.results:
        ty = func.results[0]
        sig.storage_result = mapper.storage_type(ty, function=func.name, position="result")
        sig.result = mapper.result_wire_type(ty, function=func.name)
    return sig


# ============================================================================
# Post-return classification
# ============================================================================

def _contains_list_data(resolve: Resolve, ty: Optional[Type], seen: Set[int]) -> bool:
    if ty is None:
        return False
    if isinstance(ty, PrimitiveType):
        return ty.name == "string"
    if ty.id in seen:
        return False
    seen.add(ty.id)

    kind = resolve.types[ty.id].kind
    if isinstance(kind, ListKind):
        return True
    if isinstance(kind, TypeAlias):
        return _contains_list_data(resolve, kind.target, seen)
    if isinstance(kind, OptionKind):
        return _contains_list_data(resolve, kind.inner, seen)
    if isinstance(kind, ResultKind):
        return _contains_list_data(resolve, kind.ok, seen) or _contains_list_data(resolve, kind.err, seen)
    if isinstance(kind, TupleKind):
        return any(_contains_list_data(resolve, t, seen) for t in kind.types)
    if isinstance(kind, RecordKind):
        return any(_contains_list_data(resolve, f.type, seen) for f in kind.fields)
    if isinstance(kind, VariantKind):
        return any(_contains_list_data(resolve, c.type, seen) for c in kind.cases)
    # enums, flags, handles, futures and streams are plain words on the wire
    return False


def guest_export_needs_post_return(resolve: Resolve, func: Function) -> bool:
    """True when lowering `func`'s result allocates memory the caller must release."""
    return any(_contains_list_data(resolve, ty, set()) for ty in func.results)


def default_post_return_oracle(resolve: Resolve) -> PostReturnOracle:
    return lambda func: guest_export_needs_post_return(resolve, func)
