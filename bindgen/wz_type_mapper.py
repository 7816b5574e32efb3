#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2025-2026 gwz

from typing import Dict, List, Optional

from wz_diagnostics import UnsupportedType
from wz_internal_error import InternalGeneratorError
from wz_name_resolver import to_upper_camel
from wz_schema import (
    EnumKind, FlagsKind, FutureKind, HandleKind, ListKind, OptionKind, PrimitiveType, RecordKind,
    Resolve, ResourceKind, ResultKind, StreamKind, TupleKind, Type, TypeAlias, TypeRef, VariantKind,
    format_type, get_primitive_type,
)

# Scalar primitives: identical in storage and wire position.
ZIG_SCALAR_TYPES: Dict[str, str] = {
    "bool": "bool",
    "u8": "u8",
    "u16": "u16",
    "u32": "u32",
    "u64": "u64",
    "s8": "i8",
    "s16": "i16",
    "s32": "i32",
    "s64": "i64",
    "f32": "f32",
    "f64": "f64",
    "char": "u32",  # Unicode scalar value
}

# Length word of a (pointer, length) pair.
ZIG_LENGTH_TYPE = "u32"

# A list-like result is returned as one pointer to the 8-byte return area.
ZIG_RETURN_AREA_POINTER = "[*]u8"

SYNTH_TERMINATOR = "End"
SYNTH_NIL = "Nil"
SYNTH_LABEL_MARK = "_"


class TypeMapper:
    """
    Maps schema types to Zig type strings.

    storage_type: host-side position (what the implementation sees)
    wire_type:    ABI boundary position (primitive machine words only)

    Scalars map 1:1 in both positions. `string` and `list<scalar>` are
    list-like: a slice in storage, a (pointer, length) pair on the wire.
    Everything else raises UnsupportedType.
    """

    def __init__(self, resolve: Resolve):
        self.resolve = resolve

    # ============================================================================
    # Type Queries
    # ============================================================================

    def unalias(self, ty: Type) -> Type:
        """Follow `type foo = bar` chains to the first non-alias type."""
        seen = set()
        while isinstance(ty, TypeRef):
            if ty.id in seen:
                raise InternalGeneratorError(f"[ICE-1110] cyclic type alias through type {ty.id}")
            seen.add(ty.id)
            kind = self.resolve.types[ty.id].kind
            if not isinstance(kind, TypeAlias):
                return ty
            ty = kind.target
        return ty

    def is_scalar(self, ty: Type) -> bool:
        ty = self.unalias(ty)
        return isinstance(ty, PrimitiveType) and ty.name in ZIG_SCALAR_TYPES

    def is_list_like(self, ty: Type) -> bool:
        """True for `string` and `list<scalar>`."""
        ty = self.unalias(ty)
        if isinstance(ty, PrimitiveType):
            return ty.name == "string"
        kind = self.resolve.types[ty.id].kind
        return isinstance(kind, ListKind) and self.is_scalar(kind.element)

    def element_type(self, ty: Type) -> Type:
        """Element type of a list-like type (`u8` for strings)."""
        ty = self.unalias(ty)
        if isinstance(ty, PrimitiveType) and ty.name == "string":
            return get_primitive_type("u8")
        if isinstance(ty, TypeRef):
            kind = self.resolve.types[ty.id].kind
            if isinstance(kind, ListKind):
                return self.unalias(kind.element)
        raise InternalGeneratorError(f"[ICE-1120] element_type() of non-list type {format_type(ty, self.resolve)}")

    # ============================================================================
    # Type Emission
    # ============================================================================

    def storage_type(self, ty: Type, *, function: Optional[str] = None, position: Optional[str] = None) -> str:
        """
        Host-side Zig type.

        Returns e.g. "u32", "[]u8", "[]i64".
        """
        resolved = self.unalias(ty)
        if self.is_scalar(resolved):
            return ZIG_SCALAR_TYPES[resolved.name]
        if self.is_list_like(resolved):
            return f"[]{self.storage_type(self.element_type(resolved))}"
        raise UnsupportedType(format_type(ty, self.resolve), function=function, position=position)

    def wire_type(self, ty: Type, *, function: Optional[str] = None, position: Optional[str] = None) -> str:
        """
        ABI-boundary Zig type of the first (or only) word of `ty`.

        For list-like types this is the pointer word; see wire_types() for the full pair.
        """
        return self.wire_types(ty, function=function, position=position)[0]

    def wire_types(self, ty: Type, *, function: Optional[str] = None, position: Optional[str] = None) -> List[str]:
        """Flat wire words of a parameter: one for scalars, (pointer, length) for list-like types."""
        resolved = self.unalias(ty)
        if self.is_scalar(resolved):
            return [ZIG_SCALAR_TYPES[resolved.name]]
        if self.is_list_like(resolved):
            elem = self.storage_type(self.element_type(resolved))
            return [f"[*]{elem}", ZIG_LENGTH_TYPE]
        raise UnsupportedType(format_type(ty, self.resolve), function=function, position=position)

    def result_wire_type(self, ty: Type, *, function: Optional[str] = None) -> str:
        """Wire type of a single result: scalars as-is, list-like as a return-area pointer."""
        resolved = self.unalias(ty)
        if self.is_scalar(resolved):
            return ZIG_SCALAR_TYPES[resolved.name]
        if self.is_list_like(resolved):
            return ZIG_RETURN_AREA_POINTER
        raise UnsupportedType(format_type(ty, self.resolve), function=function, position="result")

    # ============================================================================
    # Synthesized names
    # ============================================================================

    def synthesized_name(self, ty: Optional[Type]) -> str:
        """
        Deterministic identifier for any type shape.

        Compound kinds are spelled as a kind tag, the spellings of their
        constituents, and a fixed terminator, e.g. `list<option<u8>>` ->
        "ListOptionU8EndEnd". A named definition uses its own name.

        Inside a compound, user-chosen names (named definitions, fields,
        cases, flags) are wrapped as `_Name_` and a missing payload is
        `Nil`. Kind tags never contain '_', so distinct shapes never share
        a spelling.
        """
        if isinstance(ty, TypeRef):
            typedef = self.resolve.types[ty.id]
            if typedef.name is not None:
                return to_upper_camel(typedef.name)
        return self._constituent(ty)

    def synthesized_kind_name(self, kind) -> str:
        """Synthesized name of a definition's shape, ignoring its own name."""
        if isinstance(kind, TypeAlias):
            return self._constituent(kind.target)
        elif isinstance(kind, ListKind):
            parts = ["List", self._constituent(kind.element)]
        elif isinstance(kind, OptionKind):
            parts = ["Option", self._constituent(kind.inner)]
        elif isinstance(kind, ResultKind):
            parts = ["Result", self._constituent(kind.ok), self._constituent(kind.err)]
        elif isinstance(kind, TupleKind):
            parts = ["Tuple"] + [self._constituent(t) for t in kind.types]
        elif isinstance(kind, FutureKind):
            parts = ["Future", self._constituent(kind.payload)]
        elif isinstance(kind, StreamKind):
            parts = ["Stream", self._constituent(kind.payload)]
        elif isinstance(kind, HandleKind):
            parts = [to_upper_camel(kind.ownership), self._constituent(TypeRef(kind.resource))]
        elif isinstance(kind, RecordKind):
            parts = ["Record"] + [_label(f.name) + self._constituent(f.type) for f in kind.fields]
        elif isinstance(kind, VariantKind):
            parts = ["Variant"] + [_label(c.name) + self._constituent(c.type) for c in kind.cases]
        elif isinstance(kind, EnumKind):
            parts = ["Enum"] + [_label(c) for c in kind.cases]
        elif isinstance(kind, FlagsKind):
            parts = ["Flags"] + [_label(f) for f in kind.flags]
        elif isinstance(kind, ResourceKind):
            parts = ["Resource"]
        else:
            raise InternalGeneratorError(f"[ICE-1130] unknown type kind {kind!r}")
        return "".join(parts) + SYNTH_TERMINATOR

    def _constituent(self, ty: Optional[Type]) -> str:
        """Spelling of `ty` as part of an enclosing compound name."""
        if ty is None:
            return SYNTH_NIL
        if isinstance(ty, PrimitiveType):
            return to_upper_camel(ty.name)
        typedef = self.resolve.types[ty.id]
        if typedef.name is not None:
            return _label(typedef.name)
        return self.synthesized_kind_name(typedef.kind)


def _label(name: str) -> str:
    return f"{SYNTH_LABEL_MARK}{to_upper_camel(name)}{SYNTH_LABEL_MARK}"
