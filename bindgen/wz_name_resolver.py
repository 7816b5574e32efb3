#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2025-2026 gwz

import re
from dataclasses import dataclass
from typing import Dict, FrozenSet, List, Optional, Set, Union

from wz_internal_error import InternalGeneratorError
from wz_options import ExportKey, GeneratorOptions
from wz_schema import Function, InterfaceItem, InterfaceKey, NameKey, Resolve


WORLD_DISPLAY_NAME = "Guest"


# ============================================================================
# Case conversion
# ============================================================================

def _split_words(name: str) -> List[str]:
    """Split kebab, snake or camel case input into words."""
    spaced = re.sub(r"([a-z0-9])([A-Z])", r"\1 \2", name)
    return [w for w in re.split(r"[-_\s.]+", spaced) if w]


def to_snake(name: str) -> str:
    return "_".join(w.lower() for w in _split_words(name))


def to_kebab(name: str) -> str:
    return "-".join(w.lower() for w in _split_words(name))


def to_upper_camel(name: str) -> str:
    return "".join(w[0].upper() + w[1:].lower() for w in _split_words(name))


def to_lower_camel(name: str) -> str:
    upper = to_upper_camel(name)
    return upper[:1].lower() + upper[1:]


# ============================================================================
# Scope references and resolved names
# ============================================================================

@dataclass(frozen=True)
class WorldScope:
    """The world itself: owner of free functions exported without an interface."""
    world: int


ScopeRef = Union[WorldScope, NameKey, InterfaceKey]


@dataclass(frozen=True)
class ScopedName:
    """
    Resolved names of one scope.

    display     : title-case container name (e.g. "TextOpsFormat")
    snake       : lower-snake identifier (e.g. "text_ops_format")
    export_key  : wire-level key (e.g. "text:ops/format"); empty for the world
    remapped    : True when the display name came from the `with` table
    """
    display: str
    snake: str
    export_key: str
    remapped: bool = False


class NameResolver:
    """
    Resolves scope references into canonical flat identifiers.

    - Builds the scope -> ScopedName mapping once per world, before emission.
    - Disambiguates scopes whose names collapse to the same identifier with a
      run-wide counter suffix (first collision gets 1).
    - Appends '_' to identifiers in the configured reserved-word set.
    - Hands out unique entry-point symbols.
    """

    def __init__(self, resolve: Resolve, options: Optional[GeneratorOptions] = None):
        self.resolve = resolve
        self.options = options or GeneratorOptions()
        self.reserved_words: FrozenSet[str] = frozenset(self.options.reserved_words)
        self._names: Dict[ScopeRef, ScopedName] = {}
        self._taken: Set[str] = set()
        self._name_counter = 0
        self._symbols: Set[str] = set()
        self._symbol_counter = 0

    # --- Public API ---

    def prepare(self, world_id: int) -> Dict[ScopeRef, ScopedName]:
        """
        Resolve the world scope and every exported interface scope, in export order.
        """
        world = self.resolve.worlds[world_id]
        self.resolve_scope(WorldScope(world_id))
        for key, item in world.exports.items():
            if isinstance(item, InterfaceItem):
                self.resolve_scope(key)
        return dict(self._names)

    def resolve_scope(self, scope: ScopeRef) -> ScopedName:
        """Return the cached name for `scope`, registering it on first use."""
        cached = self._names.get(scope)
        if cached is not None:
            return cached

        display, snake, key, remapped = self._candidate(scope)
        display = self.avoid_keyword(display)
        snake = self.avoid_keyword(snake)
        if display in self._taken or snake in self._taken:
            while True:
                self._name_counter += 1
                suffixed_display = f"{display}{self._name_counter}"
                suffixed_snake = f"{snake}{self._name_counter}"
                if suffixed_display not in self._taken and suffixed_snake not in self._taken:
                    display, snake = suffixed_display, suffixed_snake
                    break
        self._taken.add(display)
        self._taken.add(snake)

        name = ScopedName(display=display, snake=snake, export_key=key, remapped=remapped)
        self._names[scope] = name
        return name

    def export_key_of(self, scope: ScopeRef) -> ExportKey:
        """The key used to look up the scope in the export-override map."""
        if isinstance(scope, WorldScope):
            return ExportKey.world()
        return ExportKey(self._canonical_key(scope))

    def function_export_name(self, scope: ScopeRef, func: Function) -> str:
        """Wire export name: `ns:pkg/iface#func` or plain `func` at world level."""
        key = self.resolve_scope(scope).export_key
        name = f"{key}#{func.name}" if key else func.name
        return f"{self.options.export_prefix or ''}{name}"

    def avoid_keyword(self, ident: str) -> str:
        if ident in self.reserved_words:
            return f"{ident}_"
        return ident

    def param_name(self, name: str) -> str:
        return self.avoid_keyword(to_snake(name))

    def method_name(self, func: Function) -> str:
        return self.avoid_keyword(to_lower_camel(func.name))

    def reserve(self, ident: str) -> None:
        """Mark a top-level name defined outside any scope; no scope or symbol may take it."""
        self._taken.add(ident)
        self._symbols.add(ident)

    def claim_symbol(self, base: str) -> str:
        """Reserve a unique top-level symbol derived from `base`."""
        symbol = self.avoid_keyword(base)
        while symbol in self._symbols:
            self._symbol_counter += 1
            symbol = f"{base}_{self._symbol_counter}"
        self._symbols.add(symbol)
        return symbol

    # --- internal helpers ---

    def _canonical_key(self, scope: ScopeRef) -> str:
        if isinstance(scope, WorldScope):
            return ""
        if isinstance(scope, NameKey):
            return scope.name
        iface = self.resolve.interfaces[scope.interface]
        if iface.name is None or iface.package is None:
            raise InternalGeneratorError(
                f"[ICE-1010] interface {scope.interface} used as a world key has no package-qualified name"
            )
        pkg = self.resolve.packages[iface.package]
        return f"{pkg.namespace}:{pkg.name}/{iface.name}" + (f"@{pkg.version}" if pkg.version else "")

    def _candidate(self, scope: ScopeRef):
        """(display, snake, export_key, remapped) before disambiguation."""
        if isinstance(scope, WorldScope):
            return WORLD_DISPLAY_NAME, to_snake(WORLD_DISPLAY_NAME), "", False

        key = self._canonical_key(scope)
        remap = self.options.with_.get(key)
        if remap is not None:
            return remap, to_snake(remap), key, True

        if isinstance(scope, NameKey):
            return to_upper_camel(scope.name), to_snake(scope.name), key, False

        iface = self.resolve.interfaces[scope.interface]
        pkg = self.resolve.packages[iface.package]
        parts = [pkg.namespace, pkg.name, iface.name]
        display = "".join(to_upper_camel(p) for p in parts)
        snake = "_".join(to_snake(p) for p in parts)
        return display, snake, key, False
