"""
World Assembler

Orchestrates binding generation for one world.

The assembler decides WHAT goes into the artifact and in which order, while
per-function code comes from the FunctionBindingEmitter and Zig spelling from
the ZigEmitter.

Pipeline:
  1. preprocess        capture the world name, resolve every scope name
  2. export_interface  one binding per function of each exported interface
  3. export_funcs      world-level functions, in the `Guest` scope
  4. finish            preamble + containers + bindings + registrations + entry stub

The artifact is fully assembled in memory; nothing is written here.
"""

#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2025-2026 gwz

from dataclasses import dataclass, field
from typing import Dict, List, NoReturn, Optional

from wz_abi import PostReturnOracle
from wz_context import GenerationContext
from wz_diagnostics import ConfigError
from wz_function_bindgen import BindingBlock, FunctionBindingEmitter
from wz_internal_error import ICELocation, InternalGeneratorError
from wz_logger import log_debug, log_info, log_stage, log_warning
from wz_memory_bridge import MemoryBridge
from wz_name_resolver import NameResolver, ScopeRef, WorldScope, to_kebab
from wz_schema import Function, FunctionItem, InterfaceItem, NameKey, Resolve, TypeItem, WorldKey
from wz_type_mapper import TypeMapper
from wz_zig_emitter import ZigCodeBuilder, ZigEmitter

# Generated artifacts: file name -> text, in generation order.
Files = Dict[str, str]


@dataclass
class WorldAssembler:
    """
    Language-agnostic driver of one world's binding generation.

    A fresh assembler is used per run; its buffers and name tables are
    discarded with it.
    """

    resolve: Resolve
    context: GenerationContext = field(default_factory=GenerationContext.default)
    post_return_oracle: Optional[PostReturnOracle] = None

    world_id: Optional[int] = None
    world_name: Optional[str] = None

    # Set by preprocess()
    resolver: Optional[NameResolver] = None
    mapper: Optional[TypeMapper] = None
    bridge: MemoryBridge = field(default_factory=MemoryBridge)
    bindgen: Optional[FunctionBindingEmitter] = None

    # Bindings per scope, in emission order
    _scopes: Dict[ScopeRef, List[BindingBlock]] = field(default_factory=dict)

    # --- Public API ---

    def generate(self, world_id: int) -> Files:
        """
        Run the full pipeline for `world_id` and return the generated files.

        Raises SchemaError or ConfigError when the world cannot be bound;
        no files are returned in that case.
        """
        self.preprocess(world_id)
        world = self.resolve.worlds[world_id]

        for key, item in world.imports.items():
            self.import_item(key, item)

        funcs: List[Function] = []
        for key, item in world.exports.items():
            if isinstance(item, InterfaceItem):
                self.export_interface(key, item.interface)
            elif isinstance(item, FunctionItem):
                funcs.append(item.function)
            elif isinstance(item, TypeItem):
                log_debug(self.context, f"Ignoring exported type {item.type}")
            else:
                self.ice(f"[ICE-1220] unexpected world item {item!r}")
        self.export_funcs(funcs)

        files: Files = {}
        self.finish(files)
        return files

    def preprocess(self, world_id: int) -> None:
        world = self.resolve.worlds[world_id]
        self.world_id = world_id
        self.world_name = world.name
        log_stage(self.context, "Preprocessing", world=world.name)

        self.mapper = TypeMapper(self.resolve)
        self.resolver = NameResolver(self.resolve, self.context.options)
        for symbol in self.bridge.runtime_symbols():
            self.resolver.reserve(symbol)
        self.resolver.prepare(world_id)
        self.bindgen = FunctionBindingEmitter(
            self.resolver, self.mapper, self.bridge, self.context, self.post_return_oracle
        )

    def import_item(self, key: WorldKey, item) -> None:
        """Imports are not bound by this generator."""
        log_warning(self.context, f"world '{self.world_name}': skipping import {self._describe_key(key)}")

    def export_interface(self, key: WorldKey, interface_id: int) -> None:
        iface = self.resolve.interfaces[interface_id]
        name = self.resolver.resolve_scope(key)
        log_stage(self.context, "Exporting interface", world=self.world_name, interface=name.export_key)
        for func in iface.functions.values():
            self._export_function(key, func)

    def export_funcs(self, funcs: List[Function]) -> None:
        if not funcs:
            return
        log_stage(self.context, "Exporting world functions", world=self.world_name)
        scope = WorldScope(self.world_id)
        for func in funcs:
            self._export_function(scope, func)

    def finish(self, files: Files) -> None:
        """Assemble the artifact text and add it to `files`."""
        log_stage(self.context, "Assembling", world=self.world_name)
        self._check_symbols()

        out = ZigCodeBuilder()
        for line in ZigEmitter.header(self.world_name):
            out.emit(line)
        out.emit()
        out.extend(self.bridge.preamble())

        for scope, blocks in self._scopes.items():
            out.emit()
            self._emit_container(out, scope, blocks)
            for block in blocks:
                out.emit()
                out.extend(block.entry())
                if block.post_return is not None:
                    out.emit()
                    out.extend(block.post_return)

        out.emit()
        out.emit("comptime {")
        out.indent()
        all_blocks = [b for blocks in self._scopes.values() for b in blocks]
        for block in all_blocks:
            for line in block.registrations():
                out.emit(line)
        for block in all_blocks:
            for line in block.post_return_registrations():
                out.emit(line)
        out.dedent()
        out.emit("}")
        out.emit()
        out.emit(ZigEmitter.program_entry())

        file_name = f"{to_kebab(self.world_name)}.zig"
        if file_name in files:
            self.ice(f"[ICE-1230] duplicate output file '{file_name}'")
        files[file_name] = out.to_string() + "\n"
        log_info(self.context, f"Generated '{file_name}' with {len(all_blocks)} export(s)")

    # --- internal helpers ---

    def _export_function(self, scope: ScopeRef, func: Function) -> None:
        if func.name in self.context.options.skip:
            log_info(self.context, f"Skipping function '{func.name}'")
            return
        if scope not in self._scopes:
            self._require_implementation(scope)
            self._scopes[scope] = []
        self._scopes[scope].append(self.bindgen.emit(scope, func))

    def _require_implementation(self, scope: ScopeRef) -> None:
        key = self.resolver.export_key_of(scope)
        if self.context.options.implementation_for(key) is None and not self.context.options.stubs:
            raise ConfigError(
                f"[CFG-0030] no implementation for exported scope '{key}'; "
                f"supply an `exports` entry `{key}=<expr>` or enable stubs"
            )

    def _emit_container(self, out: ZigCodeBuilder, scope: ScopeRef, blocks: List[BindingBlock]) -> None:
        name = self.resolver.resolve_scope(scope)
        impl = self.context.options.implementation_for(self.resolver.export_key_of(scope))
        if impl is not None:
            out.emit(ZigEmitter.const_decl(ZigEmitter.identifier(name.display), impl))
            return

        out.emit(ZigEmitter.container_open(ZigEmitter.identifier(name.display)))
        out.indent()
        for i, block in enumerate(blocks):
            if i:
                out.emit()
            out.extend(block.stub)
        out.dedent()
        out.emit(ZigEmitter.container_close())

    def _check_symbols(self) -> None:
        seen_symbols = set()
        seen_exports = set()
        for scope, blocks in self._scopes.items():
            for block in blocks:
                symbols = [block.entry_symbol] + ([block.post_return_symbol] if block.post_return_symbol else [])
                exports = [block.export_name] + (
                    [block.post_return_export_name] if block.post_return_export_name else []
                )
                for symbol in symbols:
                    if symbol in seen_symbols:
                        self.ice(f"[ICE-1210] duplicate entry symbol '{symbol}'", function=block.function.name)
                    seen_symbols.add(symbol)
                for export in exports:
                    if export in seen_exports:
                        self.ice(f"[ICE-1211] duplicate export name '{export}'", function=block.function.name)
                    seen_exports.add(export)

    def _describe_key(self, key: WorldKey) -> str:
        if isinstance(key, NameKey):
            return f"'{key.name}'"
        iface = self.resolve.interfaces[key.interface]
        if iface.name is None or iface.package is None:
            return f"interface #{key.interface}"
        return f"'{self.resolver.export_key_of(key)}'"

    # -------------------------------------------------------------------------
    # Internal generator error handling
    # -------------------------------------------------------------------------

    def ice(self, message: str, *, function: Optional[str] = None) -> NoReturn:
        raise InternalGeneratorError(message, ICELocation(world=self.world_name, function=function))
