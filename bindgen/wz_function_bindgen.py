"""
Per-function binding emission.

Each exported function goes through four stages, each written into its own
sub-buffer:

    LIFT         wire parameters -> storage values
    INVOKE       one call into the implementation container
    LOWER        storage result -> wire result (allocating for list-like data)
    POST-RETURN  optional second entry point releasing what LOWER allocated

The stages are assembled into an entry function by BindingBlock.entry().
"""

#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2025-2026 gwz

from dataclasses import dataclass, field
from typing import List, Optional, Set

from wz_abi import AbiSignature, PostReturnOracle, default_post_return_oracle, flatten_signature
from wz_context import GenerationContext
from wz_logger import log_debug, log_warning
from wz_memory_bridge import MemoryBridge
from wz_name_resolver import NameResolver, ScopeRef, WorldScope, to_snake
from wz_schema import Function
from wz_type_mapper import TypeMapper
from wz_zig_emitter import ZigCodeBuilder, ZigEmitter

ENTRY_PREFIX = "__export_"
POST_RETURN_PREFIX = "__post_return_"
POST_RETURN_EXPORT_PREFIX = "cabi_post_"

RESULT_VAR = "result"
RESULT_BYTES_VAR = "result_bytes"
RESULT_PTR_VAR = "result_ptr"
POST_RETURN_ARG = "arg"


@dataclass
class BindingBlock:
    """
    Generated code for one exported function.

    lift, invoke and lower are the body fragments of the entry function;
    post_return is the complete post-return function, or None.
    """
    function: Function
    export_name: str
    entry_symbol: str
    signature: AbiSignature
    lift: ZigCodeBuilder = field(default_factory=ZigCodeBuilder)
    invoke: ZigCodeBuilder = field(default_factory=ZigCodeBuilder)
    lower: ZigCodeBuilder = field(default_factory=ZigCodeBuilder)
    post_return: Optional[ZigCodeBuilder] = None
    post_return_symbol: Optional[str] = None
    post_return_export_name: Optional[str] = None
    stub: ZigCodeBuilder = field(default_factory=ZigCodeBuilder)

    def entry(self) -> ZigCodeBuilder:
        out = ZigCodeBuilder()
        params = [(p.name, p.wire_type) for p in self.signature.params]
        out.emit(ZigEmitter.fn_header(self.entry_symbol, params, self.signature.result, c_callconv=True))
        out.indent()
        out.extend(self.lift)
        out.extend(self.invoke)
        out.extend(self.lower)
        out.dedent()
        out.emit("}")
        return out

    def registrations(self) -> List[str]:
        return [ZigEmitter.export_registration(self.entry_symbol, self.export_name)]

    def post_return_registrations(self) -> List[str]:
        if self.post_return_symbol is None:
            return []
        return [ZigEmitter.export_registration(self.post_return_symbol, self.post_return_export_name)]


class FunctionBindingEmitter:
    """
    Builds the BindingBlock of one function.

    Uses the NameResolver for every identifier, the TypeMapper for every
    type, and the MemoryBridge for every allocation and release.
    """

    def __init__(
        self,
        resolver: NameResolver,
        mapper: TypeMapper,
        bridge: MemoryBridge,
        context: Optional[GenerationContext] = None,
        post_return_oracle: Optional[PostReturnOracle] = None,
    ):
        self.resolver = resolver
        self.mapper = mapper
        self.bridge = bridge
        self.context = context or GenerationContext.default()
        self.needs_post_return = post_return_oracle or default_post_return_oracle(mapper.resolve)
        self._reserved_locals: Set[str] = {RESULT_VAR, RESULT_BYTES_VAR, RESULT_PTR_VAR}
        self._reserved_locals.update(bridge.runtime_symbols())

    def local_name(self, raw: str) -> str:
        """Lifted identifier of a parameter; never shadows an intermediate or a preamble symbol."""
        name = self.resolver.param_name(raw)
        while name in self._reserved_locals:
            name = f"{name}_"
        return name

    def emit(self, scope: ScopeRef, func: Function) -> BindingBlock:
        """
        Emit the binding of `func` exported from `scope`.

        Raises UnsupportedArity or UnsupportedType before anything is emitted
        when the signature cannot be flattened.
        """
        sig = flatten_signature(self.mapper, func, self.local_name)
        scope_name = self.resolver.resolve_scope(scope)

        if isinstance(scope, WorldScope):
            base = f"{ENTRY_PREFIX}{to_snake(func.name)}"
        else:
            base = f"{ENTRY_PREFIX}{scope_name.snake}_{to_snake(func.name)}"
        block = BindingBlock(
            function=func,
            export_name=self.resolver.function_export_name(scope, func),
            entry_symbol=self.resolver.claim_symbol(base),
            signature=sig,
        )
        log_debug(self.context, f"Binding '{block.export_name}' -> {block.entry_symbol}")

        self._lift(block)
        self._invoke(block, scope_name.display)
        allocated = self._lower(block)
        self._post_return(block, allocated)
        self._stub(block)
        return block

    # ============================================================================
    # Stages
    # ============================================================================

    def _lift(self, block: BindingBlock) -> None:
        wire = iter(block.signature.params)
        for (_, ty), (name, _) in zip(block.function.params, block.signature.storage_params):
            if self.mapper.is_list_like(ty):
                ptr, length = next(wire), next(wire)
                block.lift.emit(ZigEmitter.const_decl(name, ZigEmitter.slice_of(ptr.name, length.name)))
            else:
                next(wire)

    def _invoke(self, block: BindingBlock, container: str) -> None:
        args = [name for name, _ in block.signature.storage_params]
        method = ZigEmitter.identifier(self.resolver.method_name(block.function))
        call = ZigEmitter.call(f"{ZigEmitter.identifier(container)}.{method}", args)
        if block.function.results:
            block.invoke.emit(ZigEmitter.const_decl(RESULT_VAR, call))
        else:
            block.invoke.emit(f"{call};")

    def _lower(self, block: BindingBlock) -> bool:
        """Emit LOWER; returns True when it allocates."""
        if not block.function.results:
            return False
        ty = block.function.results[0]
        if not self.mapper.is_list_like(ty):
            block.lower.emit(ZigEmitter.ret(RESULT_VAR))
            return False

        area = self.bridge.return_area()
        out = block.lower
        out.emit(ZigEmitter.const_decl(RESULT_BYTES_VAR, f"std.mem.sliceAsBytes({RESULT_VAR})"))
        out.emit(ZigEmitter.const_decl(RESULT_PTR_VAR, self.bridge.allocate_call(f"{RESULT_BYTES_VAR}.len")))
        out.emit(f"@memcpy({ZigEmitter.slice_of(RESULT_PTR_VAR, f'{RESULT_BYTES_VAR}.len')}, {RESULT_BYTES_VAR});")
        out.emit(ZigEmitter.write_u32_le(area, 0, f"@intCast(@intFromPtr({RESULT_PTR_VAR}))"))
        out.emit(ZigEmitter.write_u32_le(area, 4, f"@intCast({RESULT_VAR}.len)"))
        out.emit(ZigEmitter.ret(self.bridge.return_area_address()))
        return True

    def _post_return(self, block: BindingBlock, allocated: bool) -> None:
        func = block.function
        if not self.needs_post_return(func):
            if allocated:
                log_warning(self.context, f"result buffer of '{block.export_name}' has no post-return entry point")
            return

        block.post_return_symbol = self.resolver.claim_symbol(
            POST_RETURN_PREFIX + block.entry_symbol[len(ENTRY_PREFIX):]
        )
        block.post_return_export_name = f"{POST_RETURN_EXPORT_PREFIX}{block.export_name}"

        out = ZigCodeBuilder()
        out.emit(ZigEmitter.fn_header(block.post_return_symbol, [(POST_RETURN_ARG, "[*]u8")], "void",
                                      c_callconv=True))
        out.indent()
        if allocated:
            elem = self.mapper.storage_type(self.mapper.element_type(func.results[0]))
            out.emit(ZigEmitter.const_decl("addr", ZigEmitter.read_u32_le(POST_RETURN_ARG, 0)))
            out.emit(ZigEmitter.const_decl("len", ZigEmitter.read_u32_le(POST_RETURN_ARG, 4)))
            out.emit(ZigEmitter.const_decl("ptr", "@ptrFromInt(addr)", "[*]u8"))
            out.emit(self.bridge.free_call("ptr", f"len * @sizeOf({elem})"))
        else:
            out.emit(ZigEmitter.discard(POST_RETURN_ARG))
        out.dedent()
        out.emit("}")
        block.post_return = out

    def _stub(self, block: BindingBlock) -> None:
        """Placeholder implementation method, used when the container is generated."""
        sig = block.signature
        out = block.stub
        method = ZigEmitter.identifier(self.resolver.method_name(block.function))
        out.emit(ZigEmitter.fn_header(method, sig.storage_params, sig.storage_result, pub=True))
        out.indent()
        for name, _ in sig.storage_params:
            out.emit(ZigEmitter.discard(name))
        out.emit(ZigEmitter.panic(f"unimplemented: {block.export_name}"))
        out.dedent()
        out.emit("}")
