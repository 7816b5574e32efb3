#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2025-2026 gwz

import argparse
import dataclasses
from pathlib import Path
from typing import List, Optional, Tuple

from wz_abi import default_post_return_oracle, flatten_signature
from wz_backend import Files, WorldAssembler
from wz_context import GenerationContext, LogLevel
from wz_diagnostics import GeneratorError
from wz_driver import BindgenDriver
from wz_internal_error import InternalGeneratorError
from wz_logger import log_error, log_info
from wz_name_resolver import WorldScope
from wz_options import GeneratorOptions, load_options_file, parse_exports, parse_with
from wz_schema import FunctionItem, InterfaceItem, Resolve, format_type_kind
from wz_zig_emitter import ZIG_KEYWORDS


def build_generator_options(args: argparse.Namespace) -> GeneratorOptions:
    """
    Build GeneratorOptions from the config file (if any) and command-line flags.

    Flags extend (reserved words, skip) or override (exports and with entries,
    stubs, export prefix) what the config file sets.
    """
    config = getattr(args, 'config', None)
    options = load_options_file(Path(config)) if config else GeneratorOptions()

    reserved = set(options.reserved_words) | set(getattr(args, 'reserved_word', None) or [])
    if getattr(args, 'zig_keywords', False):
        reserved |= ZIG_KEYWORDS

    exports = dict(options.exports)
    for spec in getattr(args, 'exports', None) or []:
        exports.update(parse_exports(spec))

    with_ = dict(options.with_)
    for spec in getattr(args, 'with_', None) or []:
        with_.update(parse_with(spec))

    export_prefix = getattr(args, 'export_prefix', None)

    return dataclasses.replace(
        options,
        reserved_words=frozenset(reserved),
        exports=exports,
        stubs=options.stubs or getattr(args, 'stubs', False),
        with_=with_,
        skip=options.skip | frozenset(getattr(args, 'skip', None) or []),
        export_prefix=export_prefix if export_prefix is not None else options.export_prefix,
    )


def build_generation_context(args: argparse.Namespace) -> GenerationContext:
    """Build a GenerationContext from command-line arguments."""
    # Log format
    log_rich_format = getattr(args, 'log', False)

    # Convert verbosity count to LogLevel
    verbosity = getattr(args, 'verbosity', 0)
    if verbosity >= 3:
        log_level = LogLevel.DEBUG
    elif verbosity >= 1:
        log_level = LogLevel.INFO
    else:
        log_level = LogLevel.WARNING

    return GenerationContext(
        options=GeneratorOptions(),
        log_rich_format=log_rich_format,
        log_level=log_level,
    )


def _load(args) -> Tuple[GenerationContext, BindgenDriver, Resolve, int]:
    """Build context, load the schema and select the world. Raises GeneratorError."""
    context = build_generation_context(args)
    context.options = build_generator_options(args)
    driver = BindgenDriver(context=context)
    resolve = driver.load(args.schema)
    world_id = driver.select_world(resolve, args.world)
    return context, driver, resolve, world_id


def _generate(args) -> Tuple[GenerationContext, Optional[Files]]:
    context = build_generation_context(args)
    try:
        context, driver, resolve, world_id = _load(args)
        return context, driver.generate(resolve, world_id)
    except GeneratorError as e:
        log_error(context, e.format())
    except InternalGeneratorError as e:
        log_error(context, e.format())
    return context, None


def write_files(files: Files, out_dir: Path, context: GenerationContext) -> None:
    """Write generated files under `out_dir`. Raises GeneratorError (GEN-0020)."""
    for name, text in files.items():
        path = out_dir / name
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(text, encoding="utf-8")
        except OSError as e:
            raise GeneratorError(f"[GEN-0020] cannot write '{path}': {e}", filename=str(path)) from e
        log_info(context, f"Wrote '{path}'")


def cmd_gen(args: argparse.Namespace) -> int:
    """Generate bindings and write them (or print them with --stdout)."""
    context, files = _generate(args)
    if files is None:
        return 1

    if args.stdout:
        for text in files.values():
            print(text, end="")
        return 0

    try:
        write_files(files, Path(args.out_dir), context)
    except GeneratorError as e:
        log_error(context, e.format())
        return 1
    return 0


def cmd_check(args: argparse.Namespace) -> int:
    _, files = _generate(args)
    return 0 if files is not None else 1


def cmd_names(args: argparse.Namespace) -> int:
    """
    Dump the resolved names of the selected world:

      - one entry per exported scope (display name, identifier, export key)
      - the export name of every function in that scope
      - synthesized names of the scope's types
    """
    context = build_generation_context(args)
    try:
        context, _, resolve, world_id = _load(args)
        assembler = WorldAssembler(resolve, context=context)
        assembler.preprocess(world_id)
    except (GeneratorError, InternalGeneratorError) as e:
        log_error(context, e.format())
        return 1

    world = resolve.worlds[world_id]
    resolver = assembler.resolver
    print(f"=== world {world.name} ===")

    scopes = []
    world_funcs = [item.function for item in world.exports.values() if isinstance(item, FunctionItem)]
    for key, item in world.exports.items():
        if isinstance(item, InterfaceItem):
            iface = resolve.interfaces[item.interface]
            scopes.append((key, list(iface.functions.values()), iface.types))
    if world_funcs:
        scopes.append((WorldScope(world_id), world_funcs, {}))

    for scope, funcs, types in scopes:
        name = resolver.resolve_scope(scope)
        remapped = " (remapped)" if name.remapped else ""
        print(f"  {name.display}{remapped}")
        print(f"    identifier: {name.snake}")
        print(f"    export key: {name.export_key or '<world>'}")
        print("    functions:")
        if funcs:
            for func in funcs:
                skipped = " [skipped]" if func.name in context.options.skip else ""
                print(f"      {resolver.function_export_name(scope, func)}{skipped}")
        else:
            print("      <none>")
        if types:
            print("    types:")
            for type_name, type_id in types.items():
                kind = resolve.types[type_id].kind
                shape = format_type_kind(kind, resolve)
                print(f"      {type_name:<16} {shape:<24} {assembler.mapper.synthesized_kind_name(kind)}")
        print()
    return 0


def cmd_abi(args: argparse.Namespace) -> int:
    """
    Dump the flattened wire signature of every exported function.

    Functions that cannot be flattened are reported and make the command fail.
    """
    context = build_generation_context(args)
    try:
        context, _, resolve, world_id = _load(args)
        assembler = WorldAssembler(resolve, context=context)
        assembler.preprocess(world_id)
    except (GeneratorError, InternalGeneratorError) as e:
        log_error(context, e.format())
        return 1

    world = resolve.worlds[world_id]
    resolver = assembler.resolver
    needs_post_return = default_post_return_oracle(resolve)

    entries: List[Tuple[object, object]] = []
    for key, item in world.exports.items():
        if isinstance(item, InterfaceItem):
            entries.extend((key, func) for func in resolve.interfaces[item.interface].functions.values())
    entries.extend((WorldScope(world_id), item.function)
                   for item in world.exports.values() if isinstance(item, FunctionItem))

    exit_code = 0
    for scope, func in entries:
        export_name = resolver.function_export_name(scope, func)
        try:
            sig = flatten_signature(assembler.mapper, func, resolver.param_name)
        except (GeneratorError, InternalGeneratorError) as e:
            print(f"{export_name}: unsupported")
            log_error(context, e.format())
            exit_code = 1
            continue
        params = ", ".join(f"{p.name}: {p.wire_type}" for p in sig.params)
        post = "  [post-return]" if needs_post_return(func) else ""
        print(f"{export_name}({params}) -> {sig.result or 'void'}{post}")
    return exit_code


def _add_schema_args(parser: argparse.ArgumentParser) -> None:
    """Add the schema file and world selection arguments."""
    parser.add_argument("schema", help="Resolved schema file (JSON)")
    parser.add_argument("--world", "-w", help="World to bind (default: the only world in the schema)")


def _add_option_args(parser: argparse.ArgumentParser) -> None:
    """Add generator option flags."""
    parser.add_argument(
        "--config", "-c",
        help="JSON file with generator options; flags below extend or override it",
    )
    parser.add_argument(
        "--reserved-word",
        action="append",
        default=[],
        help="Identifier that gets a trailing '_' (can be passed multiple times)",
    )
    parser.add_argument(
        "--zig-keywords",
        action="store_true",
        help="Add all Zig keywords to the reserved words",
    )
    parser.add_argument(
        "--exports",
        action="append",
        default=[],
        help="Implementation per exported scope, e.g. `world=Impl,ns:pkg/iface=@import(\"iface.zig\")`",
    )
    parser.add_argument(
        "--with",
        dest="with_",
        action="append",
        default=[],
        help="Rename interfaces, e.g. `ns:pkg/iface=Iface`",
    )
    parser.add_argument(
        "--stubs",
        action="store_true",
        help="Generate placeholder containers for scopes without an --exports entry",
    )
    parser.add_argument(
        "--skip",
        action="append",
        default=[],
        help="Function name to leave unbound (can be passed multiple times)",
    )
    parser.add_argument(
        "--export-prefix",
        help="Prefix for every registered export name",
    )


def main(argv=None) -> None:
    parser = argparse.ArgumentParser(prog="wzgen", description="Zig guest binding generator")
    subparsers = parser.add_subparsers(dest="command", required=True, help="Command to run")

    parser.add_argument("-v", "--verbose",
                        action='count',
                        default=0,
                        dest='verbosity',
                        help="Increase verbosity: -v=INFO, -vvv=DEBUG")
    parser.add_argument("-l", "--log",
                        action='store_true',
                        default=False,
                        help="Enable rich log formatting (timestamps, levels)")

    ###########################
    # gen command
    ###########################
    p_gen = subparsers.add_parser("gen", help="Generate Zig bindings", aliases=["generate"])
    p_gen.add_argument("--out-dir", "-o", default=".", help="Output directory (default: current directory)")
    p_gen.add_argument("--stdout", action="store_true", help="Print the generated source instead of writing it")
    _add_option_args(p_gen)
    _add_schema_args(p_gen)
    p_gen.set_defaults(func=cmd_gen)

    ###########################
    # check command
    ###########################
    p_check = subparsers.add_parser("check", help="Run generation without writing output")
    _add_option_args(p_check)
    _add_schema_args(p_check)
    p_check.set_defaults(func=cmd_check)

    ###########################
    # names command
    ###########################
    p_names = subparsers.add_parser("names", help="Dump resolved scope and export names")
    _add_option_args(p_names)
    _add_schema_args(p_names)
    p_names.set_defaults(func=cmd_names)

    ###########################
    # abi command
    ###########################
    p_abi = subparsers.add_parser("abi", help="Dump flattened wire signatures")
    _add_option_args(p_abi)
    _add_schema_args(p_abi)
    p_abi.set_defaults(func=cmd_abi)

    args = parser.parse_args(argv)

    rc = args.func(args)
    raise SystemExit(rc)


if __name__ == "__main__":
    main()
