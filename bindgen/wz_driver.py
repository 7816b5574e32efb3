#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2025-2026 gwz

from pathlib import Path
from typing import Optional

from wz_abi import PostReturnOracle
from wz_backend import Files, WorldAssembler
from wz_context import GenerationContext
from wz_diagnostics import SchemaError
from wz_logger import log_debug, log_info, log_stage
from wz_schema import Resolve
from wz_schema_loader import load_schema


class BindgenDriver:
    """
    Generator driver:
      - read and validate the schema
      - select the world to bind
      - run one WorldAssembler pass and return the files

    Entry points:
      - load(path): schema file -> Resolve.
      - select_world(resolve, name): world name (or None) -> world id.
      - generate(resolve, world_id): one artifact per world, in memory.
      - run(path, world): all of the above.
    """

    def __init__(
        self,
        context: GenerationContext | None = None,
        post_return_oracle: PostReturnOracle | None = None,
    ):
        self.context = context or GenerationContext.default()
        self.post_return_oracle = post_return_oracle

    # --- Public API ---

    def load(self, path: str | Path) -> Resolve:
        log_stage(self.context, "Loading schema", path=str(path))
        resolve = load_schema(Path(path))
        log_debug(
            self.context,
            f"Loaded {len(resolve.packages)} package(s), {len(resolve.interfaces)} interface(s), "
            f"{len(resolve.types)} type(s), {len(resolve.worlds)} world(s)",
        )
        return resolve

    def select_world(self, resolve: Resolve, name: Optional[str] = None) -> int:
        """
        Pick the world to bind.

        With a name, the world must exist (SCH-0030). Without one, the schema
        must contain exactly one world (SCH-0030 when none, SCH-0060 when several).
        """
        if name is not None:
            world_id = resolve.world_by_name(name)
            if world_id is None:
                known = ", ".join(f"'{w.name}'" for w in resolve.worlds) or "none"
                raise SchemaError(f"[SCH-0030] world '{name}' not found (known worlds: {known})")
            return world_id

        if not resolve.worlds:
            raise SchemaError("[SCH-0030] schema defines no world")
        if len(resolve.worlds) > 1:
            known = ", ".join(f"'{w.name}'" for w in resolve.worlds)
            raise SchemaError(f"[SCH-0060] schema defines several worlds ({known}); select one by name")
        return 0

    def generate(self, resolve: Resolve, world_id: int) -> Files:
        assembler = WorldAssembler(resolve, context=self.context, post_return_oracle=self.post_return_oracle)
        files = assembler.generate(world_id)
        for name, text in files.items():
            log_info(self.context, f"Assembled '{name}' ({len(text)} bytes)")
        return files

    def run(self, path: str | Path, world: Optional[str] = None) -> Files:
        resolve = self.load(path)
        return self.generate(resolve, self.select_world(resolve, world))
