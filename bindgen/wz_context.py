"""
Generation context for cross-cutting generator options.

This module defines the GenerationContext dataclass which holds options that
affect multiple stages of generation (name resolution, binding emission,
logging).
"""

#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2025-2026 gwz

from dataclasses import dataclass, field
from enum import IntEnum

from wz_options import GeneratorOptions


class LogLevel(IntEnum):
    """Hierarchical logging levels for the generator."""
    SILENT = 0      # No logging
    ERROR = 3       # Error messages only
    WARNING = 6     # Warning messages (default)
    INFO = 10       # General progress messages (-v)
    DEBUG = 30      # Detailed diagnostic information (-vvv)


@dataclass
class GenerationContext:
    """
    Holds cross-cutting options that affect multiple generation stages.

    Attributes:
        options:            Validated generator options (names, stubs, overrides).
        log_rich_format:    If True, emit logs in rich format: may include log level, timestamps, etc.
        log_level:          Current logging level.
    """
    options: GeneratorOptions = field(default_factory=GeneratorOptions)
    log_rich_format: bool = False
    log_level: LogLevel = LogLevel.WARNING

    @staticmethod
    def default() -> 'GenerationContext':
        """Create a GenerationContext with default settings."""
        return GenerationContext(log_level=LogLevel.WARNING)
