"""
Logging utilities for the Zig binding generator.

This module provides logging functions that respect the GenerationContext
log level and format flags.
"""

#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2025-2026 gwz

import sys
import time
from typing import Optional

from wz_context import GenerationContext, LogLevel


def log(context: Optional[GenerationContext], log_level: LogLevel, message: str) -> None:
    """
    Log a message if the context's level admits it.

    Args:
        context:    The generation context containing the logging level.
        log_level:  The level of the message to log.
        message:    The message to log.
    """
    if context is None:
        print("No context provided for logging.", file=sys.stderr)
        print(f"{message}", file=sys.stderr)
        return
    prefix = ""
    if context.log_rich_format:
        timestamp = time.strftime("%Y-%m-%d %H:%M:%S", time.localtime())
        prefix = {
            LogLevel.ERROR: f"{timestamp} [ERROR] ",
            LogLevel.WARNING: f"{timestamp} [WARNING] ",
            LogLevel.INFO: f"{timestamp} [INFO] ",
            LogLevel.DEBUG: f"{timestamp} [DEBUG] ",
        }.get(log_level, "")
    if context.log_level >= log_level:
        print(f"{prefix}{message}", file=sys.stderr)


def log_error(context: Optional[GenerationContext], message: str) -> None:
    log(context, LogLevel.ERROR, message)


def log_warning(context: Optional[GenerationContext], message: str) -> None:
    log(context, LogLevel.WARNING, message)


def log_info(context: Optional[GenerationContext], message: str) -> None:
    log(context, LogLevel.INFO, message)


def log_debug(context: Optional[GenerationContext], message: str) -> None:
    log(context, LogLevel.DEBUG, message)


def log_stage(
    context: Optional[GenerationContext],
    stage: str,
    *,
    world: Optional[str] = None,
    interface: Optional[str] = None,
    path: Optional[str] = None,
) -> None:
    """
    Log the start of a generation stage at INFO level.

    The message names what the stage works on, e.g.
    "Exporting interface (world 'text-tools', interface 'text:ops/format')".
    """
    subjects = []
    if path is not None:
        subjects.append(f"file '{path}'")
    if world is not None:
        subjects.append(f"world '{world}'")
    if interface is not None:
        subjects.append(f"interface '{interface}'")
    if subjects:
        log(context, LogLevel.INFO, f"{stage} ({', '.join(subjects)})")
    else:
        log(context, LogLevel.INFO, f"{stage}...")
