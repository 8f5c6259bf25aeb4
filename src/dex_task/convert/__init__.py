"""Converter request, argument building and execution."""

from .invocation import build_arguments, build_command
from .request import ConversionRequest
from .runner import (
    CommandResult,
    CommandRunner,
    ConversionFailedError,
    run_checked,
    run_command,
)

__all__ = [
    "CommandResult",
    "CommandRunner",
    "ConversionFailedError",
    "ConversionRequest",
    "build_arguments",
    "build_command",
    "run_checked",
    "run_command",
]
