"""Immutable converter request."""

from __future__ import annotations

from dataclasses import dataclass

from dex_task.config import InvalidConfigurationError, check_main_dex_options


@dataclass(slots=True, frozen=True)
class ConversionRequest:
    """Everything the invocation builder needs for one converter run."""

    executable: str
    output_directory: str
    inputs: tuple[str, ...]
    verbose: bool = False
    no_locals: bool = False
    force_jumbo: bool = False
    multi_dex: bool = False
    main_dex_list: str | None = None
    minimal_main_dex: bool = False

    def __post_init__(self) -> None:
        if not self.executable:
            raise InvalidConfigurationError("dex.executable", "must be a non-empty string.")
        if not self.output_directory:
            raise InvalidConfigurationError("dex.output", "is required.")
        check_main_dex_options(self.multi_dex, self.main_dex_list, self.minimal_main_dex)
