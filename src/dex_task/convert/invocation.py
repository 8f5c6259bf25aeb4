"""Ordered argument vector for the dx converter."""

from __future__ import annotations

from dex_task.convert.request import ConversionRequest

DEX_FLAG = "--dex"
NO_LOCALS_FLAG = "--no-locals"
VERBOSE_FLAG = "--verbose"
FORCE_JUMBO_FLAG = "--force-jumbo"
OUTPUT_FLAG = "--output"
MULTI_DEX_FLAG = "--multi-dex"
MAIN_DEX_LIST_FLAG = "--main-dex-list"
MINIMAL_MAIN_DEX_FLAG = "--minimal-main-dex"


def build_arguments(request: ConversionRequest) -> list[str]:
    """Return converter arguments, excluding the executable itself."""
    args = [DEX_FLAG]
    if request.no_locals:
        args.append(NO_LOCALS_FLAG)
    if request.verbose:
        args.append(VERBOSE_FLAG)
    if request.force_jumbo:
        args.append(FORCE_JUMBO_FLAG)
    args.extend([OUTPUT_FLAG, request.output_directory])

    if request.multi_dex:
        args.append(MULTI_DEX_FLAG)
        if request.main_dex_list:
            # dx only accepts the main list in its joined form.
            args.append(f"{MAIN_DEX_LIST_FLAG}={request.main_dex_list}")
            if request.minimal_main_dex:
                args.append(MINIMAL_MAIN_DEX_FLAG)

    args.extend(request.inputs)
    return args


def build_command(request: ConversionRequest) -> list[str]:
    """Return the full command line with the executable first."""
    return [request.executable, *build_arguments(request)]
