"""Command line entrypoint for the incremental dex task."""

from __future__ import annotations

import argparse
import sys
from collections.abc import Callable
from pathlib import Path
from typing import TextIO

from dex_task.config import CliOverrides, TaskConfig, load_effective_config
from dex_task.convert import CommandRunner, run_command
from dex_task.errors import DexTaskError
from dex_task.inputs import SIGNATURE_MODES, TreeSpec
from dex_task.logging import LEVEL_INFO, BuildEvent, JsonlEventLog
from dex_task.orchestrator import DexConversionTask


def build_arg_parser() -> argparse.ArgumentParser:
    """Build argument parser for task configuration."""
    parser = argparse.ArgumentParser(
        prog="dex-task",
        description="Convert class files and libraries to dex, skipping unchanged inputs.",
    )
    parser.add_argument("--config", default=None, help="TOML config file (dex_task.toml).")
    parser.add_argument("--executable", default=None, help="Path or name of the dx tool.")
    parser.add_argument("--output", default=None, help="Output directory for dex archives.")
    parser.add_argument("--depfile", default=None, help="Dependency file location.")
    parser.add_argument("--event-log", default=None, help="Append run events to this JSONL file.")
    parser.add_argument("--signature", choices=SIGNATURE_MODES, default=None)
    parser.add_argument("--input", action="append", default=[], help="Explicit input file.")
    parser.add_argument(
        "--input-tree", action="append", default=[], help="Directory expanded recursively."
    )
    parser.add_argument(
        "--include-ext",
        action="append",
        default=[],
        help="Extension filter applied to every --input-tree (e.g. .class).",
    )
    parser.add_argument(
        "--exclude", action="append", default=[], help="Glob excluded from every --input-tree."
    )
    parser.add_argument("--main-dex-list", default=None, help="Classes kept in the main dex.")
    for flag, dest in (
        ("verbose", "verbose"),
        ("no-locals", "no_locals"),
        ("force-jumbo", "force_jumbo"),
        ("multi-dex", "multi_dex"),
        ("minimal-main-dex", "minimal_main_dex"),
    ):
        parser.add_argument(
            f"--{flag}", dest=dest, action=argparse.BooleanOptionalAction, default=None
        )
    return parser


def overrides_from_args(args: argparse.Namespace) -> CliOverrides:
    """Translate parsed arguments into config overrides."""
    trees = tuple(
        TreeSpec(
            root=root,
            extensions=tuple(args.include_ext),
            exclude_globs=tuple(args.exclude),
        )
        for root in args.input_tree
    )
    return CliOverrides(
        executable=args.executable,
        output=Path(args.output) if args.output is not None else None,
        depfile=Path(args.depfile) if args.depfile is not None else None,
        signature=args.signature,
        event_log=Path(args.event_log) if args.event_log is not None else None,
        verbose=args.verbose,
        no_locals=args.no_locals,
        force_jumbo=args.force_jumbo,
        multi_dex=args.multi_dex,
        main_dex_list=args.main_dex_list,
        minimal_main_dex=args.minimal_main_dex,
        input_paths=tuple(Path(path) for path in args.input),
        input_trees=trees,
    )


def console_sink(
    config: TaskConfig,
    out_stream: TextIO,
    err_stream: TextIO,
) -> Callable[[BuildEvent], None]:
    """Echo events to the console and, when configured, to a JSONL log."""
    event_log = JsonlEventLog(config.event_log) if config.event_log is not None else None

    def sink(event: BuildEvent) -> None:
        if event_log is not None:
            event_log.append(event)
        if event.event == "input_resolved" and not config.dex.verbose:
            return
        stream = out_stream if event.level == LEVEL_INFO else err_stream
        stream.write(f"{event.message}\n")
        stream.flush()

    return sink


def main(
    argv: list[str] | None = None,
    runner: CommandRunner = run_command,
    out_stream: TextIO | None = None,
    err_stream: TextIO | None = None,
) -> int:
    """Entrypoint for the dex-task process."""
    out = out_stream if out_stream is not None else sys.stdout
    err = err_stream if err_stream is not None else sys.stderr
    parser = build_arg_parser()
    args = parser.parse_args(argv)
    try:
        config = load_effective_config(
            config_path=Path(args.config) if args.config is not None else None,
            overrides=overrides_from_args(args),
        )
    except DexTaskError as exc:
        err.write(f"dex-task: error: {exc}\n")
        return 1
    task = DexConversionTask(config, runner=runner, event_sink=console_sink(config, out, err))
    try:
        task.run()
    except DexTaskError:
        # Already reported through the run_failed event.
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
