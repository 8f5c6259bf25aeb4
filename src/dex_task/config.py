"""Configuration loading and deterministic merge order."""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass
from pathlib import Path

from dex_task.errors import DexTaskError
from dex_task.inputs.models import SIGNATURE_MODES, SIGNATURE_STAT, TreeSpec

CONFIG_FILE_NAME = "dex_task.toml"
DEPFILE_NAME = "multidex.d"
DEFAULT_EXECUTABLE = "dx"


class InvalidConfigurationError(DexTaskError, ValueError):
    """Raised when task options are malformed or contradict each other."""

    def __init__(self, name: str, problem: str) -> None:
        super().__init__(f"Config field '{name}' {problem}")
        self.name = name
        self.problem = problem


@dataclass(slots=True, frozen=True)
class DexOptions:
    """Flags forwarded to the converter."""

    verbose: bool = False
    no_locals: bool = False
    force_jumbo: bool = False
    multi_dex: bool = False
    main_dex_list: Path | None = None
    minimal_main_dex: bool = False


@dataclass(slots=True, frozen=True)
class InputsConfig:
    """Explicit input files and directory trees."""

    paths: tuple[Path, ...] = ()
    trees: tuple[TreeSpec, ...] = ()


@dataclass(slots=True, frozen=True)
class TaskConfig:
    """Fully merged task configuration."""

    executable: str
    output: Path | None
    depfile: Path | None
    signature: str
    event_log: Path | None
    dex: DexOptions
    inputs: InputsConfig

    @property
    def depfile_path(self) -> Path:
        """Return the dependency file location, defaulting under the output."""
        if self.depfile is not None:
            return self.depfile
        if self.output is None:
            raise InvalidConfigurationError("dex.output", "is required.")
        return self.output / DEPFILE_NAME

    def to_public_dict(self) -> dict[str, object]:
        """Return serializable config snapshot for event metadata."""
        return {
            "executable": self.executable,
            "output": str(self.output) if self.output is not None else None,
            "depfile": (
                str(self.depfile_path)
                if self.output is not None or self.depfile is not None
                else None
            ),
            "signature": self.signature,
            "dex": {
                "verbose": self.dex.verbose,
                "no_locals": self.dex.no_locals,
                "force_jumbo": self.dex.force_jumbo,
                "multi_dex": self.dex.multi_dex,
                "main_dex_list": (
                    str(self.dex.main_dex_list) if self.dex.main_dex_list is not None else None
                ),
                "minimal_main_dex": self.dex.minimal_main_dex,
            },
            "inputs": {
                "paths": [str(path) for path in self.inputs.paths],
                "trees": [
                    {
                        "root": tree.root,
                        "extensions": list(tree.extensions),
                        "exclude": list(tree.exclude_globs),
                    }
                    for tree in self.inputs.trees
                ],
            },
        }


@dataclass(slots=True, frozen=True)
class CliOverrides:
    """Optional command line overrides applied at highest precedence.

    Paths are taken relative to the current working directory. Input paths and
    trees are appended to those from the config file.
    """

    executable: str | None = None
    output: Path | None = None
    depfile: Path | None = None
    signature: str | None = None
    event_log: Path | None = None
    verbose: bool | None = None
    no_locals: bool | None = None
    force_jumbo: bool | None = None
    multi_dex: bool | None = None
    main_dex_list: str | None = None
    minimal_main_dex: bool | None = None
    input_paths: tuple[Path, ...] = ()
    input_trees: tuple[TreeSpec, ...] = ()


def default_config() -> TaskConfig:
    """Build the default configuration."""
    return TaskConfig(
        executable=DEFAULT_EXECUTABLE,
        output=None,
        depfile=None,
        signature=SIGNATURE_STAT,
        event_log=None,
        dex=DexOptions(),
        inputs=InputsConfig(),
    )


def load_config_file(config_path: Path) -> dict[str, object]:
    """Load a TOML config file; a missing file yields an empty payload."""
    if not config_path.exists():
        return {}
    with config_path.open("rb") as handle:
        try:
            payload = tomllib.load(handle)
        except tomllib.TOMLDecodeError as exc:
            raise InvalidConfigurationError(str(config_path), f"is not valid TOML: {exc}") from exc
    if not isinstance(payload, dict):
        raise InvalidConfigurationError(str(config_path), "must contain a top-level table.")
    return payload


def _get_table(payload: dict[str, object], key: str) -> dict[str, object]:
    value = payload.get(key, {})
    if not isinstance(value, dict):
        raise InvalidConfigurationError(key, "must be a table.")
    return value


def _tuple_of_strings(value: object, name: str) -> tuple[str, ...]:
    if not isinstance(value, list):
        raise InvalidConfigurationError(name, "must be a list of strings.")
    output: list[str] = []
    for item in value:
        if not isinstance(item, str):
            raise InvalidConfigurationError(name, "must contain only strings.")
        output.append(item)
    return tuple(output)


def _optional_bool(payload: dict[str, object], key: str, name: str, default: bool) -> bool:
    if key not in payload:
        return default
    value = payload[key]
    if not isinstance(value, bool):
        raise InvalidConfigurationError(name, "must be a boolean.")
    return value


def _optional_string(payload: dict[str, object], key: str, name: str) -> str | None:
    if key not in payload:
        return None
    value = payload[key]
    if not isinstance(value, str):
        raise InvalidConfigurationError(name, "must be a string.")
    return value


def _absolute_path(raw: str | Path, base_dir: Path) -> Path:
    candidate = Path(raw)
    if not candidate.is_absolute():
        candidate = base_dir / candidate
    return Path(os.path.abspath(candidate))


def _resolve_executable(raw: str, base_dir: Path) -> str:
    """Keep bare command names for PATH lookup, anchor anything path-like."""
    if os.sep in raw or (os.altsep is not None and os.altsep in raw):
        return str(_absolute_path(raw, base_dir))
    return raw


def _main_dex_list_path(raw: str | None, base_dir: Path) -> Path | None:
    if raw is None or not raw.strip():
        return None
    return _absolute_path(raw, base_dir)


def _parse_trees(value: object, base_dir: Path) -> tuple[TreeSpec, ...]:
    if not isinstance(value, list):
        raise InvalidConfigurationError("inputs.trees", "must be an array of tables.")
    trees: list[TreeSpec] = []
    for index, item in enumerate(value):
        name = f"inputs.trees[{index}]"
        if not isinstance(item, dict):
            raise InvalidConfigurationError(name, "must be a table.")
        root = item.get("root")
        if not isinstance(root, str) or not root:
            raise InvalidConfigurationError(f"{name}.root", "must be a non-empty string.")
        extensions: tuple[str, ...] = ()
        if "extensions" in item:
            extensions = _tuple_of_strings(item["extensions"], f"{name}.extensions")
        exclude: tuple[str, ...] = ()
        if "exclude" in item:
            exclude = _tuple_of_strings(item["exclude"], f"{name}.exclude")
        trees.append(
            TreeSpec(
                root=str(_absolute_path(root, base_dir)),
                extensions=extensions,
                exclude_globs=exclude,
            )
        )
    return tuple(trees)


def merge_config(base: TaskConfig, payload: dict[str, object], base_dir: Path) -> TaskConfig:
    """Merge a parsed config file on top of ``base``."""
    dex_payload = _get_table(payload, "dex")
    inputs_payload = _get_table(payload, "inputs")

    executable = base.executable
    raw_executable = _optional_string(dex_payload, "executable", "dex.executable")
    if raw_executable is not None:
        executable = _resolve_executable(raw_executable, base_dir)

    output = base.output
    raw_output = _optional_string(dex_payload, "output", "dex.output")
    if raw_output is not None:
        output = _absolute_path(raw_output, base_dir)

    depfile = base.depfile
    raw_depfile = _optional_string(dex_payload, "depfile", "dex.depfile")
    if raw_depfile is not None:
        depfile = _absolute_path(raw_depfile, base_dir)

    event_log = base.event_log
    raw_event_log = _optional_string(dex_payload, "event_log", "dex.event_log")
    if raw_event_log is not None:
        event_log = _absolute_path(raw_event_log, base_dir)

    signature = _optional_string(dex_payload, "signature", "dex.signature") or base.signature

    main_dex_list = base.dex.main_dex_list
    if "main_dex_list" in dex_payload:
        main_dex_list = _main_dex_list_path(
            _optional_string(dex_payload, "main_dex_list", "dex.main_dex_list"), base_dir
        )

    dex = DexOptions(
        verbose=_optional_bool(dex_payload, "verbose", "dex.verbose", base.dex.verbose),
        no_locals=_optional_bool(dex_payload, "no_locals", "dex.no_locals", base.dex.no_locals),
        force_jumbo=_optional_bool(
            dex_payload, "force_jumbo", "dex.force_jumbo", base.dex.force_jumbo
        ),
        multi_dex=_optional_bool(dex_payload, "multi_dex", "dex.multi_dex", base.dex.multi_dex),
        main_dex_list=main_dex_list,
        minimal_main_dex=_optional_bool(
            dex_payload, "minimal_main_dex", "dex.minimal_main_dex", base.dex.minimal_main_dex
        ),
    )

    paths = base.inputs.paths
    if "paths" in inputs_payload:
        paths = paths + tuple(
            _absolute_path(raw, base_dir)
            for raw in _tuple_of_strings(inputs_payload["paths"], "inputs.paths")
        )
    trees = base.inputs.trees
    if "trees" in inputs_payload:
        trees = trees + _parse_trees(inputs_payload["trees"], base_dir)

    return TaskConfig(
        executable=executable,
        output=output,
        depfile=depfile,
        signature=signature,
        event_log=event_log,
        dex=dex,
        inputs=InputsConfig(paths=paths, trees=trees),
    )


def apply_cli_overrides(config: TaskConfig, overrides: CliOverrides) -> TaskConfig:
    """Apply command line overrides at highest precedence."""
    cwd = Path.cwd()

    def pick(override: bool | None, current: bool) -> bool:
        return override if override is not None else current

    main_dex_list = config.dex.main_dex_list
    if overrides.main_dex_list is not None:
        main_dex_list = _main_dex_list_path(overrides.main_dex_list, cwd)

    dex = DexOptions(
        verbose=pick(overrides.verbose, config.dex.verbose),
        no_locals=pick(overrides.no_locals, config.dex.no_locals),
        force_jumbo=pick(overrides.force_jumbo, config.dex.force_jumbo),
        multi_dex=pick(overrides.multi_dex, config.dex.multi_dex),
        main_dex_list=main_dex_list,
        minimal_main_dex=pick(overrides.minimal_main_dex, config.dex.minimal_main_dex),
    )
    return TaskConfig(
        executable=(
            _resolve_executable(overrides.executable, cwd)
            if overrides.executable is not None
            else config.executable
        ),
        output=(
            _absolute_path(overrides.output, cwd) if overrides.output is not None else config.output
        ),
        depfile=(
            _absolute_path(overrides.depfile, cwd)
            if overrides.depfile is not None
            else config.depfile
        ),
        signature=overrides.signature or config.signature,
        event_log=(
            _absolute_path(overrides.event_log, cwd)
            if overrides.event_log is not None
            else config.event_log
        ),
        dex=dex,
        inputs=InputsConfig(
            paths=config.inputs.paths
            + tuple(_absolute_path(path, cwd) for path in overrides.input_paths),
            trees=config.inputs.trees
            + tuple(
                TreeSpec(
                    root=str(_absolute_path(tree.root, cwd)),
                    extensions=tree.extensions,
                    exclude_globs=tree.exclude_globs,
                )
                for tree in overrides.input_trees
            ),
        ),
    )


def check_main_dex_options(
    multi_dex: bool, main_dex_list: str | Path | None, minimal_main_dex: bool
) -> None:
    """Reject main list options that the converter would silently ignore."""
    has_list = main_dex_list is not None and bool(str(main_dex_list).strip())
    if has_list and not multi_dex:
        raise InvalidConfigurationError(
            "dex.main_dex_list", "is only used when multi_dex is enabled."
        )
    if minimal_main_dex and not (multi_dex and has_list):
        raise InvalidConfigurationError(
            "dex.minimal_main_dex", "requires multi_dex and a non-empty main_dex_list."
        )


def validate_config(config: TaskConfig) -> TaskConfig:
    """Raise InvalidConfigurationError for incomplete or contradictory options."""
    if not config.executable:
        raise InvalidConfigurationError("dex.executable", "must be a non-empty string.")
    if config.output is None:
        raise InvalidConfigurationError("dex.output", "is required.")
    if config.signature not in SIGNATURE_MODES:
        raise InvalidConfigurationError(
            "dex.signature", f"must be one of {', '.join(SIGNATURE_MODES)}."
        )
    check_main_dex_options(
        config.dex.multi_dex, config.dex.main_dex_list, config.dex.minimal_main_dex
    )
    return config


def load_effective_config(
    config_path: Path | None = None,
    overrides: CliOverrides | None = None,
) -> TaskConfig:
    """Load config using merge order defaults -> config file -> overrides."""
    path = config_path if config_path is not None else Path.cwd() / CONFIG_FILE_NAME
    path = Path(os.path.abspath(path))
    if config_path is not None and not path.exists():
        raise InvalidConfigurationError(str(path), "does not exist.")
    payload = load_config_file(path)
    merged = merge_config(default_config(), payload, base_dir=path.parent)
    return validate_config(apply_cli_overrides(merged, overrides or CliOverrides()))
