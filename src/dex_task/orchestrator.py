"""Incremental dex conversion run: resolve, evaluate, convert, persist."""

from __future__ import annotations

import os
import re
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from pathlib import Path

from dex_task.config import InvalidConfigurationError, TaskConfig
from dex_task.convert import (
    CommandRunner,
    ConversionFailedError,
    ConversionRequest,
    build_arguments,
    build_command,
    run_checked,
    run_command,
)
from dex_task.deps import (
    DependencySnapshot,
    DependencyStore,
    DependencyStoreCorruptError,
    DependencyStoreWriteError,
    StalenessVerdict,
    evaluate_staleness,
)
from dex_task.errors import DexTaskError
from dex_task.inputs import (
    SIGNATURE_SHA256,
    InputDescriptor,
    descriptor_map,
    resolve_inputs,
)
from dex_task.logging import (
    LEVEL_ERROR,
    LEVEL_INFO,
    LEVEL_WARNING,
    BuildEvent,
    make_event,
    utc_timestamp,
)

STATE_RESOLVING = "resolving"
STATE_EVALUATING = "evaluating"
STATE_SKIPPING = "skipping"
STATE_CONVERTING = "converting"
STATE_PERSISTING = "persisting"
STATE_DONE = "done"
STATE_FAILING = "failing"

OUTCOME_SKIPPED = "skipped"
OUTCOME_CONVERTED = "converted"

PRIMARY_ARCHIVE_NAME = "classes.dex"
_ARCHIVE_PATTERN = re.compile(r"^classes(\d*)\.dex$")

EventSink = Callable[[BuildEvent], None]


class OutputDirectoryError(DexTaskError):
    """Raised when the output directory cannot be created."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"{reason} ({path})")
        self.path = path
        self.reason = reason


@dataclass(slots=True, frozen=True)
class RunResult:
    """Summary of one finished task run."""

    outcome: str
    reason: str
    states: tuple[str, ...]
    inputs: tuple[InputDescriptor, ...]
    arguments: tuple[str, ...]
    output_paths: tuple[str, ...]
    snapshot_written: bool
    duration_ms: int
    events: tuple[BuildEvent, ...]


class DexConversionTask:
    """Runs the converter only when tracked inputs or outputs changed.

    Only this class spawns processes or writes the dependency file; the
    resolver, store, evaluator and builder it sequences stay side-effect free
    apart from filesystem reads and the atomic dependency file replace.
    """

    def __init__(
        self,
        config: TaskConfig,
        runner: CommandRunner = run_command,
        event_sink: EventSink | None = None,
    ) -> None:
        if config.output is None:
            raise InvalidConfigurationError("dex.output", "is required.")
        self._config = config
        self._output_dir = Path(os.path.abspath(config.output))
        self._store = DependencyStore(config.depfile_path)
        self._runner = runner
        self._event_sink = event_sink
        self._events: list[BuildEvent] = []
        self._states: list[str] = []
        self._request: ConversionRequest | None = None
        self._arguments: tuple[str, ...] = ()

    @property
    def store(self) -> DependencyStore:
        return self._store

    @property
    def states(self) -> tuple[str, ...]:
        """Return the states visited by the current or last run."""
        return tuple(self._states)

    @property
    def events(self) -> tuple[BuildEvent, ...]:
        """Return the events emitted by the current or last run."""
        return tuple(self._events)

    @property
    def request(self) -> ConversionRequest:
        """Return the request built by the last resolution."""
        if self._request is None:
            raise RuntimeError("Inputs have not been resolved yet.")
        return self._request

    def run(self) -> RunResult:
        """Execute one run, re-raising fatal task errors after recording them."""
        started = time.perf_counter()
        self._events = []
        self._states = []
        states = self._states
        try:
            states.append(STATE_RESOLVING)
            inputs = self.resolve_inputs()

            states.append(STATE_EVALUATING)
            verdict = self.evaluate(inputs)
            if not verdict.stale:
                states.append(STATE_SKIPPING)
                self._emit(
                    "skip_up_to_date",
                    "No new compiled code. No need to convert bytecode to dalvik format.",
                )
                return self._result(OUTCOME_SKIPPED, verdict, states, inputs, (), False, started)

            states.append(STATE_CONVERTING)
            output_paths = self.convert()

            states.append(STATE_PERSISTING)
            written = self.persist(inputs, output_paths)
            states.append(STATE_DONE)
            return self._result(
                OUTCOME_CONVERTED, verdict, states, inputs, output_paths, written, started
            )
        except DexTaskError as exc:
            states.append(STATE_FAILING)
            self._emit("run_failed", str(exc), level=LEVEL_ERROR, error=type(exc).__name__)
            raise

    def resolve_inputs(self) -> list[InputDescriptor]:
        """Resolve converter inputs plus the main dex list, if any."""
        previous: dict[str, InputDescriptor] | None = None
        if self._config.signature == SIGNATURE_SHA256:
            snapshot = self._store.load()
            previous = descriptor_map(snapshot.inputs) if snapshot is not None else None
        resolved = resolve_inputs(
            self._config.inputs.paths,
            self._config.inputs.trees,
            signature=self._config.signature,
            previous=previous,
        )
        inputs = [
            descriptor for descriptor in resolved if not self._is_task_output(descriptor.path)
        ]
        for descriptor in inputs:
            self._emit(
                "input_resolved",
                f"input: {descriptor.path}",
                path=descriptor.path,
                size=descriptor.size,
            )

        main_dex_list = self._config.dex.main_dex_list
        if self._config.dex.multi_dex and main_dex_list is None:
            self._emit(
                "main_dex_list_absent",
                "Multi-dex enabled without a main dex list; the converter picks the split.",
            )
        self._request = self._build_request(tuple(descriptor.path for descriptor in inputs))
        self._arguments = tuple(build_arguments(self._request))

        if main_dex_list is not None:
            known = {descriptor.path for descriptor in inputs}
            for descriptor in resolve_inputs(
                [main_dex_list], signature=self._config.signature, previous=previous
            ):
                if descriptor.path not in known:
                    inputs.append(descriptor)
        return inputs

    def evaluate(self, inputs: Sequence[InputDescriptor]) -> StalenessVerdict:
        """Load the previous snapshot and decide whether to rebuild."""
        try:
            previous = self._store.read()
        except DependencyStoreCorruptError as exc:
            self._emit(
                "depfile_unreadable",
                f"Ignoring dependency file, forcing a rebuild: {exc}",
                level=LEVEL_WARNING,
                path=exc.path,
            )
            previous = None
        return evaluate_staleness(inputs, previous, arguments=self._arguments)

    def convert(self) -> tuple[str, ...]:
        """Spawn the converter and return the archives it left behind."""
        self._emit(
            "conversion_starting",
            f"Converting compiled files and external libraries into {self._output_dir}...",
            output=str(self._output_dir),
            input_count=len(self.request.inputs),
        )
        try:
            self._output_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise OutputDirectoryError(
                str(self._output_dir), reason=f"Output directory could not be created: {exc}"
            ) from exc
        command = build_command(self.request)
        try:
            result = run_checked(command, runner=self._runner)
        except ConversionFailedError as exc:
            self._emit(
                "conversion_failed",
                f"Converter exited with status {exc.exit_code}.",
                level=LEVEL_ERROR,
                exit_code=exc.exit_code,
                stderr=exc.stderr,
            )
            raise
        if result.stdout.strip():
            self._emit("converter_output", result.stdout.rstrip())
        return collect_archives(self._output_dir)

    def persist(self, inputs: Sequence[InputDescriptor], output_paths: Sequence[str]) -> bool:
        """Write a fresh snapshot; failures are reported, never raised."""
        snapshot = DependencySnapshot(
            inputs=tuple(inputs),
            output_paths=tuple(output_paths),
            generated_at=utc_timestamp(),
            arguments=self._arguments,
        )
        try:
            self._store.save(snapshot)
        except DependencyStoreWriteError as exc:
            self._emit(
                "depfile_write_failed",
                f"Conversion succeeded but the dependency file was not written: {exc}",
                level=LEVEL_WARNING,
                path=exc.path,
            )
            return False
        self._emit(
            "depfile_written",
            f"Wrote dependency file {self._store.path}",
            path=str(self._store.path),
            input_count=len(inputs),
            output_count=len(output_paths),
        )
        return True

    def _is_task_output(self, path: str) -> bool:
        if path in (str(self._store.path), f"{self._store.path}.tmp"):
            return True
        candidate = Path(path)
        return candidate.parent == self._output_dir and bool(
            _ARCHIVE_PATTERN.match(candidate.name)
        )

    def _build_request(self, converter_inputs: tuple[str, ...]) -> ConversionRequest:
        main_dex_list = self._config.dex.main_dex_list
        return ConversionRequest(
            executable=self._config.executable,
            output_directory=str(self._output_dir),
            inputs=converter_inputs,
            verbose=self._config.dex.verbose,
            no_locals=self._config.dex.no_locals,
            force_jumbo=self._config.dex.force_jumbo,
            multi_dex=self._config.dex.multi_dex,
            main_dex_list=str(main_dex_list) if main_dex_list is not None else None,
            minimal_main_dex=self._config.dex.minimal_main_dex,
        )

    def _emit(self, event: str, message: str, level: str = LEVEL_INFO, **metadata: object) -> None:
        record = make_event(event, message, level=level, **metadata)
        self._events.append(record)
        if self._event_sink is not None:
            self._event_sink(record)

    def _result(
        self,
        outcome: str,
        verdict: StalenessVerdict,
        states: list[str],
        inputs: Sequence[InputDescriptor],
        output_paths: Sequence[str],
        snapshot_written: bool,
        started: float,
    ) -> RunResult:
        return RunResult(
            outcome=outcome,
            reason=verdict.reason,
            states=tuple(states),
            inputs=tuple(inputs),
            arguments=self._arguments,
            output_paths=tuple(output_paths),
            snapshot_written=snapshot_written,
            duration_ms=int((time.perf_counter() - started) * 1000),
            events=tuple(self._events),
        )


def collect_archives(output_dir: Path) -> tuple[str, ...]:
    """Return classes*.dex archives in natural order, or the primary path."""
    found: list[tuple[int, str]] = []
    if output_dir.is_dir():
        for entry in output_dir.iterdir():
            match = _ARCHIVE_PATTERN.match(entry.name)
            if match is None or not entry.is_file():
                continue
            found.append((int(match.group(1) or "1"), str(entry)))
    if not found:
        return (str(output_dir / PRIMARY_ARCHIVE_NAME),)
    return tuple(path for _, path in sorted(found))
