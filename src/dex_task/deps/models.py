"""Typed models for persisted dependency state."""

from __future__ import annotations

from dataclasses import dataclass

from dex_task.inputs.models import InputDescriptor


@dataclass(slots=True, frozen=True)
class DependencySnapshot:
    """Inputs, outputs and invocation recorded by the last successful run."""

    inputs: tuple[InputDescriptor, ...]
    output_paths: tuple[str, ...]
    generated_at: str
    arguments: tuple[str, ...] | None = None

    def __post_init__(self) -> None:
        seen: set[str] = set()
        for descriptor in self.inputs:
            if descriptor.path in seen:
                raise ValueError(f"Duplicate input path in snapshot: {descriptor.path}")
            seen.add(descriptor.path)
