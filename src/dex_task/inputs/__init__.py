"""Input resolution package."""

from .models import (
    SIGNATURE_MODES,
    SIGNATURE_SHA256,
    SIGNATURE_STAT,
    InputDelta,
    InputDescriptor,
    TreeSpec,
)
from .resolver import (
    InputNotFoundError,
    describe_file,
    descriptor_map,
    detect_input_delta,
    expand_tree,
    resolve_inputs,
    sha256_file,
)

__all__ = [
    "InputDelta",
    "InputDescriptor",
    "InputNotFoundError",
    "SIGNATURE_MODES",
    "SIGNATURE_SHA256",
    "SIGNATURE_STAT",
    "TreeSpec",
    "describe_file",
    "descriptor_map",
    "detect_input_delta",
    "expand_tree",
    "resolve_inputs",
    "sha256_file",
]
