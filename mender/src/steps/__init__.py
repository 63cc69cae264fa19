"""Script segmentation and script text helpers."""
from mender.src.steps.script_utils import (
    MANAGED_MARKER,
    add_managed_comment,
    generate_updated_script,
    has_executable_code,
    is_managed_test,
)
from mender.src.steps.segmenter import StepSegmenter, segment_script

__all__ = [
    "MANAGED_MARKER",
    "add_managed_comment",
    "generate_updated_script",
    "has_executable_code",
    "is_managed_test",
    "StepSegmenter",
    "segment_script",
]
