"""Exception hierarchy shared across Mender components."""
from __future__ import annotations


class MenderError(Exception):
    """Base class for errors raised by Mender."""


class ScriptInputError(MenderError):
    """The caller supplied no usable script."""


class StepExecutionError(MenderError):
    """A step's code raised or timed out against the page."""


class AdvisorError(MenderError):
    """The advisor call failed or returned something unparsable."""


class InvalidRepairAction(MenderError):
    """A repair action referenced an index outside the current step list."""


class PoolClosedError(MenderError):
    """A job was submitted after the pool shut down."""
