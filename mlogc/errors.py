"""Lowering error taxonomy."""

from __future__ import annotations


class LoweringError(Exception):
    """Base class for every failure reported while lowering source."""

    def __init__(self, message: str, node_type: str = ""):
        super().__init__(message)
        self.node_type = node_type


class UnsupportedConstructError(LoweringError):
    """A statement or expression shape outside the supported subset."""


class UnsupportedOperatorError(LoweringError):
    """An operator with no target-machine equivalent."""


class MalformedAssignmentError(LoweringError):
    """Destination/source counts match neither N-to-N nor N-to-1."""


class InvalidOperandError(UnsupportedConstructError):
    """A loop-condition operand that is neither a literal nor an identifier."""


class DanglingJumpTargetError(RuntimeError):
    """A jump references an instruction outside its instruction stream."""


class FunctionNotFoundError(ValueError):
    pass
