"""Exception hierarchy shared by the solvers and drivers."""

from __future__ import annotations


class MTLError(Exception):
    """Base class for all errors raised by mtlreg."""


class InvalidConfigError(MTLError, ValueError):
    """Unsupported tag, missing extra input, or out-of-range parameter."""


class DimensionMismatchError(MTLError, ValueError):
    """Task matrices have inconsistent shapes (or a task is empty)."""


class LineSearchFailure(MTLError, RuntimeError):
    """Backtracking could not find an acceptable step within its retry bound."""

    def __init__(
        self, message: str, *, iteration: int | None = None, gamma: float | None = None
    ) -> None:
        super().__init__(message)
        self.iteration = iteration
        self.gamma = gamma
