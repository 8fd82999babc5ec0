"""
Exception types raised by the patching engine.

Only ProjectError is fatal for a run. Everything else is caught by the
executor or the runner and reported as a per-patch outcome.
"""


class GraftError(Exception):
    """Base class for all engine errors."""


class ProjectError(GraftError):
    """The project cannot be found or its files cannot be enumerated."""


class ParseError(GraftError):
    """A source file could not be parsed."""

    def __init__(self, path: str, message: str):
        super().__init__(f"{path}: {message}")
        self.path = path
        self.message = message


class TransformError(GraftError):
    """A transform could not produce valid output for the tree it was given."""


class WriteError(GraftError):
    """A patched or generated file could not be written."""

    def __init__(self, path: str, message: str):
        super().__init__(f"could not write {path}: {message}")
        self.path = path
        self.message = message
