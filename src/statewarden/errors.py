"""Exception taxonomy for the reconciliation engine."""


class StatewardenError(Exception):
    """Base class for every error raised by statewarden."""


class ToolingError(StatewardenError):
    """An external tool failed to run, timed out, or produced no output."""

    def __init__(self, message: str, output: str = ""):
        super().__init__(f"{message}. out: {output}" if output else message)
        self.output = output


class ConversionError(ToolingError):
    """The state converter could not turn a binary state into JSON."""


class CheckerError(ToolingError):
    """The compliance checker could not be executed."""


class ParseError(StatewardenError):
    """Compliance checker output does not have the expected structure."""


class TransientFetchError(StatewardenError):
    """The object store could not be probed or read."""


class PersistenceError(StatewardenError):
    """A table read or write failed."""
