from __future__ import annotations


class HalError(Exception):
    """Base class for every error raised by halstore."""


class InvalidArgument(HalError, ValueError):
    pass


class AlreadyExists(HalError, ValueError):
    pass


class NotFound(HalError, LookupError):
    pass


class InvalidState(HalError, RuntimeError):
    pass


class InvariantViolation(HalError):
    """A caller broke the handle contract (double close, foreign handle).

    Not meant to be recovered from.
    """


class IOFailure(HalError, OSError):
    def __init__(self, message: str, failures: list[tuple[str, BaseException]] | None = None):
        super().__init__(message)
        self.failures: list[tuple[str, BaseException]] = list(failures or [])

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else ""
