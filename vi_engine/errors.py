"""
FieldWatch VI - Engine Errors
=============================
Error taxonomy shared by every engine component.
"""

from typing import Optional


class VIEngineError(Exception):
    """Base class for engine errors."""


class TransportFailure(VIEngineError):
    """Backend unreachable, non-2xx response, or an undecodable body."""

    def __init__(
        self,
        message: str,
        cause: Optional[BaseException] = None,
        status_code: Optional[int] = None,
        detail: Optional[str] = None
    ):
        super().__init__(message)
        self.message = message
        self.cause = cause
        self.status_code = status_code
        self.detail = detail

    def describe(self) -> str:
        """Message for the user, including the underlying cause when known."""
        if self.detail:
            return f"{self.message}: {self.detail}"
        if self.cause is not None:
            return f"{self.message}: {self.cause}"
        return self.message


class NoDataAvailable(VIEngineError):
    """A valid but empty result."""

    def __init__(self, reason: str = "no_data"):
        super().__init__(reason)
        self.reason = reason


class InvalidSelection(VIEngineError):
    """An operation referenced an unknown field, snapshot or index."""


class StaleResponseDiscarded(VIEngineError):
    """A response arrived for a generation that is no longer current."""

    def __init__(self, generation):
        super().__init__(f"stale response for generation {generation}")
        self.generation = generation
