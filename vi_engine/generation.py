"""
FieldWatch VI - Generation Counter
==================================
Epoch tokens used to detect and discard stale asynchronous responses.

Every request that may race with a later one is tagged with a ``Generation``
taken from the counter of its selection dimension. A completion handler only
applies its result while ``is_current`` still holds for that token.
"""

from dataclasses import dataclass
from typing import Hashable, Tuple

from .errors import StaleResponseDiscarded


@dataclass(frozen=True)
class Generation:
    """Token issued for one request."""

    scope: Tuple[Hashable, ...]
    number: int


class GenerationCounter:
    """Monotonic counter for one selection dimension."""

    def __init__(self, name: str):
        self.name = name
        self._latest = 0
        self._scope: Tuple[Hashable, ...] = ()

    @property
    def latest(self) -> int:
        return self._latest

    def issue(self, *scope: Hashable) -> Generation:
        """Issue a new token, superseding every token issued before."""
        self._latest += 1
        self._scope = tuple(scope)
        return Generation(scope=self._scope, number=self._latest)

    def invalidate(self) -> None:
        """Supersede all in-flight tokens without issuing a new request."""
        self._latest += 1
        self._scope = ()

    def is_current(self, generation: Generation) -> bool:
        return generation.number == self._latest and generation.scope == self._scope

    def check(self, generation: Generation) -> None:
        """Raise ``StaleResponseDiscarded`` if the token was superseded."""
        if not self.is_current(generation):
            raise StaleResponseDiscarded(generation)

    def __repr__(self) -> str:
        return f"GenerationCounter({self.name!r}, latest={self._latest})"
