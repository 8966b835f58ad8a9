"""Provider priority: the order in which the aggregator consults providers.

The list is always a permutation of the registered providers: partial
updates are completed with the omitted names in registration order, and
unknown names are rejected.
"""

from __future__ import annotations

from typing import Iterable, Sequence

import structlog

from recipehub.domain.exceptions import InvalidArgumentError

logger = structlog.get_logger(__name__)


class ProviderPriority:
    """Mutable, validated priority order over a fixed set of provider names."""

    def __init__(self, registered: Sequence[str], initial: Iterable[str] | None = None) -> None:
        if not registered:
            raise InvalidArgumentError("at least one provider must be registered")
        self._registered = list(registered)
        self._by_key = {name.casefold(): name for name in self._registered}
        if len(self._by_key) != len(self._registered):
            raise InvalidArgumentError("provider names must be unique (case-insensitive)")
        self._order = list(self._registered)
        if initial:
            self.set(initial)

    @property
    def registered(self) -> list[str]:
        return list(self._registered)

    def get(self) -> list[str]:
        return list(self._order)

    def set(self, order: Iterable[str]) -> list[str]:
        """Replace the order; returns the normalised result.

        Raises:
            InvalidArgumentError: ``order`` is empty or names an unknown provider.
        """
        requested = [name.strip() for name in order]
        if not requested:
            raise InvalidArgumentError("priority list must not be empty")

        normalised: list[str] = []
        seen: set[str] = set()
        for name in requested:
            key = name.casefold()
            canonical = self._by_key.get(key)
            if canonical is None:
                raise InvalidArgumentError(f"Unknown provider in priority list: {name!r}")
            if key in seen:
                continue
            seen.add(key)
            normalised.append(canonical)

        for name in self._registered:
            if name.casefold() not in seen:
                normalised.append(name)

        self._order = normalised
        logger.info("provider_priority_set", priority=normalised)
        return list(normalised)

    def resolve(self, name: str | None) -> str | None:
        """Map a case-insensitive name to the registered spelling."""
        if not name:
            return None
        return self._by_key.get(name.strip().casefold())

    def chain(self, preferred: str | None = None) -> list[str]:
        """Priority order with ``preferred`` (if registered) moved to the front."""
        first = self.resolve(preferred)
        if first is None:
            return self.get()
        return [first, *(n for n in self._order if n != first)]
