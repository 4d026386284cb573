"""Binding clock configuration to the lifetime of a single test.

``ClockLifecycle`` is runner-agnostic: it is given a resolver that turns a
test into a ``ClockConfig`` and is told when a test is about to run and when
it has finished. The pytest plugin drives it from its hooks; other runners can
use ``ClockLifecycle.running`` around each test.

Per test the clock goes through Idle -> Configuring (``before_test``) ->
Armed (test body) -> Reset (``after_test``) -> Idle. ``after_test`` always
performs all three reset steps, even if one of them fails.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from collections.abc import Hashable
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import tzinfo
from enum import Enum
from typing import Any
from typing import Generic
from typing import TypeVar

from adjustable_clock.clock import AdjustableClock
from adjustable_clock.clock import get_clock
from adjustable_clock.types import ZoneLike
from adjustable_clock.zones import resolve_zone

logger = logging.getLogger(__name__)

T = TypeVar("T")


class TestOutcome(str, Enum):
    """Terminal outcome of a test, as reported by the runner."""

    __test__ = False

    PASSED = "passed"
    FAILED = "failed"
    ERRORED = "errored"
    SKIPPED = "skipped"
    INCOMPLETE = "incomplete"


@dataclass(frozen=True)
class ClockConfig:
    """Clock configuration declared for a test or a group of tests.

    Attributes:
        enabled: Whether clock adjustment is allowed while the test runs.
        zone: Default zone for the test, or None for the host zone. Names are
            resolved on construction, so an unknown zone fails immediately.
    """

    enabled: bool = True
    zone: tzinfo | None = None

    def __init__(self, enabled: bool = True, zone: ZoneLike | None = None) -> None:
        if not isinstance(enabled, bool):
            raise TypeError(f"enabled must be a bool, got {type(enabled).__name__}")
        object.__setattr__(self, "enabled", enabled)
        object.__setattr__(self, "zone", resolve_zone(zone) if zone is not None else None)


#: Configuration of tests that declare nothing
DISABLED = ClockConfig(enabled=False)


class ClockLifecycle(Generic[T]):
    """Arms the clock before a test and resets it afterwards.

    Attributes:
        resolver: Callable resolving a test to its ``ClockConfig``.
        key: Callable returning the cache key of a test.
        host_zone: Host zone imposed on the clock before every test, or None
            to leave the clock's own host zone alone.
    """

    def __init__(
        self,
        resolver: Callable[[T], ClockConfig],
        key: Callable[[T], Hashable] | None = None,
        clock: AdjustableClock | None = None,
        host_zone: ZoneLike | None = None,
    ) -> None:
        """Initialize the lifecycle.

        Args:
            resolver: Resolves a test to its configuration. Called at most
                once per cache key.
            key: Returns the identity a test's configuration is cached under.
                Defaults to the test object itself.
            clock: Clock to configure. Defaults to ``get_clock()`` at the time
                of each call.
            host_zone: Host zone for every test run. Applied to whichever
                clock is configured, so replacing the global clock mid-run
                does not lose it.

        Raises:
            InvalidZoneError: If ``host_zone`` is an unknown identifier.
        """
        self.resolver = resolver
        self.key = key or (lambda test: test)
        self.host_zone: tzinfo | None = resolve_zone(host_zone) if host_zone is not None else None
        self._clock = clock
        self._cache: dict[Hashable, ClockConfig] = {}

    @property
    def clock(self) -> AdjustableClock:
        return self._clock if self._clock is not None else get_clock()

    def resolve(self, test: T) -> ClockConfig:
        """Return the cached configuration of ``test``, resolving it once."""
        key = self.key(test)
        config = self._cache.get(key)
        if config is None:
            config = self.resolver(test)
            self._cache[key] = config
        return config

    def before_test(self, test: T) -> ClockConfig:
        """Configure the clock for ``test``.

        Adjustment and default zone follow the test's configuration; the
        offset always starts empty.

        Returns:
            The configuration that was applied.
        """
        config = self.resolve(test)
        clock = self.clock
        if self.host_zone is not None:
            clock.host_zone = self.host_zone
        clock.set_adjustment_allowed(config.enabled)
        clock.set_default_zone(config.zone)
        clock.set_offset(None)
        logger.debug("Clock armed for %s: %s", self.key(test), config)
        return config

    def after_test(self, test: T, outcome: TestOutcome | None = None) -> None:
        """Reset the clock after ``test``, whatever its outcome.

        Every reset step runs even when an earlier one raises; the first
        error is re-raised once all steps have run.
        """
        clock = self.clock
        steps: list[tuple[Callable[..., Any], tuple[Any, ...]]] = [
            (clock.set_adjustment_allowed, (False,)),
            (clock.set_default_zone, (None,)),
            (clock.set_offset, (None,)),
        ]
        error: Exception | None = None
        for step, args in steps:
            try:
                step(*args)
            except Exception as e:
                logger.exception("Clock reset step %s failed", step.__name__)
                error = error or e
        logger.debug("Clock reset after %s (%s)", self.key(test), outcome.value if outcome else "unknown")
        if error is not None:
            raise error

    @contextmanager
    def running(self, test: T) -> Iterator[ClockConfig]:
        """Keep the clock armed for ``test`` for the duration of the block."""
        config = self.before_test(test)
        try:
            yield config
        finally:
            self.after_test(test)
