"""Tracked database sessions that warn when held too long."""

import logging
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager

from supabase import Client

_logger = logging.getLogger(__name__)


class TrackedSession:
    """Wraps a Supabase client for one unit of work and records its last query.

    The wrapped client is left untouched; callers go through ``table`` and
    ``rpc`` on the session so the most recent statement can be reported if
    the session is held past ``warning_seconds``.
    """

    def __init__(
        self,
        client: Client,
        warning_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._client = client
        self._warning_seconds = warning_seconds
        self._clock = clock
        self._acquired_at = clock()
        self.last_query: str | None = None
        self.released = False

    def table(self, name: str):  # noqa: ANN201
        self.last_query = f"table:{name}"
        return self._client.table(name)

    def rpc(self, function: str, params: dict[str, object]):  # noqa: ANN201
        self.last_query = f"rpc:{function}"
        return self._client.rpc(function, params)

    def release(self) -> float:
        """End the session and return how long it was held, in seconds."""
        if self.released:
            return 0.0
        self.released = True
        held = self._clock() - self._acquired_at
        if held > self._warning_seconds:
            _logger.warning(
                "Database session held for %.1fs, last query: %s",
                held,
                self.last_query,
            )
        return held


@contextmanager
def tracked_session(
    client: Client,
    warning_seconds: float,
    clock: Callable[[], float] = time.monotonic,
) -> Iterator[TrackedSession]:
    """Yield a tracked session and release it on exit."""
    session = TrackedSession(client, warning_seconds, clock)
    try:
        yield session
    finally:
        session.release()
