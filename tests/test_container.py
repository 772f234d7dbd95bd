"""Tests for container wiring."""

import asyncio

from cookbook_matcher.containers import build_container
from cookbook_matcher.domain.jobs import JobKind


def test_build_container_wires_workers(settings) -> None:
    container = build_container(settings)

    assert set(container.worker.handlers) == set(JobKind)
    assert container.worker.queue is container.queue
    assert container.match_service.threshold == 85.0
    assert container.lookup_service.threshold == 70
    assert len(container.reaper.lifecycles) == 3
    asyncio.run(container.close_resources())
