"""Shared fixtures for broker tests.

Round-trip tests use kombu's in-process ``memory://`` transport, whose
state is global to the process, so every test works on freshly purged
queues.
"""

from __future__ import annotations

from typing import Iterator

import pytest
from kombu import Connection

from broker.topology import Topology


@pytest.fixture()
def memory_connection() -> Iterator[Connection]:
    conn = Connection("memory://")
    try:
        yield conn
    finally:
        conn.release()


@pytest.fixture()
def purge():
    """Declare *topology* on *connection* and empty its queues."""

    def _purge(connection: Connection, topology: Topology) -> None:
        topology.declare(connection)
        channel = connection.default_channel
        for queue in topology.build_queues():
            queue(channel).purge()

    return _purge

