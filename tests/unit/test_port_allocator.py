"""Unit tests for port selection and bounded bind retries."""

import logging
import random
import socket

import pytest

from chunkserver.bootstrap.config import ServerConfig
from chunkserver.bootstrap.port_allocator import RandomPortSelector, allocate_listener
from chunkserver.domain.errors import BindFailure, ErrorKind


class FakeBinder:
    """Records bind attempts and succeeds only on the given ports."""

    def __init__(self, free_ports=()):
        self.free_ports = set(free_ports)
        self.attempts: list[int] = []

    def __call__(self, host: str, port: int):
        self.attempts.append(port)
        if port in self.free_ports:
            return ("listener", host, port)
        raise OSError(98, "Address already in use")


class ScriptedSelector(RandomPortSelector):
    """Returns ports from a fixed script."""

    def __init__(self, ports):
        super().__init__()
        self._ports = iter(ports)

    def draw(self, low: int, high: int) -> int:
        return next(self._ports)


def test_selector_draws_inside_half_open_range():
    """Draws stay within [low, high)."""
    selector = RandomPortSelector(random.Random(7))
    draws = {selector.draw(50000, 50003) for _ in range(200)}
    assert draws == {50000, 50001, 50002}


def test_seeded_selectors_repeat_sequences():
    """The same seed yields the same sequence."""
    first = RandomPortSelector(random.Random(42))
    second = RandomPortSelector(random.Random(42))
    assert [first.draw(1, 60000) for _ in range(5)] == [
        second.draw(1, 60000) for _ in range(5)
    ]


def test_degenerate_range_yields_low_bound():
    """An empty range degrades to its lower bound instead of raising."""
    assert RandomPortSelector().draw(50000, 50000) == 50000


def test_fixed_port_is_tried_first():
    """A free fixed port is bound on the first attempt."""
    binder = FakeBinder(free_ports={4242})
    config = ServerConfig(fixed_port=4242, max_bind_retries=3)
    assert allocate_listener(config, ScriptedSelector([]), binder)[2] == 4242
    assert binder.attempts == [4242]


def test_fixed_port_without_retries_fails_after_one_attempt():
    """Retries of zero mean exactly one bind at the fixed port."""
    binder = FakeBinder()
    config = ServerConfig(fixed_port=4242, max_bind_retries=0)
    with pytest.raises(BindFailure) as excinfo:
        allocate_listener(config, ScriptedSelector([]), binder)
    assert excinfo.value.kind is ErrorKind.BIND_FAILURE
    assert binder.attempts == [4242]


def test_fixed_port_falls_through_to_random_search():
    """A taken fixed port with retries left moves on to random draws."""
    binder = FakeBinder(free_ports={50002})
    config = ServerConfig(
        fixed_port=4242, port_range_min=50000, port_range_max=50010, max_bind_retries=3
    )
    listener = allocate_listener(config, ScriptedSelector([50001, 50002]), binder)
    assert listener[2] == 50002
    assert binder.attempts == [4242, 50001, 50002]


def test_random_search_stops_after_retries():
    """Exhausting every draw raises BindFailure without extra attempts."""
    binder = FakeBinder()
    config = ServerConfig(port_range_min=50000, port_range_max=50010, max_bind_retries=3)
    with pytest.raises(BindFailure):
        allocate_listener(config, RandomPortSelector(random.Random(1)), binder)
    assert len(binder.attempts) == 3
    assert all(50000 <= port < 50010 for port in binder.attempts)


def test_duplicate_draws_are_retried():
    """A port drawn twice is simply attempted twice."""
    binder = FakeBinder()
    config = ServerConfig(max_bind_retries=3)
    with pytest.raises(BindFailure):
        allocate_listener(config, ScriptedSelector([50001, 50001, 50001]), binder)
    assert binder.attempts == [50001, 50001, 50001]


def test_zero_retries_without_fixed_port_never_binds():
    """No fixed port and no retries means no attempt at all."""
    binder = FakeBinder(free_ports={50000})
    with pytest.raises(BindFailure):
        allocate_listener(ServerConfig(max_bind_retries=0), ScriptedSelector([]), binder)
    assert binder.attempts == []


def test_bind_failures_are_logged(caplog):
    """Each failed attempt emits a port_bind_failed warning."""
    caplog.set_level(logging.WARNING, logger="chunk_server")
    binder = FakeBinder()
    config = ServerConfig(max_bind_retries=2)
    with pytest.raises(BindFailure):
        allocate_listener(config, ScriptedSelector([50001, 50002]), binder)
    events = [getattr(record, "event", None) for record in caplog.records]
    assert events.count("port_bind_failed") == 2
    assert "port_allocation_exhausted" in events


def test_real_socket_is_listening_on_loopback():
    """The default bind function produces a listening loopback socket."""
    config = ServerConfig(port_range_min=20000, port_range_max=60000, max_bind_retries=20)
    listener = allocate_listener(config)
    try:
        host, port = listener.getsockname()
        assert host == "127.0.0.1"
        with socket.create_connection((host, port), timeout=1):
            pass
    finally:
        listener.close()
