"""Shared fixtures: a controllable clock and a fake DNS backend."""

import pytest


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    sleep = advance


class FakeBackend:
    """Upstream lookup that costs ``latency`` seconds of fake time per call."""

    def __init__(self, clock: FakeClock, addresses=("93.184.216.34",), latency: float = 0.05):
        self.clock = clock
        self.addresses = list(addresses)
        self.latency = latency
        self.calls = 0
        self.fail = False

    def __call__(self, host: str) -> list[str]:
        self.calls += 1
        self.clock.advance(self.latency)
        if self.fail:
            raise OSError(f"Name or service not known: {host}")
        return list(self.addresses)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def backend(clock):
    return FakeBackend(clock)


@pytest.fixture
def fresh_backend():
    """Factory for an independent (clock, backend) pair, one per simulated process."""

    def factory(addresses=("93.184.216.34",), latency: float = 0.05):
        clock = FakeClock()
        return clock, FakeBackend(clock, addresses=addresses, latency=latency)

    return factory
