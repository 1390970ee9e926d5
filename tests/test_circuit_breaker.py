"""
Tests for the circuit breaker guarding the record store and the LLM.
"""

import asyncio

import pytest

from hr_assistant.circuit_breaker import CircuitBreaker, CircuitBreakerOpenError, CircuitState


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


def _fail():
    raise ConnectionError("backend down")


def _open(cb, failures):
    for _ in range(failures):
        with pytest.raises(ConnectionError):
            cb.call(_fail)


class TestCircuitBreaker:
    """State transitions for synchronous calls."""

    def test_initial_state_closed(self):
        """Circuit breaker should start in CLOSED state."""
        cb = CircuitBreaker(failure_threshold=3, timeout=5)
        assert cb.state == CircuitState.CLOSED
        assert cb.failure_count == 0

    def test_successful_call_in_closed_state(self):
        """Successful calls pass arguments through and return the result."""
        cb = CircuitBreaker(failure_threshold=3)

        result = cb.call(lambda a, b=0: a + b, 2, b=3)

        assert result == 5
        assert cb.state == CircuitState.CLOSED

    def test_single_failure_stays_closed(self):
        """A single failure is counted but does not open the circuit."""
        cb = CircuitBreaker(failure_threshold=3)

        _open(cb, 1)

        assert cb.state == CircuitState.CLOSED
        assert cb.failure_count == 1

    def test_success_resets_failure_count(self):
        """Failures must be consecutive to open the circuit."""
        cb = CircuitBreaker(failure_threshold=3)
        _open(cb, 2)

        cb.call(lambda: "ok")
        _open(cb, 2)

        assert cb.state == CircuitState.CLOSED
        assert cb.failure_count == 2

    def test_threshold_failures_opens_circuit(self):
        """Reaching the threshold opens the circuit."""
        cb = CircuitBreaker(failure_threshold=3)

        _open(cb, 3)

        assert cb.state == CircuitState.OPEN
        assert cb.failure_count == 3

    def test_open_circuit_blocks_calls(self):
        """An open circuit fails fast without calling through."""
        cb = CircuitBreaker(failure_threshold=2, name="RecordStore")
        _open(cb, 2)
        calls = []

        with pytest.raises(CircuitBreakerOpenError, match="RecordStore"):
            cb.call(calls.append, 1)

        assert calls == []

    def test_timeout_transitions_to_half_open(self):
        """After the timeout one trial call is let through; success closes it."""
        clock = FakeClock()
        cb = CircuitBreaker(failure_threshold=2, timeout=60, clock=clock)
        _open(cb, 2)

        clock.now += 59
        with pytest.raises(CircuitBreakerOpenError):
            cb.call(lambda: "too early")

        clock.now += 1
        assert cb.call(lambda: "testing") == "testing"
        assert cb.state == CircuitState.CLOSED
        assert cb.failure_count == 0

    def test_half_open_failure_reopens_circuit(self):
        """A failed trial call reopens the circuit."""
        clock = FakeClock()
        cb = CircuitBreaker(failure_threshold=2, timeout=60, clock=clock)
        _open(cb, 2)
        clock.now += 61

        with pytest.raises(ConnectionError):
            cb.call(_fail)

        assert cb.state == CircuitState.OPEN
        with pytest.raises(CircuitBreakerOpenError):
            cb.call(lambda: "blocked")

    def test_get_state_returns_dict(self):
        """get_state reports the breaker for monitoring."""
        clock = FakeClock()
        cb = CircuitBreaker(failure_threshold=5, name="TestBreaker", clock=clock)
        _open(cb, 1)

        state = cb.get_state()

        assert state == {
            "name": "TestBreaker",
            "state": "closed",
            "failure_count": 1,
            "failure_threshold": 5,
            "last_failure_time": 1000.0,
        }


class TestCircuitBreakerAsync:
    """call_async for coroutine functions."""

    def test_async_success(self):
        """Awaited results are returned."""
        cb = CircuitBreaker(failure_threshold=2)

        async def answer(value):
            return value * 2

        assert asyncio.run(cb.call_async(answer, 21)) == 42
        assert cb.state == CircuitState.CLOSED

    def test_async_timeouts_count_as_failures(self):
        """Timeouts raised by the wrapped coroutine open the circuit."""
        cb = CircuitBreaker(failure_threshold=2)

        async def slow():
            await asyncio.wait_for(asyncio.sleep(1), 0.01)

        for _ in range(2):
            with pytest.raises(asyncio.TimeoutError):
                asyncio.run(cb.call_async(slow))

        assert cb.state == CircuitState.OPEN

    def test_async_open_circuit_does_not_await(self):
        """An open circuit never starts the coroutine."""
        cb = CircuitBreaker(failure_threshold=1)
        started = []

        async def failing():
            started.append(True)
            raise ConnectionError("down")

        with pytest.raises(ConnectionError):
            asyncio.run(cb.call_async(failing))
        with pytest.raises(CircuitBreakerOpenError):
            asyncio.run(cb.call_async(failing))

        assert started == [True]
