import pytest

from rental_vault.errors import CallRejected, MaxRetriesExceeded, TransientCallError
from rental_vault.rpc.retry import (
    Attempting,
    Failed,
    RetryMachine,
    RetryPolicy,
    Succeeded,
    Waiting,
    drive_async,
    drive_sync,
)


class Flaky:
    """Fails ``failures`` times, then returns ``value``."""

    def __init__(self, failures: int, value="ok"):
        self.failures = failures
        self.value = value
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise ConnectionError(f"boom {self.calls}")
        return self.value


def test_delay_schedule_without_jitter():
    policy = RetryPolicy(max_attempts=5, base_delay=0.5, jitter=False)
    assert [policy.delay_after(n) for n in range(1, 5)] == [0.5, 1.0, 2.0, 4.0]


def test_delay_jitter_factor_is_between_one_and_two():
    policy = RetryPolicy(base_delay=1.0, jitter=True)
    assert policy.delay_after(3, rand=lambda: 0.0) == 4.0
    assert policy.delay_after(3, rand=lambda: 0.999) == pytest.approx(7.996)


def test_machine_transitions():
    machine = RetryMachine(RetryPolicy(max_attempts=2, base_delay=1, jitter=False), "x")
    assert machine.state == Attempting(1)

    state = machine.fail(ConnectionError("down"))
    assert isinstance(state, Waiting)
    assert state.attempt == 1 and state.delay == 1
    assert isinstance(state.error, TransientCallError)
    assert str(state.error.error) == "down"

    assert machine.wake() == Attempting(2)
    state = machine.fail(ConnectionError("still down"))
    assert isinstance(state, Failed)
    assert isinstance(state.error, MaxRetriesExceeded)
    assert state.error.attempts == 2
    assert machine.done


def test_machine_rejects_out_of_order_transition():
    machine = RetryMachine(RetryPolicy(), "x")
    machine.succeed(1)
    with pytest.raises(RuntimeError):
        machine.fail(ValueError())


def test_machine_does_not_retry_when_told_not_to():
    machine = RetryMachine(RetryPolicy(), "x", should_retry=lambda e: False)
    state = machine.fail(ValueError("revert"))
    assert isinstance(state, Failed)
    assert isinstance(state.error, CallRejected)
    assert state.attempts == 1


def test_drive_sync_recovers_after_four_failures():
    fn = Flaky(4)
    delays: list[float] = []
    machine = RetryMachine(RetryPolicy(max_attempts=5, base_delay=0.1, jitter=False), "flaky")

    assert drive_sync(machine, fn, sleep=delays.append) == "ok"
    assert fn.calls == 5
    assert delays == pytest.approx([0.1, 0.2, 0.4, 0.8])
    assert machine.state == Succeeded("ok", 5)


def test_drive_sync_gives_up_after_bound():
    fn = Flaky(6)
    delays: list[float] = []
    machine = RetryMachine(RetryPolicy(max_attempts=5, base_delay=0, jitter=False), "flaky")

    with pytest.raises(MaxRetriesExceeded) as exc_info:
        drive_sync(machine, fn, sleep=delays.append)

    assert fn.calls == 5
    assert len(delays) == 4
    last_error = exc_info.value.last_error
    assert isinstance(last_error, TransientCallError)
    assert last_error.attempt == 5
    assert isinstance(last_error.error, ConnectionError)
    assert last_error.__cause__ is last_error.error
    assert exc_info.value.__cause__ is last_error


@pytest.mark.asyncio
async def test_drive_async_uses_injected_sleep():
    fn = Flaky(2, value=42)
    delays: list[float] = []

    async def fake_sleep(seconds: float) -> None:
        delays.append(seconds)

    async def call():
        return fn()

    machine = RetryMachine(
        RetryPolicy(max_attempts=5, base_delay=1, jitter=True), "flaky", rand=lambda: 0.5
    )
    assert await drive_async(machine, call, sleep=fake_sleep) == 42
    assert delays == [1.5, 3.0]
