"""Tests for SubagentRuntime deadlines, cancellation and result envelopes."""

import asyncio

import pytest

from codescout.runtime.cancellation import CancellationSource, TaskCanceledError
from codescout.runtime.task_runtime import SubagentRuntime, Task
from codescout.runtime.worker_pool import WorkerPool
from codescout.schemas import TaskStatus


@pytest.fixture
def runtime():
    return SubagentRuntime(worker_pool=WorkerPool(max_concurrent=2), default_deadline_ms=1000)


class TestTaskOutcomes:
    """Test that every outcome is reported through a TaskResult."""

    @pytest.mark.asyncio
    async def test_ok_result_carries_value(self, runtime):
        """Successful work yields status ok with its value."""

        async def work(token):
            return {"answer": 42}

        result = await runtime.run(Task(role="probe", run=work))

        assert result.status == TaskStatus.OK
        assert result.ok
        assert result.value == {"answer": 42}
        assert result.error is None
        assert result.timing.elapsed_ms >= 0
        assert result.timing.started_at > 0

    @pytest.mark.asyncio
    async def test_deadline_yields_timeout(self, runtime):
        """A 100ms job under a 25ms deadline times out promptly."""

        async def slow(token):
            await asyncio.sleep(0.1)
            return "late"

        result = await runtime.run(Task(role="slow", run=slow, deadline_ms=25))

        assert result.status == TaskStatus.TIMEOUT
        assert result.error.name == "TaskTimeoutError"
        assert "25ms" in result.error.message
        assert result.timing.elapsed_ms < 100

    @pytest.mark.asyncio
    async def test_deadline_trips_task_token(self, runtime):
        """The token handed to work trips when the deadline elapses."""
        seen = {}

        async def slow(token):
            seen["token"] = token
            await asyncio.sleep(0.1)

        await runtime.run(Task(role="slow", run=slow, deadline_ms=20))

        assert seen["token"].cancelled

    @pytest.mark.asyncio
    async def test_exception_yields_error(self, runtime):
        """Exceptions are captured, not propagated."""

        async def broken(token):
            raise KeyError("missing")

        result = await runtime.run(Task(role="broken", run=broken))

        assert result.status == TaskStatus.ERROR
        assert result.error.name == "KeyError"
        assert "missing" in result.error.message
        assert result.value is None

    @pytest.mark.asyncio
    async def test_external_cancel_yields_canceled(self, runtime):
        """Tripping the caller's token while work polls it reports canceled."""
        source = CancellationSource()

        async def polling(token):
            for _ in range(100):
                token.raise_if_cancelled()
                await asyncio.sleep(0.005)
            return "finished"

        async def cancel_soon():
            await asyncio.sleep(0.02)
            source.cancel("user aborted")

        result, _ = await asyncio.gather(
            runtime.run(Task(role="polling", run=polling), source.token),
            cancel_soon(),
        )

        assert result.status == TaskStatus.CANCELED
        assert result.error.name == "TaskCanceledError"

    @pytest.mark.asyncio
    async def test_pre_cancelled_token_never_runs_work(self, runtime):
        """An already tripped token yields canceled without invoking the work."""
        source = CancellationSource()
        source.cancel()
        calls = []

        async def work(token):
            calls.append(1)

        result = await runtime.run(Task(role="never", run=work), source.token)

        assert result.status == TaskStatus.CANCELED
        assert calls == []

    @pytest.mark.asyncio
    async def test_task_can_only_run_once(self, runtime):
        """Running a consumed task reports an error instead of re-running it."""
        calls = []

        async def work(token):
            calls.append(1)
            return "once"

        task = Task(role="once", run=work)
        first = await runtime.run(task)
        second = await runtime.run(task)

        assert first.status == TaskStatus.OK
        assert second.status == TaskStatus.ERROR
        assert "already run" in second.error.message
        assert calls == [1]

    @pytest.mark.asyncio
    async def test_canceled_error_raised_by_work(self, runtime):
        """Work raising TaskCanceledError on its own is reported as canceled."""

        async def work(token):
            raise TaskCanceledError("gave up")

        result = await runtime.run(Task(role="quitter", run=work))

        assert result.status == TaskStatus.CANCELED

    def test_invalid_default_deadline(self):
        """Default deadline must be positive."""
        with pytest.raises(ValueError):
            SubagentRuntime(default_deadline_ms=0)


class TestTaskResultSerialization:
    """Test the serialized envelope carries exactly one of value and error."""

    @pytest.mark.asyncio
    async def test_ok_omits_error_key(self, runtime):
        async def work(token):
            return "value"

        data = (await runtime.run(Task(role="ok", run=work))).model_dump(by_alias=True)

        assert data["status"] == "ok"
        assert data["value"] == "value"
        assert "error" not in data
        assert set(data["timing"]) == {"startedAt", "elapsedMs"}

    @pytest.mark.asyncio
    async def test_error_omits_value_key(self, runtime):
        async def work(token):
            raise ValueError("nope")

        data = (await runtime.run(Task(role="err", run=work))).model_dump(mode="json")

        assert data["status"] == "error"
        assert data["error"] == {"name": "ValueError", "message": "nope"}
        assert "value" not in data


class TestSharedCallerToken:
    """Test that runs sharing one caller token do not leak subscriptions."""

    @pytest.mark.asyncio
    async def test_callbacks_released_after_each_run(self, runtime):
        source = CancellationSource()

        async def work(token):
            return "ok"

        async def slow(token):
            await asyncio.sleep(0.1)

        for _ in range(50):
            await runtime.run(Task(role="repeat", run=work), source.token)
        await runtime.run(Task(role="late", run=slow, deadline_ms=10), source.token)

        assert source.token._callbacks == []
        assert not source.cancelled
