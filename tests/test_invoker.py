import asyncio
import random
from unittest.mock import AsyncMock

import pytest
from pydantic import BaseModel

from companion.configuration import MockConfigProvider
from companion.llm import (
    AttemptOutcome,
    AttemptRecord,
    CandidatesExhaustedError,
    EmptyOutputError,
    InvocationCancelledError,
    InvocationRequest,
    ResilientInvoker,
    RetryPolicy,
    backoff_delay,
    resilient_invoke,
)
from tests.decorators import with_test_config

# pylint: disable=unused-argument


class Answer(BaseModel):
    text: str


class ServiceError(Exception):
    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


def overloaded() -> ServiceError:
    return ServiceError("The model is overloaded. Please try again later.", status_code=503)


class SleepRecorder:
    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def make_request(*models: str | None) -> InvocationRequest:
    return InvocationRequest(prompt="Say hello", response_model=Answer, models=list(models) or [None])


class TestBackoffDelay:

    def test_first_attempt_has_no_delay(self):
        assert backoff_delay(1, 0.5) == 0.0
        assert backoff_delay(1, 0.5, jitter=0.2) == 0.0

    def test_delay_doubles_per_attempt(self):
        assert backoff_delay(2, 0.5) == 0.5
        assert backoff_delay(3, 0.5) == 1.0
        assert backoff_delay(4, 0.5) == 2.0

    def test_jitter_is_added(self):
        assert backoff_delay(3, 0.6, jitter=0.1) == pytest.approx(1.3)

    def test_policy_delay_stays_within_bounds(self):
        policy = RetryPolicy(max_attempts=4, base_delay=0.5, max_jitter=0.2)
        rng = random.Random(42)
        for attempt in (2, 3, 4):
            base = 0.5 * 2 ** (attempt - 2)
            for _ in range(50):
                delay = policy.delay_for(attempt, rng)
                assert base <= delay < base + 0.2

    def test_invalid_policy(self):
        with pytest.raises(ValueError):
            RetryPolicy(max_attempts=0)
        with pytest.raises(ValueError):
            RetryPolicy(base_delay=-1)

    @with_test_config
    def test_policy_from_config(self, test_provider: MockConfigProvider):
        test_provider.set_config({"llm:retry:max_attempts": 2, "llm:retry:base_delay": 0.25})
        policy = RetryPolicy.from_config()
        assert policy.max_attempts == 2
        assert policy.base_delay == 0.25
        assert policy.max_jitter == 0.2


class TestResilientInvoke:

    @pytest.mark.asyncio
    async def test_success_on_first_attempt(self):
        sleep = SleepRecorder()
        generate = AsyncMock(return_value=Answer(text="hello"))

        result = await resilient_invoke(make_request("model-a"), generate=generate, sleep=sleep)

        assert result == Answer(text="hello")
        assert sleep.delays == []
        generate.assert_awaited_once()
        assert generate.await_args.args[1] == "model-a"

    @pytest.mark.asyncio
    async def test_retries_overload_with_backoff(self):
        sleep = SleepRecorder()
        generate = AsyncMock(side_effect=[overloaded(), overloaded(), Answer(text="ok")])

        result = await resilient_invoke(make_request("model-a"), generate=generate, sleep=sleep, rng=random.Random(1))

        assert result.text == "ok"
        assert generate.await_count == 3
        assert len(sleep.delays) == 2
        assert 0.5 <= sleep.delays[0] < 0.7
        assert 1.0 <= sleep.delays[1] < 1.2

    @pytest.mark.asyncio
    async def test_falls_back_to_next_candidate_with_fresh_attempts(self):
        sleep = SleepRecorder()
        records: list[AttemptRecord] = []
        generate = AsyncMock(side_effect=[overloaded()] * 4 + [Answer(text="fallback")])

        result = await resilient_invoke(
            make_request("primary", "secondary"),
            generate=generate,
            sleep=sleep,
            rng=random.Random(7),
            on_attempt=records.append,
        )

        assert result.text == "fallback"
        assert [call.args[1] for call in generate.await_args_list] == ["primary"] * 4 + ["secondary"]
        # Three backoffs on the first candidate, none before the first attempt on the second
        assert len(sleep.delays) == 3
        assert records[-1].model == "secondary"
        assert records[-1].attempt == 1
        assert records[-1].candidate_index == 1
        assert records[-1].outcome == AttemptOutcome.SUCCESS
        assert [r.outcome for r in records[:4]] == [AttemptOutcome.TRANSIENT_FAILURE] * 4

    @pytest.mark.asyncio
    async def test_exhaustion_wraps_last_overload_error(self):
        sleep = SleepRecorder()
        errors = [overloaded() for _ in range(8)]
        generate = AsyncMock(side_effect=errors)

        with pytest.raises(CandidatesExhaustedError) as exc_info:
            await resilient_invoke(make_request("a", "b"), generate=generate, sleep=sleep)

        assert exc_info.value.last_error is errors[-1]
        assert exc_info.value.__cause__ is errors[-1]
        assert exc_info.value.attempts == 8
        assert generate.await_count == 8
        assert len(sleep.delays) == 6

    @pytest.mark.asyncio
    async def test_fatal_error_is_raised_immediately(self):
        sleep = SleepRecorder()
        error = ServiceError("Invalid API key", status_code=401)
        generate = AsyncMock(side_effect=[error, Answer(text="never")])

        with pytest.raises(ServiceError) as exc_info:
            await resilient_invoke(make_request("a", "b"), generate=generate, sleep=sleep)

        assert exc_info.value is error
        assert generate.await_count == 1
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_fatal_error_after_overload_stops_retrying(self):
        sleep = SleepRecorder()
        generate = AsyncMock(side_effect=[overloaded(), KeyError("boom"), Answer(text="never")])

        with pytest.raises(KeyError):
            await resilient_invoke(make_request("a"), generate=generate, sleep=sleep)

        assert generate.await_count == 2
        assert len(sleep.delays) == 1

    @pytest.mark.asyncio
    async def test_message_only_overload_is_retried(self):
        sleep = SleepRecorder()
        generate = AsyncMock(side_effect=[RuntimeError("503 Service Unavailable"), Answer(text="ok")])

        result = await resilient_invoke(make_request(None), generate=generate, sleep=sleep)

        assert result.text == "ok"
        assert generate.await_args_list[0].args[1] is None

    @pytest.mark.asyncio
    async def test_structured_status_takes_priority_over_message(self):
        generate = AsyncMock(side_effect=[ServiceError("upstream overloaded", status_code=500)])

        with pytest.raises(ServiceError):
            await resilient_invoke(make_request("a"), generate=generate, sleep=SleepRecorder())

        assert generate.await_count == 1

    @pytest.mark.asyncio
    async def test_missing_output_is_fatal(self):
        generate = AsyncMock(return_value=None)

        with pytest.raises(EmptyOutputError):
            await resilient_invoke(make_request("a", "b"), generate=generate, sleep=SleepRecorder())

        assert generate.await_count == 1

    @pytest.mark.asyncio
    async def test_single_attempt_policy_goes_straight_to_next_candidate(self):
        sleep = SleepRecorder()
        generate = AsyncMock(side_effect=[overloaded(), Answer(text="b")])

        result = await resilient_invoke(make_request("a", "b"), generate=generate, sleep=sleep, policy=RetryPolicy(max_attempts=1))

        assert result.text == "b"
        assert sleep.delays == []


class TestCancellation:

    @pytest.mark.asyncio
    async def test_cancel_before_first_attempt(self):
        cancel = asyncio.Event()
        cancel.set()
        generate = AsyncMock(return_value=Answer(text="x"))

        with pytest.raises(InvocationCancelledError):
            await resilient_invoke(make_request("a"), generate=generate, cancel=cancel)

        assert generate.await_count == 0

    @pytest.mark.asyncio
    async def test_cancel_during_backoff(self):
        cancel = asyncio.Event()

        async def sleep(delay: float) -> None:
            cancel.set()
            await asyncio.sleep(30)

        generate = AsyncMock(side_effect=[overloaded(), Answer(text="never")])

        with pytest.raises(InvocationCancelledError):
            await resilient_invoke(make_request("a"), generate=generate, sleep=sleep, cancel=cancel)

        assert generate.await_count == 1

    @pytest.mark.asyncio
    async def test_cancel_during_remote_call(self):
        cancel = asyncio.Event()
        started = asyncio.Event()

        async def generate(request: InvocationRequest, model: str | None) -> Answer:
            started.set()
            await asyncio.sleep(30)
            return Answer(text="late")

        async def cancel_when_started() -> None:
            await started.wait()
            cancel.set()

        canceller = asyncio.create_task(cancel_when_started())
        with pytest.raises(InvocationCancelledError):
            await resilient_invoke(make_request("a"), generate=generate, cancel=cancel)
        await canceller

    @pytest.mark.asyncio
    async def test_unset_token_does_not_interfere(self):
        cancel = asyncio.Event()
        generate = AsyncMock(return_value=Answer(text="fine"))

        result = await resilient_invoke(make_request("a"), generate=generate, cancel=cancel)

        assert result.text == "fine"


class TestResilientInvoker:

    @pytest.mark.asyncio
    @with_test_config
    async def test_invoker_uses_provider_generate_and_config_policy(self, test_provider: MockConfigProvider):
        test_provider.set_config({"llm:retry:max_attempts": 2})
        provider = AsyncMock()
        provider.generate.side_effect = [overloaded(), overloaded(), Answer(text="second model")]
        sleep = SleepRecorder()

        invoker = ResilientInvoker(provider=provider, sleep=sleep, rng=random.Random(3))
        result = await invoker.invoke(make_request("a", "b"))

        assert result.text == "second model"
        assert invoker.policy.max_attempts == 2
        assert [call.args[1] for call in provider.generate.await_args_list] == ["a", "a", "b"]
        assert len(sleep.delays) == 1

    @pytest.mark.asyncio
    async def test_explicit_policy_wins(self):
        provider = AsyncMock()
        provider.generate.side_effect = [overloaded()]
        invoker = ResilientInvoker(provider=provider, policy=RetryPolicy(max_attempts=1), sleep=SleepRecorder())

        with pytest.raises(CandidatesExhaustedError):
            await invoker.invoke(make_request("only"))
