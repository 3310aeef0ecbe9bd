"""
Resilient invocation of generative models.

A call is retried only when the service reports overload. Each candidate model
gets a fixed number of attempts with exponential backoff and jitter between
them; when a candidate is exhausted the next one is tried from attempt 1.
Any other failure is raised immediately.
"""

from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from loguru import logger
from pydantic import BaseModel

from companion.configuration import ConfigValue

from .errors import CandidatesExhaustedError, EmptyOutputError, InvocationCancelledError, is_transient_error
from .models import AttemptOutcome, AttemptRecord, InvocationRequest
from .providers import get_provider
from .providers.provider import LLMProvider

Generate = Callable[[InvocationRequest, str | None], Awaitable[BaseModel | None]]
Sleep = Callable[[float], Awaitable[Any]]
AttemptCallback = Callable[[AttemptRecord], None]


@dataclass(frozen=True)
class RetryPolicy:
    """Attempts per candidate model and backoff parameters (seconds)"""

    max_attempts: int = 4
    base_delay: float = 0.5
    max_jitter: float = 0.2

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay < 0 or self.max_jitter < 0:
            raise ValueError("base_delay and max_jitter must be non-negative")

    @classmethod
    def from_config(cls) -> RetryPolicy:
        return cls(
            max_attempts=int(ConfigValue("llm.retry.max_attempts", default=cls.max_attempts).resolve()),
            base_delay=float(ConfigValue("llm.retry.base_delay", default=cls.base_delay).resolve()),
            max_jitter=float(ConfigValue("llm.retry.max_jitter", default=cls.max_jitter).resolve()),
        )

    def delay_for(self, attempt: int, rng: random.Random) -> float:
        """Delay to wait before `attempt` (1-based) of a candidate"""
        if attempt <= 1:
            return 0.0
        return backoff_delay(attempt, self.base_delay, rng.random() * self.max_jitter)


def backoff_delay(attempt: int, base_delay: float, jitter: float = 0.0) -> float:
    """Delay before attempt n: 0 for the first attempt, base_delay * 2^(n-2) + jitter after that."""
    if attempt <= 1:
        return 0.0
    return base_delay * 2 ** (attempt - 2) + jitter


async def _run_cancellable(awaitable: Awaitable[Any], cancel: asyncio.Event | None) -> Any:
    """Await `awaitable` unless `cancel` fires first"""
    if cancel is None:
        return await awaitable

    if cancel.is_set():
        if asyncio.iscoroutine(awaitable):
            awaitable.close()
        raise InvocationCancelledError("Invocation cancelled")

    task: asyncio.Future = asyncio.ensure_future(awaitable)
    waiter: asyncio.Future = asyncio.ensure_future(cancel.wait())
    try:
        done, _ = await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        task.cancel()
        raise
    finally:
        waiter.cancel()

    if task in done:
        return task.result()

    task.cancel()
    await asyncio.gather(task, return_exceptions=True)
    raise InvocationCancelledError("Invocation cancelled")


def _notify(on_attempt: AttemptCallback | None, record: AttemptRecord) -> None:
    if on_attempt is not None:
        on_attempt(record)


async def resilient_invoke(
    request: InvocationRequest,
    *,
    generate: Generate,
    policy: RetryPolicy | None = None,
    sleep: Sleep = asyncio.sleep,
    rng: random.Random | None = None,
    cancel: asyncio.Event | None = None,
    on_attempt: AttemptCallback | None = None,
) -> BaseModel:
    """Invoke `generate` for each candidate model in turn until one succeeds.

    Returns the first output produced. Raises the original error on the first
    non-overload failure, InvocationCancelledError when `cancel` is set, and
    CandidatesExhaustedError (chained to the last overload error) when every
    attempt on every candidate was overloaded.
    """
    policy = policy or RetryPolicy()
    rng = rng or random.Random()

    last_error: BaseException | None = None
    total_attempts: int = 0

    for candidate_index, model in enumerate(request.models):
        for attempt in range(1, policy.max_attempts + 1):

            delay: float = policy.delay_for(attempt, rng)
            if delay > 0:
                logger.debug(f"Backing off {delay:.3f}s before attempt {attempt} on model '{model or 'default'}'")
                await _run_cancellable(sleep(delay), cancel)

            total_attempts += 1
            try:
                output: BaseModel | None = await _run_cancellable(generate(request, model), cancel)
                if output is None:
                    raise EmptyOutputError(f"Model '{model or 'default'}' returned no output")

            except InvocationCancelledError:
                logger.info(f"Invocation cancelled during attempt {attempt} on model '{model or 'default'}'")
                raise

            except Exception as exc:  # pylint: disable=broad-exception-caught
                transient: bool = is_transient_error(exc)
                _notify(
                    on_attempt,
                    AttemptRecord(
                        model=model,
                        candidate_index=candidate_index,
                        attempt=attempt,
                        outcome=AttemptOutcome.TRANSIENT_FAILURE if transient else AttemptOutcome.FATAL_FAILURE,
                        delay=delay,
                        error=str(exc),
                    ),
                )
                if not transient:
                    logger.error(f"Attempt {attempt}/{policy.max_attempts} on model '{model or 'default'}' failed: {exc}")
                    raise

                last_error = exc
                logger.warning(f"Attempt {attempt}/{policy.max_attempts} on model '{model or 'default'}' overloaded: {exc}")
                continue

            _notify(
                on_attempt,
                AttemptRecord(
                    model=model,
                    candidate_index=candidate_index,
                    attempt=attempt,
                    outcome=AttemptOutcome.SUCCESS,
                    delay=delay,
                ),
            )
            if total_attempts > 1:
                logger.info(f"Model '{model or 'default'}' succeeded on attempt {attempt} ({total_attempts} in total)")
            return output

        if candidate_index + 1 < len(request.models):
            logger.warning(f"Model '{model or 'default'}' exhausted after {policy.max_attempts} attempts, falling back")

    logger.error(f"All {len(request.models)} candidate model(s) overloaded after {total_attempts} attempts")
    raise CandidatesExhaustedError(
        f"Model service overloaded after {total_attempts} attempts: {last_error}",
        last_error=last_error,
        attempts=total_attempts,
    ) from last_error


class ResilientInvoker:
    """Binds a provider and a retry policy to `resilient_invoke`"""

    def __init__(
        self,
        provider: LLMProvider | None = None,
        policy: RetryPolicy | None = None,
        *,
        sleep: Sleep = asyncio.sleep,
        rng: random.Random | None = None,
    ) -> None:
        self._provider: LLMProvider | None = provider
        self._policy: RetryPolicy | None = policy
        self.sleep: Sleep = sleep
        self.rng: random.Random | None = rng

    @property
    def provider(self) -> LLMProvider:
        if self._provider is None:
            self._provider = get_provider()
        return self._provider

    @property
    def policy(self) -> RetryPolicy:
        if self._policy is None:
            self._policy = RetryPolicy.from_config()
        return self._policy

    async def invoke(
        self,
        request: InvocationRequest,
        *,
        cancel: asyncio.Event | None = None,
        on_attempt: AttemptCallback | None = None,
    ) -> BaseModel:
        return await resilient_invoke(
            request,
            generate=self.provider.generate,
            policy=self.policy,
            sleep=self.sleep,
            rng=self.rng,
            cancel=cancel,
            on_attempt=on_attempt,
        )
