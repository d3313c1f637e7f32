"""RetryPolicy tests: success after transient errors, exhaustion, fail-fast."""

import httpx
import pytest
from google.genai.errors import ClientError, ServerError

from storystudio.services.genai_client import MissingCredentialsError
from storystudio.services.retry import RetryPolicy, is_transient, with_retry


def _rate_limited() -> ClientError:
    return ClientError(429, {"error": {"code": 429, "message": "Resource exhausted", "status": "RESOURCE_EXHAUSTED"}})


def _overloaded() -> ServerError:
    return ServerError(503, {"error": {"code": 503, "message": "The model is overloaded", "status": "UNAVAILABLE"}})


def _forbidden() -> ClientError:
    return ClientError(403, {"error": {"code": 403, "message": "Permission denied", "status": "PERMISSION_DENIED"}})


class Flaky:
    """Raises the queued errors, then returns 'ok'."""

    def __init__(self, *errors):
        self.errors = list(errors)
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return "ok"


def _recording_policy(max_retries=3, initial_delay=1.0):
    sleeps: list[float] = []

    async def sleep(seconds: float) -> None:
        sleeps.append(seconds)

    return RetryPolicy(max_retries=max_retries, initial_delay=initial_delay, sleep=sleep), sleeps


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------

def test_01_transient_classification():
    assert is_transient(_rate_limited())
    assert is_transient(_overloaded())
    assert is_transient(httpx.ConnectError("connection reset"))
    assert is_transient(RuntimeError("503 Service Unavailable"))
    assert is_transient(RuntimeError("model is overloaded"))

    assert not is_transient(_forbidden())
    assert not is_transient(ClientError(400, {"error": {"code": 400, "message": "Bad request"}}))
    assert not is_transient(MissingCredentialsError("no key"))
    assert not is_transient(ValueError("Expecting value: line 1 column 1"))


# ---------------------------------------------------------------------------
# Behaviour
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_02_succeeds_after_two_transient_failures():
    policy, sleeps = _recording_policy()
    op = Flaky(_rate_limited(), _overloaded())

    assert await policy.run(op) == "ok"
    assert op.calls == 3
    assert sleeps == [1.0, 2.0]


@pytest.mark.asyncio
async def test_03_exhaustion_reraises_last_error():
    policy, sleeps = _recording_policy(max_retries=3)
    op = Flaky(*[_rate_limited() for _ in range(10)])

    with pytest.raises(ClientError) as exc_info:
        await policy.run(op)
    assert exc_info.value.code == 429
    assert op.calls == 4
    assert sleeps == [1.0, 2.0, 4.0]


@pytest.mark.asyncio
async def test_04_non_transient_fails_fast_without_sleeping():
    policy, sleeps = _recording_policy()
    op = Flaky(_forbidden())

    with pytest.raises(ClientError):
        await policy.run(op)
    assert op.calls == 1
    assert sleeps == []


@pytest.mark.asyncio
async def test_05_missing_credentials_not_retried():
    policy, sleeps = _recording_policy()
    op = Flaky(MissingCredentialsError("Missing API key"))

    with pytest.raises(MissingCredentialsError):
        await policy.run(op)
    assert op.calls == 1
    assert sleeps == []


@pytest.mark.asyncio
async def test_06_zero_retries_means_single_attempt():
    policy, sleeps = _recording_policy(max_retries=0)
    op = Flaky(_rate_limited())

    with pytest.raises(ClientError):
        await policy.run(op)
    assert op.calls == 1
    assert sleeps == []


@pytest.mark.asyncio
async def test_07_with_retry_returns_first_success():
    op = Flaky()
    assert await with_retry(op, max_retries=3, initial_delay=0.0) == "ok"
    assert op.calls == 1
