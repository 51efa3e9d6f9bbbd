import pytest

from ferrview.client import ClientError
from ferrview.retry import send_with_retry


class _Flaky:
    def __init__(self, failures):
        self.failures = failures
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.failures is None or self.calls <= self.failures:
            raise ClientError("HTTP error: temporary failure")
        return "sent"


def test_succeeds_first_try():
    sleeps = []
    assert send_with_retry(lambda: "sent", 3, sleep=sleeps.append) == "sent"
    assert sleeps == []


def test_succeeds_after_retries():
    func = _Flaky(2)
    sleeps = []
    assert send_with_retry(func, 5, sleep=sleeps.append) == "sent"
    assert func.calls == 3
    assert sleeps == [1, 2]


def test_fails_after_max_retries():
    func = _Flaky(None)
    sleeps = []
    with pytest.raises(ClientError):
        send_with_retry(func, 3, sleep=sleeps.append)
    assert func.calls == 3
    assert sleeps == [1, 2]


def test_respects_max_retries():
    func = _Flaky(None)
    sleeps = []
    with pytest.raises(ClientError):
        send_with_retry(func, 5, sleep=sleeps.append)
    assert func.calls == 5
    assert sleeps == [1, 2, 4, 8]


def test_other_errors_not_retried():
    calls = []

    def boom():
        calls.append(1)
        raise RuntimeError("bug")

    with pytest.raises(RuntimeError):
        send_with_retry(boom, 3, sleep=lambda _: None)
    assert len(calls) == 1