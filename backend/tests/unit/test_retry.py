"""
重试策略单元测试

每个模块完成后必须运行：pytest backend/tests/unit/test_retry.py -v
"""

import logging
import random

import pytest

from chart_archiver.interfaces import RetryExhausted
from chart_archiver.pipeline import Retrier, RetryPolicy


class TestRetryPolicy:
    """退避时间测试"""

    def test_default_policy(self):
        policy = RetryPolicy()
        assert policy.max_attempts == 5
        assert policy.base_waits() == [700, 1400, 2800, 5600]

    def test_backoff_non_decreasing(self):
        """测试退避单调不减且不超过上限"""
        waits = RetryPolicy(max_attempts=8).base_waits()
        assert waits == [700, 1400, 2800, 5600, 8000, 8000, 8000]
        assert all(a <= b for a, b in zip(waits, waits[1:]))
        assert max(waits) == 8000

    def test_single_attempt_has_no_waits(self):
        assert RetryPolicy(max_attempts=1).base_waits() == []


class TestRetrier:
    """重试执行测试"""

    @pytest.mark.asyncio
    async def test_always_failing_exact_attempts(self, recording_sleep):
        """测试始终失败时恰好尝试N次"""
        sleep = recording_sleep
        retrier = Retrier(RetryPolicy(jitter_ms=0), sleep=sleep)
        attempts = 0

        async def op():
            nonlocal attempts
            attempts += 1
            raise ConnectionError("rate limited")

        with pytest.raises(RetryExhausted) as exc_info:
            await retrier.run("upload-pdf", op)

        assert attempts == 5
        assert exc_info.value.label == "upload-pdf"
        assert exc_info.value.last_error == "rate limited"
        assert exc_info.value.attempts == 5
        assert sleep.calls == [0.7, 1.4, 2.8, 5.6]

    @pytest.mark.asyncio
    async def test_jitter_within_bounds(self, recording_sleep):
        """测试抖动在 [0, jitter] 区间内"""
        sleep = recording_sleep
        policy = RetryPolicy(max_attempts=4)
        retrier = Retrier(policy, sleep=sleep, rng=random.Random(42))

        async def op():
            raise ValueError("boom")

        with pytest.raises(RetryExhausted):
            await retrier.run("x", op)

        for seconds, base in zip(sleep.calls, policy.base_waits()):
            assert base / 1000 <= seconds <= (base + 300) / 1000

    @pytest.mark.asyncio
    async def test_success_after_failures(self, recording_sleep):
        """测试失败后重试成功"""
        sleep = recording_sleep
        retrier = Retrier(RetryPolicy(jitter_ms=0), sleep=sleep)
        attempts = 0

        async def op():
            nonlocal attempts
            attempts += 1
            if attempts < 3:
                raise RuntimeError("transient")
            return "ok"

        assert await retrier.run("label", op) == "ok"
        assert attempts == 3
        assert len(sleep.calls) == 2

    @pytest.mark.asyncio
    async def test_no_error_classification(self, recording_sleep):
        """测试所有异常一律重试（包括看似永久的错误）"""
        retrier = Retrier(RetryPolicy(max_attempts=3, jitter_ms=0), sleep=recording_sleep)
        attempts = 0

        async def op():
            nonlocal attempts
            attempts += 1
            raise KeyError("malformed id")

        with pytest.raises(RetryExhausted):
            await retrier.run("label", op)
        assert attempts == 3

    @pytest.mark.asyncio
    async def test_retry_logs_each_attempt(self, caplog, recording_sleep):
        """测试每次重试输出一条告警，错误信息被截断"""
        retrier = Retrier(RetryPolicy(max_attempts=3, jitter_ms=0), sleep=recording_sleep)

        async def op():
            raise RuntimeError("x" * 500)

        with caplog.at_level(logging.WARNING, logger="chart_archiver.pipeline.retry"):
            with pytest.raises(RetryExhausted) as exc_info:
                await retrier.run("resolve-dated-folder", op)

        records = [r for r in caplog.records if r.name == "chart_archiver.pipeline.retry"]
        assert len(records) == 2
        assert "resolve-dated-folder" in records[0].getMessage()
        assert "1/3" in records[0].getMessage()
        assert len(exc_info.value.last_error) <= 200
