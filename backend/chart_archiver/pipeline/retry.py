"""
重试策略 - 有界指数退避 + 抖动

策略：
1. 最多尝试 max_attempts 次（默认5）
2. 失败且仍有次数时，等待 wait + U(0, jitter)，随后 wait 翻倍并受上限约束
3. 全部失败后抛出 RetryExhausted（携带标签与最后一次错误信息）

注意：不区分可重试/不可重试错误，所有异常一律按同一方式重试。

测试要点：
- test_always_failing_exact_attempts: 始终失败时恰好尝试N次
- test_backoff_non_decreasing: 退避时间单调不减且不超过上限
- test_retry_logs_each_attempt: 每次重试输出一条日志
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from ..interfaces import RetryExhausted

logger = logging.getLogger(__name__)

T = TypeVar("T")

ERROR_MESSAGE_LIMIT = 200


@dataclass(frozen=True)
class RetryPolicy:
    """重试时间参数（毫秒）"""

    max_attempts: int = 5
    initial_wait_ms: int = 700
    max_wait_ms: int = 8000
    jitter_ms: int = 300

    @classmethod
    def from_config(cls, config) -> RetryPolicy:
        return cls(
            max_attempts=config.max_attempts,
            initial_wait_ms=config.initial_wait_ms,
            max_wait_ms=config.max_wait_ms,
            jitter_ms=config.jitter_ms,
        )

    def base_waits(self) -> list[int]:
        """每次重试前的基础等待（不含抖动），长度为 max_attempts - 1"""
        waits = []
        wait = min(self.initial_wait_ms, self.max_wait_ms)
        for _ in range(max(0, self.max_attempts - 1)):
            waits.append(wait)
            wait = min(wait * 2, self.max_wait_ms)
        return waits


def _truncate(message: str, limit: int = ERROR_MESSAGE_LIMIT) -> str:
    return message if len(message) <= limit else message[: limit - 3] + "..."


class Retrier:
    """按策略执行异步操作"""

    def __init__(
        self,
        policy: RetryPolicy | None = None,
        *,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: random.Random | None = None,
    ):
        self.policy = policy or RetryPolicy()
        self._sleep = sleep
        self._rng = rng or random.Random()

    async def run(self, label: str, operation: Callable[[], Awaitable[T]]) -> T:
        """
        执行 operation，失败时按策略重试

        Args:
            label: 操作标签（日志与异常中使用）
            operation: 无参协程工厂，每次尝试调用一次

        Raises:
            RetryExhausted: 全部尝试均失败
        """
        max_attempts = max(1, self.policy.max_attempts)
        waits = self.policy.base_waits()
        last_error = ""

        for attempt in range(1, max_attempts + 1):
            try:
                return await operation()
            except Exception as e:
                last_error = str(e) or type(e).__name__
                if attempt >= max_attempts:
                    break

                wait_ms = waits[attempt - 1]
                if self.policy.jitter_ms:
                    wait_ms += self._rng.uniform(0, self.policy.jitter_ms)
                logger.warning(
                    "[%s] 第%d/%d次尝试失败，%.0fms后重试: %s",
                    label,
                    attempt,
                    max_attempts,
                    wait_ms,
                    _truncate(last_error),
                )
                await self._sleep(wait_ms / 1000.0)

        raise RetryExhausted(label, _truncate(last_error), attempts=max_attempts)


async def with_retry(
    label: str,
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy | None = None,
) -> T:
    """使用默认（或指定）策略执行一次带重试的操作"""
    return await Retrier(policy).run(label, operation)
