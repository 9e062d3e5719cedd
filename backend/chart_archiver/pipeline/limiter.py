"""
并发限制器 - 限制同时在途的图表导出任务数

- 最多 max_in_flight 个任务同时执行，其余按提交顺序(FIFO)排队
- 单个任务失败不取消、不阻塞其他任务
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterable
from typing import TypeVar

T = TypeVar("T")


class ConcurrencyLimiter:
    """基于 asyncio.Semaphore 的并发限制器"""

    def __init__(self, max_in_flight: int = 2):
        if max_in_flight < 1:
            raise ValueError("max_in_flight 必须 >= 1")
        self.max_in_flight = max_in_flight
        self._semaphore = asyncio.Semaphore(max_in_flight)
        self.in_flight = 0
        self.peak_in_flight = 0

    async def limit(self, task: Callable[[], Awaitable[T]]) -> T:
        """在限额内执行任务"""
        async with self._semaphore:
            self.in_flight += 1
            self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
            try:
                return await task()
            finally:
                self.in_flight -= 1

    async def gather(
        self, tasks: Iterable[Callable[[], Awaitable[T]]]
    ) -> list[T | BaseException]:
        """
        批量执行，结果按提交顺序返回

        失败的任务以异常对象形式出现在结果中，不影响其他任务。
        """
        return await asyncio.gather(
            *(self.limit(task) for task in tasks), return_exceptions=True
        )
