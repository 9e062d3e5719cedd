"""
Google API 调用基类

googleapiclient 为同步阻塞调用，且底层 httplib2.Http 非线程安全：
每次执行都在线程池中运行，并使用独立的 AuthorizedHttp。
重试统一由流水线的 Retrier 负责，这里不做客户端重试。
"""

from __future__ import annotations

import asyncio
from typing import Any

import google_auth_httplib2
import httplib2
from googleapiclient.discovery import build

HTTP_TIMEOUT_SEC = 120


class GoogleApiClient:
    """Google API 客户端基类"""

    def __init__(self, credentials: Any):
        self.credentials = credentials

    def _build(self, service_name: str, version: str) -> Any:
        return build(service_name, version, credentials=self.credentials, cache_discovery=False)

    def _new_http(self) -> google_auth_httplib2.AuthorizedHttp:
        return google_auth_httplib2.AuthorizedHttp(
            self.credentials, http=httplib2.Http(timeout=HTTP_TIMEOUT_SEC)
        )

    def _execute_sync(self, request: Any) -> Any:
        return request.execute(http=self._new_http())

    async def _execute(self, request: Any) -> Any:
        return await asyncio.to_thread(self._execute_sync, request)
