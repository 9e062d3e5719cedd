"""
日期目录解析器 - 幂等地获取/创建门店归档根目录下的日期子目录

职责：
1. 查找父目录下名称等于 date_key 的未删除子目录
2. 不存在则创建
3. 按 (parent_folder_id, date_key) 缓存，本次运行内不再重复查询

测试要点：
- test_resolve_twice_same_id: 两次解析返回同一ID且最多创建一次
- test_existing_folder_reused: 已存在目录直接复用
- test_failure_raises_retry_exhausted: 父目录无效时抛出 RetryExhausted
"""

from __future__ import annotations

import logging

from ..interfaces import IObjectStoreService
from ..models import DatedFolder
from .retry import Retrier

logger = logging.getLogger(__name__)

RETRY_LABEL = "resolve-dated-folder"


class DatedFolderResolver:
    """日期目录解析器"""

    def __init__(self, object_store: IObjectStoreService, retrier: Retrier | None = None):
        self.object_store = object_store
        self.retrier = retrier or Retrier()
        self._cache: dict[tuple[str, str], DatedFolder] = {}

    async def resolve(self, parent_folder_id: str, date_key: str) -> str:
        """返回日期目录ID（必要时创建）"""
        key = (parent_folder_id, date_key)
        cached = self._cache.get(key)
        if cached:
            return cached.folder_id

        folder_id = await self.retrier.run(
            RETRY_LABEL, lambda: self.object_store.find_folder(parent_folder_id, date_key)
        )
        if folder_id:
            logger.debug("复用日期目录 %s/%s -> %s", parent_folder_id, date_key, folder_id)
        else:
            folder_id = await self.retrier.run(
                RETRY_LABEL, lambda: self.object_store.create_folder(parent_folder_id, date_key)
            )
            logger.info("已创建日期目录 %s/%s -> %s", parent_folder_id, date_key, folder_id)

        self._cache[key] = DatedFolder(
            parent_folder_id=parent_folder_id, date_key=date_key, folder_id=folder_id
        )
        return folder_id
