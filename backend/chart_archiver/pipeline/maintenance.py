"""
维护命令 - 清理服务账号下的文件

- cleanup_all_files: 分页列出全部未删除文件并逐个删除（或移入回收站），单个失败只记录
- purge_trash: 清空回收站

临时文档在正常流程中会被销毁；这两个命令用于清理异常中断留下的残留。
"""

from __future__ import annotations

import logging

from ..interfaces import IObjectStoreService
from .retry import Retrier

logger = logging.getLogger(__name__)


async def cleanup_all_files(
    object_store: IObjectStoreService,
    retrier: Retrier | None = None,
    *,
    trash: bool = False,
) -> tuple[int, int]:
    """
    删除服务账号可见的全部未删除文件

    Args:
        trash: 移入回收站而非永久删除

    Returns:
        (删除成功数, 删除失败数)
    """
    retrier = retrier or Retrier()
    if trash:
        label, remove = "trash-file", object_store.trash_file
    else:
        label, remove = "delete-file", object_store.delete_file
    deleted = 0
    failed = 0
    page_token: str | None = None

    while True:
        token = page_token
        files, page_token = await retrier.run(
            "list-files", lambda: object_store.list_files(token)
        )
        if not files and token is None:
            logger.info("账号下没有文件，无需清理")
            return 0, 0

        for f in files:
            file_id = f["id"]
            try:
                await retrier.run(label, lambda: remove(file_id))
            except Exception as e:
                failed += 1
                logger.warning("删除失败 %s: %s", f.get("name", file_id), e)
                continue
            deleted += 1
            logger.info("已删除 %s (%s)", f.get("name", file_id), f.get("mimeType", ""))

        if not page_token:
            break

    logger.info("清理完成: 删除%d个, 失败%d个", deleted, failed)
    return deleted, failed


async def purge_trash(object_store: IObjectStoreService, retrier: Retrier | None = None) -> None:
    """清空回收站"""
    retrier = retrier or Retrier()
    await retrier.run("empty-trash", object_store.empty_trash)
    logger.info("回收站已清空")
