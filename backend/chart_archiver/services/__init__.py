"""
外部服务适配层 - Google Sheets / Slides / Drive

- SheetsDocumentGraph: 文档图服务
- SlidesPresentationService: 演示文稿服务（临时渲染文档）
- DriveObjectStore: 对象存储服务
"""

from __future__ import annotations

from typing import NamedTuple

from ..config import RuntimeConfig
from .auth import load_credentials
from .drive import DriveObjectStore
from .sheets import SheetsDocumentGraph
from .slides import SlidesPresentationService


class GoogleServices(NamedTuple):
    graph: SheetsDocumentGraph
    presentations: SlidesPresentationService
    object_store: DriveObjectStore


def build_services(config: RuntimeConfig) -> GoogleServices:
    """按配置构建全部服务（共用一份凭据）"""
    credentials = load_credentials(config)
    return GoogleServices(
        graph=SheetsDocumentGraph(credentials),
        presentations=SlidesPresentationService(credentials),
        object_store=DriveObjectStore(credentials),
    )


__all__ = [
    "GoogleServices",
    "build_services",
    "load_credentials",
    "SheetsDocumentGraph",
    "SlidesPresentationService",
    "DriveObjectStore",
]
