"""
模块接口契约 - 定义外部服务的抽象接口

设计原则：
1. 流水线通过接口访问远程服务，不直接依赖 Google 客户端
2. 所有远程调用都是异步的（每次调用都是一个挂起点）
3. 便于单元测试和 fake 替换

使用方式：
    from chart_archiver.interfaces import IObjectStoreService

    class InMemoryObjectStore(IObjectStoreService):
        async def find_folder(self, parent_id: str, name: str) -> str | None:
            ...
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .models import FitTransform, ScratchDocument, SheetCharts


# ============================================================================
# 文档图服务（电子表格）
# ============================================================================

class IDocumentGraphService(ABC):
    """文档图服务接口 - 枚举表格中的工作表及其内嵌图表"""

    @abstractmethod
    async def get_charts_by_document(self, document_id: str) -> dict[str, SheetCharts]:
        """
        读取文档的全部工作表与图表

        Args:
            document_id: 表格文档ID

        Returns:
            {工作表标题: SheetCharts}
        """
        ...


# ============================================================================
# 演示文稿服务（临时渲染文档）
# ============================================================================

class IPresentationService(ABC):
    """演示文稿服务接口 - 临时文档的创建、图表插入、变换与导出"""

    @abstractmethod
    async def create_document(
        self,
        title: str,
        parent_folder_id: str | None = None,
        template_id: str | None = None,
    ) -> str:
        """
        创建（或从模板复制）演示文档

        Returns:
            新文档ID
        """
        ...

    @abstractmethod
    async def get_document(self, document_id: str) -> ScratchDocument:
        """读取文档的页面列表与页面尺寸"""
        ...

    @abstractmethod
    async def create_page(self, document_id: str) -> str:
        """追加一个空白页，返回页面ID"""
        ...

    @abstractmethod
    async def list_page_elements(self, document_id: str, page_id: str) -> list[str]:
        """列出页面上已有的元素ID"""
        ...

    @abstractmethod
    async def insert_chart(
        self,
        document_id: str,
        page_id: str,
        source_document_id: str,
        chart_id: int,
    ) -> str:
        """
        在页面上插入链接图表

        不指定初始尺寸，由服务分配固有渲染尺寸。

        Returns:
            新元素ID
        """
        ...

    @abstractmethod
    async def get_element_size(self, document_id: str, element_id: str) -> tuple[float, float]:
        """
        读取元素的固有尺寸（未缩放）

        Raises:
            RenderError: 元素不存在
        """
        ...

    @abstractmethod
    async def set_element_transform(
        self, document_id: str, element_id: str, transform: FitTransform
    ) -> None:
        """以绝对方式设置元素变换（不叠加当前变换）"""
        ...

    @abstractmethod
    async def delete_element(self, document_id: str, element_id: str) -> None:
        """删除页面元素"""
        ...

    @abstractmethod
    async def export_pdf(self, document_id: str, page_id: str) -> bytes:
        """导出指定页面为单页PDF字节流"""
        ...

    @abstractmethod
    async def delete_document(self, document_id: str, *, trash: bool = False) -> None:
        """删除（或移入回收站）文档"""
        ...


# ============================================================================
# 对象存储服务（归档目录）
# ============================================================================

class IObjectStoreService(ABC):
    """对象存储服务接口 - 目录、上传与清理"""

    @abstractmethod
    async def find_folder(self, parent_id: str, name: str) -> str | None:
        """查找父目录下名称完全匹配且未删除的子目录"""
        ...

    @abstractmethod
    async def create_folder(self, parent_id: str, name: str) -> str:
        """创建子目录，返回目录ID"""
        ...

    @abstractmethod
    async def upload_file(self, parent_id: str, name: str, mime_type: str, data: bytes) -> str:
        """上传文件，返回文件ID"""
        ...

    @abstractmethod
    async def delete_file(self, file_id: str) -> None:
        """永久删除文件"""
        ...

    @abstractmethod
    async def trash_file(self, file_id: str) -> None:
        """将文件移入回收站"""
        ...

    @abstractmethod
    async def list_files(
        self, page_token: str | None = None
    ) -> tuple[list[dict[str, Any]], str | None]:
        """
        分页列出未删除的文件

        Returns:
            (文件列表[{id, name, mimeType}], 下一页token)
        """
        ...

    @abstractmethod
    async def empty_trash(self) -> None:
        """清空回收站"""
        ...


# ============================================================================
# 异常定义
# ============================================================================

class ChartArchiverError(Exception):
    """基础异常"""
    pass


class ConfigurationError(ChartArchiverError):
    """配置错误（启动前致命）"""
    pass


class RetryExhausted(ChartArchiverError):
    """重试耗尽"""

    def __init__(self, label: str, last_error: str, attempts: int = 0):
        self.label = label
        self.last_error = last_error
        self.attempts = attempts
        super().__init__(f"{label}: 重试{attempts}次后仍失败: {last_error}")


class StoreSkipped(ChartArchiverError):
    """门店级错误（跳过该门店）"""
    pass


class RenderError(ChartArchiverError):
    """渲染错误"""
    pass


class ExportError(ChartArchiverError):
    """导出/上传错误"""
    pass
