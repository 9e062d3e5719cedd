"""
临时渲染会话 - 每个门店一个临时演示文档，用于把图表渲染为单页PDF

职责：
1. 打开会话时创建临时文档并读取页面尺寸
2. 插入链接图表 → 读取固有尺寸 → 计算适配变换 → 绝对定位 → 导出PDF
3. 导出前删除页面上的多余元素（插入重试可能留下重复图表），复用页面策略下导出后清空整页
4. 会话结束时删除（或移入回收站）临时文档，任何退出路径都执行

两种生命周期策略（由配置 render.strategy 选择）：
- reuse_page: 整个门店共用一页，insert→export→clear 在会话锁内串行
- page_per_chart: 每个图表新建一页，渲染可在限流范围内并发，文档在批次结束时统一销毁

适配策略：等比缩放（scale_x == scale_y），元素在页面（减去边距）内居中。

测试要点：
- test_fit_transform_centered: 适配结果居中且不越界
- test_reuse_page_serialized: 复用页面时各图表流程不交错
- test_duplicate_insert_not_exported: 插入重试产生的重复元素不会进入PDF
- test_destroy_on_open_failure: 打开失败后仍销毁已创建的文档
- test_destroy_failure_logged: 销毁失败仅记录告警
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from typing import TypeVar

from ..interfaces import IPresentationService, RenderError
from ..models import ChartRef, FitTransform, RenderedElement, ScratchDocument
from .retry import Retrier

logger = logging.getLogger(__name__)

T = TypeVar("T")


def compute_fit_transform(
    elem_w: float,
    elem_h: float,
    page_w: float,
    page_h: float,
    margin: float = 0.0,
) -> FitTransform:
    """
    计算等比适配变换

    scale = min((page_w - 2m) / elem_w, (page_h - 2m) / elem_h)
    translate = (page - elem * scale) / 2

    Raises:
        ValueError: 尺寸非正，或边距过大导致可用区域为空
    """
    if elem_w <= 0 or elem_h <= 0 or page_w <= 0 or page_h <= 0:
        raise ValueError(f"尺寸必须为正: elem=({elem_w}, {elem_h}) page=({page_w}, {page_h})")
    if margin < 0:
        raise ValueError(f"边距不能为负: {margin}")

    box_w = page_w - 2 * margin
    box_h = page_h - 2 * margin
    if box_w <= 0 or box_h <= 0:
        raise ValueError(f"边距过大: margin={margin} page=({page_w}, {page_h})")

    scale = min(box_w / elem_w, box_h / elem_h)
    return FitTransform(
        scale_x=scale,
        scale_y=scale,
        translate_x=(page_w - elem_w * scale) / 2,
        translate_y=(page_h - elem_h * scale) / 2,
    )


class ScratchRenderSession(ABC):
    """临时渲染会话（抽象基类）"""

    strategy: str = ""

    def __init__(
        self,
        presentations: IPresentationService,
        source_document_id: str,
        *,
        retrier: Retrier | None = None,
        title: str = "chart-archiver-scratch",
        parent_folder_id: str | None = None,
        template_id: str | None = None,
        margin: float = 0.0,
        destroy_mode: str = "delete",
    ):
        self.presentations = presentations
        self.source_document_id = source_document_id
        self.retrier = retrier or Retrier()
        self.title = title
        self.parent_folder_id = parent_folder_id
        self.template_id = template_id
        self.margin = margin
        self.destroy_mode = destroy_mode

        self.document: ScratchDocument | None = None
        self._document_id: str | None = None
        self._destroyed = False
        self._destroy_failed = False

    @property
    def document_id(self) -> str:
        if self._document_id is None:
            raise RenderError("会话尚未打开")
        return self._document_id

    @property
    def destroyed(self) -> bool:
        return self._destroyed

    @property
    def destroy_failed(self) -> bool:
        return self._destroy_failed

    async def __aenter__(self) -> ScratchRenderSession:
        try:
            await self.open()
        except BaseException:
            await self.destroy()
            raise
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.destroy()

    async def _call(self, label: str, operation: Callable[[], Awaitable[T]]) -> T:
        return await self.retrier.run(label, operation)

    # === 生命周期 ===

    async def open(self) -> ScratchDocument:
        """创建临时文档并读取页面信息"""
        self._document_id = await self._call(
            "create-scratch-document",
            lambda: self.presentations.create_document(
                self.title, self.parent_folder_id, self.template_id
            ),
        )
        logger.info("临时文档已创建: %s (%s)", self._document_id, self.strategy)
        self.document = await self._call(
            "get-scratch-document", lambda: self.presentations.get_document(self.document_id)
        )
        await self._prepare()
        return self.document

    async def _prepare(self) -> None:
        """打开后的策略相关准备"""

    @abstractmethod
    async def render(self, chart: ChartRef) -> bytes:
        """渲染单个图表为单页PDF"""
        ...

    async def destroy(self) -> bool:
        """
        销毁临时文档（只执行一次）

        Returns:
            是否成功（失败只记录告警，不抛出）
        """
        if self._destroyed:
            return True
        self._destroyed = True
        if self._document_id is None:
            return True

        document_id = self._document_id
        trash = self.destroy_mode == "trash"
        try:
            await self._call(
                "destroy-scratch-document",
                lambda: self.presentations.delete_document(document_id, trash=trash),
            )
        except Exception as e:
            logger.warning("临时文档销毁失败 %s: %s", document_id, e)
            self._destroy_failed = True
            return False
        logger.info("临时文档已%s: %s", "移入回收站" if trash else "删除", document_id)
        return True

    # === 单步操作 ===

    async def insert_chart(self, page_id: str, chart_id: int) -> str:
        return await self._call(
            "insert-chart",
            lambda: self.presentations.insert_chart(
                self.document_id, page_id, self.source_document_id, chart_id
            ),
        )

    async def measure_element(self, element_id: str) -> RenderedElement:
        width, height = await self._call(
            "measure-element",
            lambda: self.presentations.get_element_size(self.document_id, element_id),
        )
        return RenderedElement(element_id=element_id, width=width, height=height)

    async def apply_transform(self, element_id: str, transform: FitTransform) -> None:
        await self._call(
            "apply-transform",
            lambda: self.presentations.set_element_transform(
                self.document_id, element_id, transform
            ),
        )

    async def export_page(self, page_id: str) -> bytes:
        async def _export() -> bytes:
            data = await self.presentations.export_pdf(self.document_id, page_id)
            if not data:
                raise RenderError(f"导出结果为空: page={page_id}")
            return data

        return await self._call("export-pdf", _export)

    async def cleanup_element(self, element_id: str) -> bool:
        """删除元素（失败只记录告警）"""
        try:
            await self._call(
                "delete-element",
                lambda: self.presentations.delete_element(self.document_id, element_id),
            )
        except Exception as e:
            logger.warning("元素删除失败 %s: %s", element_id, e)
            return False
        return True

    async def drop_stray_elements(self, page_id: str, element_id: str) -> None:
        """
        删除页面上除 element_id 以外的元素

        插入请求在服务端成功但响应丢失时，重试会留下一个未被记录的图表元素。

        Raises:
            RenderError: 残留元素无法删除（导出将包含多个图表）
        """
        elements = await self._call(
            "list-page-elements",
            lambda: self.presentations.list_page_elements(self.document_id, page_id),
        )
        strays = [e for e in elements if e != element_id]
        if strays:
            logger.warning("页面 %s 存在%d个多余元素，先行删除", page_id, len(strays))
        for stray in strays:
            if not await self.cleanup_element(stray):
                raise RenderError(f"页面存在无法清理的残留元素: {page_id}")

    async def _layout_and_export(self, page_id: str, element_id: str) -> bytes:
        """清理多余元素 → 测量 → 适配 → 变换 → 导出（导出发生在变换确认之后）"""
        if self.document is None:
            raise RenderError("会话尚未打开")
        await self.drop_stray_elements(page_id, element_id)
        element = await self.measure_element(element_id)
        transform = compute_fit_transform(
            element.width,
            element.height,
            self.document.page_width,
            self.document.page_height,
            self.margin,
        )
        await self.apply_transform(element_id, transform)
        return await self.export_page(page_id)


class ReusePageSession(ScratchRenderSession):
    """复用单页：insert→measure→transform→export→clear 在锁内串行"""

    strategy = "reuse_page"

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._lock = asyncio.Lock()
        self._dirty = False
        self.page_id: str | None = None

    async def _prepare(self) -> None:
        page_id = self.document.first_page_id if self.document else None
        if page_id is None:
            page_id = await self._call(
                "create-page", lambda: self.presentations.create_page(self.document_id)
            )
        self.page_id = page_id
        await self._clear_page()

    async def _clear_page(self) -> None:
        """清空页面上的全部元素（模板占位符、本次图表或删除失败的残留）"""
        page_id = self.page_id
        elements = await self._call(
            "list-page-elements",
            lambda: self.presentations.list_page_elements(self.document_id, page_id),
        )
        dirty = False
        for element_id in elements:
            if not await self.cleanup_element(element_id):
                dirty = True
        self._dirty = dirty

    async def _reset_page(self) -> None:
        """渲染结束后清空页面；失败时标记为脏页，由下一次渲染重试"""
        try:
            await self._clear_page()
        except Exception as e:
            logger.warning("页面清理失败 %s: %s", self.page_id, e)
            self._dirty = True

    async def render(self, chart: ChartRef) -> bytes:
        async with self._lock:
            if self.page_id is None:
                raise RenderError("会话尚未打开")
            if self._dirty:
                await self._clear_page()
                if self._dirty:
                    raise RenderError(f"页面存在无法清理的残留元素: {self.page_id}")

            # 插入失败时服务端也可能已创建元素，因此整页清理包含插入本身
            try:
                element_id = await self.insert_chart(self.page_id, chart.chart_id)
                return await self._layout_and_export(self.page_id, element_id)
            finally:
                await self._reset_page()


class PagePerChartSession(ScratchRenderSession):
    """每个图表独立一页，页面之间互不影响"""

    strategy = "page_per_chart"

    async def render(self, chart: ChartRef) -> bytes:
        if self.document is None:
            raise RenderError("会话尚未打开")
        page_id = await self._call(
            "create-page", lambda: self.presentations.create_page(self.document_id)
        )
        element_id = await self.insert_chart(page_id, chart.chart_id)
        return await self._layout_and_export(page_id, element_id)


SESSION_STRATEGIES: dict[str, type[ScratchRenderSession]] = {
    ReusePageSession.strategy: ReusePageSession,
    PagePerChartSession.strategy: PagePerChartSession,
}


def create_session(
    strategy: str,
    presentations: IPresentationService,
    source_document_id: str,
    **kwargs,
) -> ScratchRenderSession:
    """按策略名创建会话"""
    try:
        session_cls = SESSION_STRATEGIES[strategy]
    except KeyError:
        raise ValueError(f"未知渲染策略: {strategy}") from None
    return session_cls(presentations, source_document_id, **kwargs)
