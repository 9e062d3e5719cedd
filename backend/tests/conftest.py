"""
pytest 配置与公共 fixtures

外部服务全部用内存 fake 替代：
- FakeDocumentGraph: 固定的工作表/图表
- FakePresentationService: 记录页面元素、变换与导出
- FakeObjectStore: 记录目录与上传

使用方式：
    async def test_something(orchestrator_factory, fake_store):
        report = await orchestrator_factory().run("2024-01-01")
"""

from __future__ import annotations

import asyncio
import itertools
from typing import Any

import pytest

from chart_archiver.config import RetryConfig, RuntimeConfig, StoreTable
from chart_archiver.interfaces import (
    IDocumentGraphService,
    IObjectStoreService,
    IPresentationService,
    RenderError,
)
from chart_archiver.models import ChartRef, FitTransform, ScratchDocument, SheetCharts, Store
from chart_archiver.pipeline import ChartExportOrchestrator, Retrier, RetryPolicy


# ============================================================================
# Fake 服务
# ============================================================================

class FakeDocumentGraph(IDocumentGraphService):
    """固定返回的文档图"""

    def __init__(self, sheets: dict[str, list[tuple[int, str]]] | None = None):
        self.sheets = sheets or {}
        self.calls = 0

    async def get_charts_by_document(self, document_id: str) -> dict[str, SheetCharts]:
        self.calls += 1
        await asyncio.sleep(0)
        result = {}
        for sheet_id, (title, charts) in enumerate(self.sheets.items(), start=1):
            result[title] = SheetCharts(
                sheet_id=sheet_id,
                title=title,
                charts=tuple(
                    ChartRef(chart_id=cid, title=ctitle, sheet_id=sheet_id)
                    for cid, ctitle in charts
                ),
            )
        return result


class FakePresentationService(IPresentationService):
    """内存演示文稿：记录页面元素、变换、导出与销毁"""

    PAGE_WIDTH = 9144000.0
    PAGE_HEIGHT = 5143500.0

    def __init__(self):
        self._ids = itertools.count(1)
        self.pages: dict[str, dict[str, list[str]]] = {}
        self.transforms: dict[str, FitTransform] = {}
        self.element_chart: dict[str, int] = {}
        self.chart_sizes: dict[int, tuple[float, float]] = {}
        self.exports: list[dict[str, Any]] = []
        self.delete_calls: dict[str, int] = {}
        self.created: list[str] = []
        self.max_elements_on_page = 0

        self.fail_insert_charts: set[int] = set()
        # 服务端已插入但响应丢失（仅第一次）
        self.lost_insert_replies: set[int] = set()
        self.fail_get_document = False
        self.fail_delete_document = False
        self.fail_delete_element = False
        self.template_elements: list[str] = []

    def _next(self, prefix: str) -> str:
        return f"{prefix}-{next(self._ids)}"

    async def create_document(self, title, parent_folder_id=None, template_id=None) -> str:
        await asyncio.sleep(0)
        doc_id = self._next("doc")
        self.pages[doc_id] = {"p0": list(self.template_elements)}
        self.created.append(doc_id)
        return doc_id

    async def get_document(self, document_id: str) -> ScratchDocument:
        await asyncio.sleep(0)
        if self.fail_get_document:
            raise RuntimeError("presentation unavailable")
        return ScratchDocument(
            document_id=document_id,
            page_ids=list(self.pages[document_id]),
            page_width=self.PAGE_WIDTH,
            page_height=self.PAGE_HEIGHT,
        )

    async def create_page(self, document_id: str) -> str:
        await asyncio.sleep(0)
        page_id = self._next("page")
        self.pages[document_id][page_id] = []
        return page_id

    async def list_page_elements(self, document_id: str, page_id: str) -> list[str]:
        await asyncio.sleep(0)
        return list(self.pages[document_id][page_id])

    async def insert_chart(self, document_id, page_id, source_document_id, chart_id) -> str:
        await asyncio.sleep(0)
        if chart_id in self.fail_insert_charts:
            raise RuntimeError(f"chart {chart_id} cannot be linked")
        element_id = self._next("el")
        page = self.pages[document_id][page_id]
        page.append(element_id)
        self.element_chart[element_id] = chart_id
        self.max_elements_on_page = max(self.max_elements_on_page, len(page))
        if chart_id in self.lost_insert_replies:
            self.lost_insert_replies.discard(chart_id)
            raise ConnectionError("connection reset after insert")
        return element_id

    def _find_page(self, document_id: str, element_id: str) -> list[str]:
        for elements in self.pages[document_id].values():
            if element_id in elements:
                return elements
        raise RenderError(f"元素不存在: {element_id}")

    async def get_element_size(self, document_id, element_id) -> tuple[float, float]:
        await asyncio.sleep(0)
        self._find_page(document_id, element_id)
        chart_id = self.element_chart.get(element_id)
        return self.chart_sizes.get(chart_id, (4000000.0, 3000000.0))

    async def set_element_transform(self, document_id, element_id, transform) -> None:
        await asyncio.sleep(0)
        self._find_page(document_id, element_id)
        self.transforms[element_id] = transform

    async def delete_element(self, document_id, element_id) -> None:
        await asyncio.sleep(0)
        if self.fail_delete_element:
            raise RuntimeError("delete rejected")
        self._find_page(document_id, element_id).remove(element_id)

    async def export_pdf(self, document_id, page_id) -> bytes:
        await asyncio.sleep(0)
        elements = list(self.pages[document_id][page_id])
        self.exports.append(
            {
                "document_id": document_id,
                "page_id": page_id,
                "elements": elements,
                "charts": [self.element_chart.get(e) for e in elements],
                "all_transformed": all(e in self.transforms for e in elements),
            }
        )
        return f"%PDF-1.4 {page_id} {elements}".encode()

    async def delete_document(self, document_id, *, trash=False) -> None:
        self.delete_calls[document_id] = self.delete_calls.get(document_id, 0) + 1
        await asyncio.sleep(0)
        if self.fail_delete_document:
            raise RuntimeError("drive quota")


class FakeObjectStore(IObjectStoreService):
    """内存对象存储"""

    def __init__(self):
        self._ids = itertools.count(1)
        self.folders: dict[tuple[str, str], str] = {}
        self.invalid_parents: set[str] = set()
        self.find_calls = 0
        self.create_calls = 0
        self.uploads: list[dict[str, Any]] = []
        self.fail_upload_names: set[str] = set()
        self.upload_delay = 0.0
        self.uploads_in_flight = 0
        self.peak_uploads_in_flight = 0
        self.files: list[dict[str, Any]] = []
        self.page_size = 2
        self.deleted: list[str] = []
        self.trashed: list[str] = []
        self.fail_delete_ids: set[str] = set()
        self.trash_emptied = 0

    async def find_folder(self, parent_id: str, name: str) -> str | None:
        self.find_calls += 1
        await asyncio.sleep(0)
        if parent_id in self.invalid_parents:
            raise RuntimeError(f"File not found: {parent_id}")
        return self.folders.get((parent_id, name))

    async def create_folder(self, parent_id: str, name: str) -> str:
        self.create_calls += 1
        await asyncio.sleep(0)
        folder_id = f"folder-{next(self._ids)}"
        self.folders[(parent_id, name)] = folder_id
        return folder_id

    async def upload_file(self, parent_id, name, mime_type, data) -> str:
        self.uploads_in_flight += 1
        self.peak_uploads_in_flight = max(self.peak_uploads_in_flight, self.uploads_in_flight)
        try:
            await asyncio.sleep(self.upload_delay)
        finally:
            self.uploads_in_flight -= 1
        if name in self.fail_upload_names:
            raise RuntimeError("upload failed")
        file_id = f"file-{next(self._ids)}"
        self.uploads.append(
            {"parent_id": parent_id, "name": name, "mime_type": mime_type, "data": data, "id": file_id}
        )
        return file_id

    async def delete_file(self, file_id: str) -> None:
        await asyncio.sleep(0)
        if file_id in self.fail_delete_ids:
            raise RuntimeError("insufficient permissions")
        self.deleted.append(file_id)

    async def trash_file(self, file_id: str) -> None:
        await asyncio.sleep(0)
        if file_id in self.fail_delete_ids:
            raise RuntimeError("insufficient permissions")
        self.trashed.append(file_id)

    async def list_files(self, page_token=None):
        await asyncio.sleep(0)
        start = int(page_token or 0)
        page = self.files[start : start + self.page_size]
        next_start = start + self.page_size
        return page, (str(next_start) if next_start < len(self.files) else None)

    async def empty_trash(self) -> None:
        await asyncio.sleep(0)
        self.trash_emptied += 1


class RecordingSleep:
    """记录退避时长，不真正等待"""

    def __init__(self):
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


# ============================================================================
# 配置 Fixtures
# ============================================================================

@pytest.fixture
def runtime_config() -> RuntimeConfig:
    """运行期配置（快速重试）"""
    return RuntimeConfig(
        spreadsheet_id="sheet-doc-1",
        credentials_json='{"client_email": "a@b", "private_key": "k"}',
        retries=RetryConfig(max_attempts=2, initial_wait_ms=0, max_wait_ms=0, jitter_ms=0),
    )


@pytest.fixture
def fast_retrier() -> Retrier:
    """不等待的重试器"""
    return Retrier(
        RetryPolicy(max_attempts=2, initial_wait_ms=0, max_wait_ms=0, jitter_ms=0),
        sleep=RecordingSleep(),
    )


@pytest.fixture
def store_table() -> StoreTable:
    return StoreTable(
        [
            Store(name="ARENAL", sheet_name="ARENAL", folder_id="root-arenal"),
            Store(name="CENTRO", sheet_name="CENTRO", folder_id="root-centro"),
        ]
    )


# ============================================================================
# Fake 服务 Fixtures
# ============================================================================

@pytest.fixture
def fake_graph() -> FakeDocumentGraph:
    return FakeDocumentGraph(
        {
            "ARENAL": [(101, "Sales"), (102, "")],
            "CENTRO": [(201, "Clicks por día — CENTRO")],
        }
    )


@pytest.fixture
def fake_presentations() -> FakePresentationService:
    return FakePresentationService()


@pytest.fixture
def fake_store() -> FakeObjectStore:
    return FakeObjectStore()


@pytest.fixture
def orchestrator_factory(
    runtime_config, store_table, fake_graph, fake_presentations, fake_store, fast_retrier
):
    """构造编排器（可覆盖门店表与策略）"""

    def _make(stores: StoreTable | None = None, strategy: str | None = None):
        if strategy:
            runtime_config.render.strategy = strategy
        return ChartExportOrchestrator(
            runtime_config,
            stores or store_table,
            fake_graph,
            fake_presentations,
            fake_store,
            retrier=fast_retrier,
        )

    return _make


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()
