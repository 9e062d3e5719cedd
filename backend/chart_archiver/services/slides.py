"""
Slides 演示文稿服务 - 临时渲染文档

职责：
1. 创建空白演示文稿（或从模板复制）
2. 插入链接图表、读取元素固有尺寸、绝对定位
3. 通过 Drive 导出PDF，并用 pypdf 截取目标页

单位：全部使用 EMU（1pt = 12700 EMU）。
元素尺寸返回 size 字段（未缩放）；绝对变换的缩放作用于该尺寸。
"""

from __future__ import annotations

import io
from typing import Any

from pypdf import PdfReader, PdfWriter

from ..interfaces import IPresentationService, RenderError
from ..models import FitTransform, ScratchDocument
from .base import GoogleApiClient

EMU_PER_PT = 12700
PRESENTATION_MIME = "application/vnd.google-apps.presentation"


def dimension_to_emu(dimension: dict[str, Any] | None) -> float:
    """Slides Dimension → EMU"""
    if not dimension:
        return 0.0
    magnitude = float(dimension.get("magnitude", 0.0))
    if dimension.get("unit") == "PT":
        return magnitude * EMU_PER_PT
    return magnitude


def extract_pdf_page(pdf_bytes: bytes, index: int) -> bytes:
    """从多页PDF中截取第 index 页（0起）为单页PDF"""
    reader = PdfReader(io.BytesIO(pdf_bytes))
    total = len(reader.pages)
    if index < 0 or index >= total:
        raise RenderError(f"PDF页码越界: {index} / {total}")
    if total == 1:
        return pdf_bytes

    writer = PdfWriter()
    writer.add_page(reader.pages[index])
    buf = io.BytesIO()
    writer.write(buf)
    return buf.getvalue()


def find_element_size(presentation: dict[str, Any], element_id: str) -> tuple[float, float]:
    """在 presentations.get 响应中查找元素的固有尺寸"""
    for slide in presentation.get("slides", []):
        for element in slide.get("pageElements", []):
            if element.get("objectId") != element_id:
                continue
            size = element.get("size") or {}
            width = dimension_to_emu(size.get("width"))
            height = dimension_to_emu(size.get("height"))
            if width <= 0 or height <= 0:
                raise RenderError(f"元素尺寸无效: {element_id} ({width}x{height})")
            return width, height
    raise RenderError(f"元素不存在: {element_id}")


class SlidesPresentationService(GoogleApiClient, IPresentationService):
    """基于 Slides v1 + Drive v3 的演示文稿服务"""

    def __init__(self, credentials: Any):
        super().__init__(credentials)
        self.slides = self._build("slides", "v1")
        self.drive = self._build("drive", "v3")

    async def _batch_update(self, document_id: str, requests: list[dict]) -> dict[str, Any]:
        request = self.slides.presentations().batchUpdate(
            presentationId=document_id, body={"requests": requests}
        )
        return await self._execute(request)

    async def create_document(
        self,
        title: str,
        parent_folder_id: str | None = None,
        template_id: str | None = None,
    ) -> str:
        body: dict[str, Any] = {"name": title}
        if parent_folder_id:
            body["parents"] = [parent_folder_id]

        if template_id:
            request = self.drive.files().copy(
                fileId=template_id, body=body, fields="id", supportsAllDrives=True
            )
            return (await self._execute(request))["id"]

        if parent_folder_id:
            body["mimeType"] = PRESENTATION_MIME
            request = self.drive.files().create(body=body, fields="id", supportsAllDrives=True)
            return (await self._execute(request))["id"]

        request = self.slides.presentations().create(body={"title": title})
        return (await self._execute(request))["presentationId"]

    async def get_document(self, document_id: str) -> ScratchDocument:
        request = self.slides.presentations().get(
            presentationId=document_id,
            fields="presentationId,pageSize,slides(objectId)",
        )
        data = await self._execute(request)
        page_size = data.get("pageSize") or {}
        return ScratchDocument(
            document_id=document_id,
            page_ids=[s["objectId"] for s in data.get("slides", [])],
            page_width=dimension_to_emu(page_size.get("width")),
            page_height=dimension_to_emu(page_size.get("height")),
        )

    async def create_page(self, document_id: str) -> str:
        reply = await self._batch_update(
            document_id,
            [{"createSlide": {"slideLayoutReference": {"predefinedLayout": "BLANK"}}}],
        )
        return reply["replies"][0]["createSlide"]["objectId"]

    async def list_page_elements(self, document_id: str, page_id: str) -> list[str]:
        request = self.slides.presentations().pages().get(
            presentationId=document_id, pageObjectId=page_id
        )
        data = await self._execute(request)
        return [e["objectId"] for e in data.get("pageElements", [])]

    async def insert_chart(
        self,
        document_id: str,
        page_id: str,
        source_document_id: str,
        chart_id: int,
    ) -> str:
        reply = await self._batch_update(
            document_id,
            [
                {
                    "createSheetsChart": {
                        "spreadsheetId": source_document_id,
                        "chartId": chart_id,
                        "linkingMode": "LINKED",
                        "elementProperties": {"pageObjectId": page_id},
                    }
                }
            ],
        )
        return reply["replies"][0]["createSheetsChart"]["objectId"]

    async def get_element_size(self, document_id: str, element_id: str) -> tuple[float, float]:
        request = self.slides.presentations().get(
            presentationId=document_id,
            fields="slides(pageElements(objectId,size))",
        )
        return find_element_size(await self._execute(request), element_id)

    async def set_element_transform(
        self, document_id: str, element_id: str, transform: FitTransform
    ) -> None:
        await self._batch_update(
            document_id,
            [
                {
                    "updatePageElementTransform": {
                        "objectId": element_id,
                        "applyMode": "ABSOLUTE",
                        "transform": {
                            "scaleX": transform.scale_x,
                            "scaleY": transform.scale_y,
                            "shearX": 0,
                            "shearY": 0,
                            "translateX": transform.translate_x,
                            "translateY": transform.translate_y,
                            "unit": "EMU",
                        },
                    }
                }
            ],
        )

    async def delete_element(self, document_id: str, element_id: str) -> None:
        await self._batch_update(document_id, [{"deleteObject": {"objectId": element_id}}])

    async def export_pdf(self, document_id: str, page_id: str) -> bytes:
        document = await self.get_document(document_id)
        if page_id not in document.page_ids:
            raise RenderError(f"页面不存在: {page_id}")
        index = document.page_ids.index(page_id)

        request = self.drive.files().export(fileId=document_id, mimeType="application/pdf")
        pdf_bytes = await self._execute(request)
        return extract_pdf_page(pdf_bytes, index)

    async def delete_document(self, document_id: str, *, trash: bool = False) -> None:
        if trash:
            request = self.drive.files().update(
                fileId=document_id, body={"trashed": True}, supportsAllDrives=True
            )
        else:
            request = self.drive.files().delete(fileId=document_id, supportsAllDrives=True)
        await self._execute(request)
