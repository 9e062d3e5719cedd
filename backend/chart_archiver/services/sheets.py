"""
Sheets 文档图服务 - 读取工作表与内嵌图表
"""

from __future__ import annotations

from typing import Any

from ..interfaces import IDocumentGraphService
from ..models import ChartRef, SheetCharts
from .base import GoogleApiClient

SHEET_FIELDS = "sheets(properties(sheetId,title),charts(chartId,spec(title)))"


def parse_sheet_charts(data: dict[str, Any]) -> dict[str, SheetCharts]:
    """spreadsheets.get 响应 → {工作表标题: SheetCharts}"""
    result: dict[str, SheetCharts] = {}
    for sheet in data.get("sheets", []):
        props = sheet.get("properties", {})
        title = props.get("title")
        if not title:
            continue
        sheet_id = props.get("sheetId", 0)
        charts = tuple(
            ChartRef(
                chart_id=chart["chartId"],
                title=(chart.get("spec") or {}).get("title", ""),
                sheet_id=sheet_id,
            )
            for chart in sheet.get("charts", [])
            if "chartId" in chart
        )
        result[title] = SheetCharts(sheet_id=sheet_id, title=title, charts=charts)
    return result


class SheetsDocumentGraph(GoogleApiClient, IDocumentGraphService):
    """基于 Sheets v4 的文档图服务"""

    def __init__(self, credentials: Any):
        super().__init__(credentials)
        self.sheets = self._build("sheets", "v4")

    async def get_charts_by_document(self, document_id: str) -> dict[str, SheetCharts]:
        request = self.sheets.spreadsheets().get(spreadsheetId=document_id, fields=SHEET_FIELDS)
        return parse_sheet_charts(await self._execute(request))
