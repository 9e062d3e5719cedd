"""
门店与图表引用模型

门店表为静态配置，运行期间不可变。
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class Store(BaseModel):
    """门店（工作表 → 归档目录）"""
    name: str = Field(..., min_length=1)
    sheet_name: str = Field(..., min_length=1, description="来源工作表标题")
    folder_id: str = Field(..., min_length=1, description="归档根目录ID")

    model_config = {"frozen": True}


class ChartRef(BaseModel):
    """图表引用"""
    chart_id: int
    title: str = ""
    sheet_id: int | None = None

    model_config = {"frozen": True}


class SheetCharts(BaseModel):
    """单个工作表的图表列表"""
    sheet_id: int
    title: str
    charts: tuple[ChartRef, ...] = ()

    model_config = {"frozen": True}


class DatedFolder(BaseModel):
    """日期目录"""
    parent_folder_id: str
    date_key: str
    folder_id: str

    model_config = {"frozen": True}
