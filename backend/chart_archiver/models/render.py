"""
临时渲染文档模型
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class ScratchDocument(BaseModel):
    """临时演示文档"""
    document_id: str
    page_ids: list[str] = Field(default_factory=list)
    page_width: float = Field(..., gt=0)
    page_height: float = Field(..., gt=0)

    @property
    def first_page_id(self) -> str | None:
        return self.page_ids[0] if self.page_ids else None


class RenderedElement(BaseModel):
    """已插入的图表元素（瞬态）"""
    element_id: str
    width: float
    height: float


class FitTransform(BaseModel):
    """适配变换（缩放+平移，绝对坐标）"""
    scale_x: float
    scale_y: float
    translate_x: float
    translate_y: float

    model_config = {"frozen": True}
