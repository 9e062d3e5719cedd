"""
数据模型层 - 定义系统核心数据结构

所有模块通过这些模型交互，实现解耦：
- Store/ChartRef/SheetCharts: 门店与图表引用
- ScratchDocument/RenderedElement/FitTransform: 临时渲染文档
- StoreRun/ExportResult/RunReport: 运行状态与结果
"""

from .render import FitTransform, RenderedElement, ScratchDocument
from .run import ExportOutcome, ExportResult, RunReport, StoreRun, StoreState
from .store import ChartRef, DatedFolder, SheetCharts, Store

__all__ = [
    "Store",
    "ChartRef",
    "SheetCharts",
    "DatedFolder",
    "ScratchDocument",
    "RenderedElement",
    "FitTransform",
    "StoreState",
    "StoreRun",
    "ExportOutcome",
    "ExportResult",
    "RunReport",
]
