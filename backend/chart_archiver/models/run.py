"""
运行模型 - 门店状态机与导出结果

门店状态：
PENDING → FOLDER_RESOLVED → SESSION_OPEN → SESSION_CLOSED
任一阶段失败 → SKIPPED
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class StoreState(str, Enum):
    """门店状态枚举"""
    PENDING = "PENDING"
    FOLDER_RESOLVED = "FOLDER_RESOLVED"
    SESSION_OPEN = "SESSION_OPEN"
    SESSION_CLOSED = "SESSION_CLOSED"
    SKIPPED = "SKIPPED"


class ExportOutcome(str, Enum):
    """单个图表的导出结果"""
    SUCCESS = "success"
    FAILED = "failed"


class ExportResult(BaseModel):
    """图表导出结果（创建后不可变）"""
    store: str
    chart_title: str
    file_name: str
    outcome: ExportOutcome
    reason: str | None = None
    file_id: str | None = None

    model_config = {"frozen": True}

    @property
    def ok(self) -> bool:
        return self.outcome == ExportOutcome.SUCCESS


class StoreRun(BaseModel):
    """单个门店的一次运行"""
    store: str
    state: StoreState = StoreState.PENDING
    folder_id: str | None = None
    chart_total: int = 0
    skip_reason: str | None = None
    flags: list[str] = Field(default_factory=list, description="告警标记")

    started_at: datetime | None = None
    finished_at: datetime | None = None

    def mark_folder_resolved(self, folder_id: str) -> None:
        self.state = StoreState.FOLDER_RESOLVED
        self.folder_id = folder_id

    def mark_session_open(self) -> None:
        self.state = StoreState.SESSION_OPEN

    def mark_closed(self) -> None:
        self.state = StoreState.SESSION_CLOSED
        self.finished_at = datetime.now()

    def mark_skipped(self, reason: str) -> None:
        """标记为跳过（门店级失败或无图表）"""
        self.state = StoreState.SKIPPED
        self.skip_reason = reason
        self.finished_at = datetime.now()

    def add_flag(self, flag: str) -> None:
        """添加告警标记（不中断）"""
        if flag not in self.flags:
            self.flags.append(flag)


class RunReport(BaseModel):
    """一次导出运行的汇总"""
    date_key: str
    started_at: datetime = Field(default_factory=datetime.now)
    finished_at: datetime | None = None
    stores: list[StoreRun] = Field(default_factory=list)
    results: list[ExportResult] = Field(default_factory=list)

    @property
    def success_count(self) -> int:
        return sum(1 for r in self.results if r.ok)

    @property
    def failure_count(self) -> int:
        return sum(1 for r in self.results if not r.ok)

    def results_for(self, store: str) -> list[ExportResult]:
        return [r for r in self.results if r.store == store]

    def store_run(self, store: str) -> StoreRun | None:
        for run in self.stores:
            if run.store == store:
                return run
        return None
