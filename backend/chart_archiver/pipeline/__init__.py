"""
流水线模块 - 图表导出编排与执行

子模块：
- retry: 重试策略（指数退避+抖动）
- limiter: 并发限制器
- folder_resolver: 日期目录解析
- render_session: 临时渲染会话（两种生命周期策略）
- orchestrator: 图表导出编排器
- report: 运行报告
- maintenance: 账号清理命令
"""

from .folder_resolver import DatedFolderResolver
from .limiter import ConcurrencyLimiter
from .maintenance import cleanup_all_files, purge_trash
from .naming import build_filename, chart_title, sanitize_title, today_key
from .orchestrator import ChartExportOrchestrator
from .render_session import (
    PagePerChartSession,
    ReusePageSession,
    ScratchRenderSession,
    compute_fit_transform,
    create_session,
)
from .report import build_manifest, write_report
from .retry import Retrier, RetryPolicy, with_retry

__all__ = [
    "RetryPolicy",
    "Retrier",
    "with_retry",
    "ConcurrencyLimiter",
    "DatedFolderResolver",
    "ScratchRenderSession",
    "ReusePageSession",
    "PagePerChartSession",
    "compute_fit_transform",
    "create_session",
    "ChartExportOrchestrator",
    "sanitize_title",
    "chart_title",
    "build_filename",
    "today_key",
    "build_manifest",
    "write_report",
    "cleanup_all_files",
    "purge_trash",
]
