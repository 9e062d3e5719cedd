"""
图表导出编排器 - 按门店顺序导出图表并归档

职责：
1. 读取表格中各工作表的图表列表（每次运行一次）
2. 按门店顺序：解析日期目录 → 打开渲染会话 → 限流并发导出图表 → 销毁会话
3. 失败隔离：单图失败不影响同门店其他图表；门店级失败只跳过该门店
4. 汇总成功/失败数

门店状态：PENDING → FOLDER_RESOLVED → SESSION_OPEN → SESSION_CLOSED（或 SKIPPED）

测试要点：
- test_chart_failure_isolated: 第2个图表失败时第1、3个仍成功，会话只销毁一次
- test_scenario_filenames: 无标题图表按序号命名
- test_folder_failure_skips_store: 日期目录失败只跳过该门店
- test_missing_sheet_skipped: 工作表不存在时跳过
"""

from __future__ import annotations

import logging
from datetime import datetime

from ..config import RuntimeConfig, StoreTable
from ..interfaces import (
    ExportError,
    IDocumentGraphService,
    IObjectStoreService,
    IPresentationService,
    RetryExhausted,
    StoreSkipped,
)
from ..models import (
    ChartRef,
    ExportOutcome,
    ExportResult,
    RunReport,
    SheetCharts,
    Store,
    StoreRun,
)
from .folder_resolver import DatedFolderResolver
from .limiter import ConcurrencyLimiter
from .naming import build_filename, chart_title, today_key
from .render_session import ScratchRenderSession, create_session
from .retry import Retrier, RetryPolicy

logger = logging.getLogger(__name__)

PDF_MIME_TYPE = "application/pdf"


class ChartExportOrchestrator:
    """图表导出编排器"""

    def __init__(
        self,
        config: RuntimeConfig,
        stores: StoreTable,
        graph: IDocumentGraphService,
        presentations: IPresentationService,
        object_store: IObjectStoreService,
        *,
        retrier: Retrier | None = None,
    ):
        self.config = config
        self.stores = stores
        self.graph = graph
        self.presentations = presentations
        self.object_store = object_store
        self.retrier = retrier or Retrier(RetryPolicy.from_config(config.retries))
        self.folder_resolver = DatedFolderResolver(object_store, self.retrier)

    async def run(self, date_key: str | None = None) -> RunReport:
        """执行一次完整导出"""
        date_key = date_key or today_key(self.config.timezone)
        report = RunReport(date_key=date_key)
        logger.info("开始导出: %d个门店, 日期=%s", len(self.stores), date_key)

        sheets_error = ""
        try:
            sheets = await self.retrier.run(
                "get-charts",
                lambda: self.graph.get_charts_by_document(self.config.spreadsheet_id),
            )
        except Exception as e:
            logger.error("读取图表列表失败，全部门店跳过: %s", e)
            sheets = None
            sheets_error = str(e)

        for store in self.stores.stores:
            run = StoreRun(store=store.name, started_at=datetime.now())
            report.stores.append(run)
            if sheets is None:
                run.mark_skipped(f"读取图表列表失败: {sheets_error}")
                continue
            try:
                results = await self._export_store(store, sheets.get(store.sheet_name), date_key, run)
            except StoreSkipped as e:
                run.mark_skipped(str(e))
                logger.warning("[%s] 跳过门店: %s", store.name, e)
                continue
            report.results.extend(results)

        report.finished_at = datetime.now()
        logger.info(
            "导出完成: 成功%d, 失败%d, 跳过门店%d",
            report.success_count,
            report.failure_count,
            sum(1 for r in report.stores if r.skip_reason),
        )
        return report

    async def _export_store(
        self,
        store: Store,
        sheet: SheetCharts | None,
        date_key: str,
        run: StoreRun,
    ) -> list[ExportResult]:
        """导出单个门店（门店级失败抛出 StoreSkipped）"""
        if sheet is None or not sheet.charts:
            # 无可导出内容，不视为错误
            reason = "工作表不存在" if sheet is None else "工作表无图表"
            run.mark_skipped(f"{reason}: {store.sheet_name}")
            logger.info("[%s] 跳过门店: %s", store.name, run.skip_reason)
            return []
        run.chart_total = len(sheet.charts)
        logger.info("[%s] 开始门店: %d个图表", store.name, run.chart_total)

        try:
            folder_id = await self.folder_resolver.resolve(store.folder_id, date_key)
        except Exception as e:
            raise StoreSkipped(f"日期目录解析失败: {e}") from e
        run.mark_folder_resolved(folder_id)

        session = self._new_session(store, date_key)
        try:
            async with session:
                run.mark_session_open()
                limiter = ConcurrencyLimiter(self.config.concurrency.max_in_flight)
                outcomes = await limiter.gather(
                    self._chart_task(session, store, chart, index, folder_id, date_key)
                    for index, chart in enumerate(sheet.charts, start=1)
                )
        except Exception as e:
            raise StoreSkipped(f"渲染会话打开失败: {e}") from e

        if session.destroy_failed:
            run.add_flag("临时文档销毁失败")
        run.mark_closed()

        results = []
        for index, (chart, outcome) in enumerate(zip(sheet.charts, outcomes), start=1):
            if isinstance(outcome, ExportResult):
                results.append(outcome)
            else:
                # _export_chart 自身已捕获异常，这里只兜底缺陷
                logger.error("[%s] 图表任务异常: %r", store.name, outcome)
                title = self._title(chart, index)
                results.append(
                    ExportResult(
                        store=store.name,
                        chart_title=title,
                        file_name=build_filename(store.name, title, date_key),
                        outcome=ExportOutcome.FAILED,
                        reason=repr(outcome),
                    )
                )
        ok = sum(1 for r in results if r.ok)
        logger.info("[%s] 门店完成: 成功%d/%d", store.name, ok, len(results))
        return results

    def _new_session(self, store: Store, date_key: str) -> ScratchRenderSession:
        render = self.config.render
        return create_session(
            render.strategy,
            self.presentations,
            self.config.spreadsheet_id,
            retrier=self.retrier,
            title=f"{render.scratch_title}-{store.name}-{date_key}",
            parent_folder_id=render.scratch_folder_id,
            template_id=render.template_id,
            margin=render.margin,
            destroy_mode=render.destroy_mode,
        )

    def _title(self, chart: ChartRef, index: int) -> str:
        render = self.config.render
        return chart_title(chart, index, render.untitled_prefix, render.title_max_len)

    def _chart_task(self, session, store, chart, index, folder_id, date_key):
        async def _task() -> ExportResult:
            return await self._export_chart(session, store, chart, index, folder_id, date_key)

        return _task

    async def _export_chart(
        self,
        session: ScratchRenderSession,
        store: Store,
        chart: ChartRef,
        index: int,
        folder_id: str,
        date_key: str,
    ) -> ExportResult:
        """导出单个图表：渲染 → 上传；失败记录为 FAILED，不向上抛出"""
        title = self._title(chart, index)
        file_name = build_filename(store.name, title, date_key)
        try:
            data = await session.render(chart)
            file_id = await self._upload(folder_id, file_name, data)
        except Exception as e:
            logger.error("[%s] 图表导出失败 %s: %s", store.name, file_name, e)
            return ExportResult(
                store=store.name,
                chart_title=title,
                file_name=file_name,
                outcome=ExportOutcome.FAILED,
                reason=str(e),
            )

        logger.info("[%s] 已归档 %s", store.name, file_name)
        return ExportResult(
            store=store.name,
            chart_title=title,
            file_name=file_name,
            outcome=ExportOutcome.SUCCESS,
            file_id=file_id,
        )

    async def _upload(self, folder_id: str, file_name: str, data: bytes) -> str:
        try:
            return await self.retrier.run(
                "upload-pdf",
                lambda: self.object_store.upload_file(folder_id, file_name, PDF_MIME_TYPE, data),
            )
        except RetryExhausted as e:
            raise ExportError(f"上传失败 {file_name}: {e}") from e
