"""
命令行入口

    chart-archiver [export|cleanup|purge-trash] [--config PATH] [--stores PATH]
                   [--date YYYY-MM-DD] [--strategy reuse_page|page_per_chart]
                   [--concurrency N] [--only STORE ...] [--trash]

退出码：
- 0: 正常结束（即使部分图表失败）
- 1: 未捕获的缺陷
- 2: 配置错误（启动前）
- 130: 用户中断
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from datetime import datetime

from dotenv import find_dotenv, load_dotenv

from .config import RuntimeConfig, StoreTable, configure_logging
from .interfaces import ConfigurationError
from .pipeline import ChartExportOrchestrator, cleanup_all_files, purge_trash, write_report
from .pipeline.naming import validate_date_key
from .pipeline.retry import Retrier, RetryPolicy
from .services import build_services

logger = logging.getLogger("chart_archiver")

EXIT_OK = 0
EXIT_DEFECT = 1
EXIT_CONFIG = 2
EXIT_INTERRUPTED = 130


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="chart-archiver",
        description="导出表格内嵌图表为PDF并按日期归档到Drive",
    )
    parser.add_argument(
        "command",
        nargs="?",
        default="export",
        choices=["export", "cleanup", "purge-trash"],
        help="export: 导出图表（默认）；cleanup: 删除服务账号下全部文件；purge-trash: 清空回收站",
    )
    parser.add_argument("--config", default="config/runtime.yaml", help="运行期配置YAML（可选）")
    parser.add_argument("--stores", default=None, help="门店表YAML（默认取配置 stores_path）")
    parser.add_argument("--date", default=None, help="日期键 YYYY-MM-DD（默认今天）")
    parser.add_argument(
        "--strategy",
        default=None,
        choices=["reuse_page", "page_per_chart"],
        help="渲染策略（覆盖配置）",
    )
    parser.add_argument("--concurrency", type=int, default=None, help="同时在途的图表任务数")
    parser.add_argument("--only", nargs="+", default=None, metavar="STORE", help="只处理指定门店")
    parser.add_argument(
        "--trash", action="store_true", help="cleanup 时移入回收站而非永久删除"
    )
    return parser


def load_runtime(args: argparse.Namespace) -> RuntimeConfig:
    """加载配置并应用命令行覆盖"""
    config = RuntimeConfig.from_yaml(args.config)
    if args.strategy:
        config.render.strategy = args.strategy
    if args.concurrency is not None:
        if args.concurrency < 1:
            raise ConfigurationError("--concurrency 必须 >= 1")
        config.concurrency.max_in_flight = args.concurrency
    if args.date:
        try:
            validate_date_key(args.date)
        except ValueError as e:
            raise ConfigurationError(f"--date 格式错误: {args.date}") from e
    return config


async def run_export(config: RuntimeConfig, stores: StoreTable, date_key: str | None) -> int:
    services = build_services(config)
    orchestrator = ChartExportOrchestrator(
        config,
        stores,
        services.graph,
        services.presentations,
        services.object_store,
    )
    report = await orchestrator.run(date_key)

    stamp = datetime.now().strftime("%H%M%S")
    path = write_report(report, config.get_report_path(report.date_key, stamp))
    logger.info("运行报告: %s", path)
    print(f"已导出 {report.success_count} 个图表（失败 {report.failure_count}）")
    return EXIT_OK


async def run_maintenance(config: RuntimeConfig, command: str, trash: bool = False) -> int:
    services = build_services(config)
    retrier = Retrier(RetryPolicy.from_config(config.retries))
    if command == "cleanup":
        deleted, failed = await cleanup_all_files(services.object_store, retrier, trash=trash)
        print(f"清理完成：删除 {deleted} 个文件，失败 {failed} 个")
    else:
        await purge_trash(services.object_store, retrier)
        print("回收站已清空")
    return EXIT_OK


def main(argv: list[str] | None = None) -> int:
    # 读取 .env（不覆盖已有环境变量）
    load_dotenv(find_dotenv(usecwd=True), override=False)

    args = build_parser().parse_args(argv)

    try:
        config = load_runtime(args)
        configure_logging(config.logging)
        if args.command == "export":
            config.validate_required()
            stores = StoreTable.load(args.stores or config.stores_path)
            if args.only:
                stores = stores.only(args.only)
        elif not config.credentials_json.strip() and not config.credentials_file:
            raise ConfigurationError("缺少服务账号凭据")
    except ConfigurationError as e:
        print(f"配置错误: {e}", file=sys.stderr)
        return EXIT_CONFIG

    try:
        if args.command == "export":
            return asyncio.run(run_export(config, stores, args.date))
        return asyncio.run(run_maintenance(config, args.command, args.trash))
    except KeyboardInterrupt:
        print("已被用户中断", file=sys.stderr)
        return EXIT_INTERRUPTED
    except ConfigurationError as e:
        print(f"配置错误: {e}", file=sys.stderr)
        return EXIT_CONFIG
    except Exception:
        logger.exception("运行失败")
        return EXIT_DEFECT


if __name__ == "__main__":
    sys.exit(main())
