"""
日志初始化

控制台输出始终开启；log_to_file 时额外写入 log_dir/chart_archiver.log
"""

from __future__ import annotations

import logging

from .runtime_config import LoggingConfig

LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


def configure_logging(config: LoggingConfig) -> None:
    root = logging.getLogger()
    root.setLevel(config.log_level.upper())

    # 重复调用时不叠加handler
    for handler in list(root.handlers):
        if getattr(handler, "_chart_archiver", False):
            root.removeHandler(handler)

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if config.log_to_file:
        config.log_dir.mkdir(parents=True, exist_ok=True)
        handlers.append(
            logging.FileHandler(config.log_dir / "chart_archiver.log", encoding="utf-8")
        )

    formatter = logging.Formatter(LOG_FORMAT)
    for handler in handlers:
        handler.setFormatter(formatter)
        handler._chart_archiver = True  # type: ignore[attr-defined]
        root.addHandler(handler)

    # googleapiclient 的 discovery 缓存告警过于冗长
    logging.getLogger("googleapiclient.discovery_cache").setLevel(logging.ERROR)
