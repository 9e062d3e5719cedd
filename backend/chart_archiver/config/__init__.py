"""
配置层 - 加载运行期配置与门店表

职责：
- 读取环境变量 / config/runtime.yaml（运行期参数）
- 读取 config/stores.yaml（门店 → 归档目录）
- 初始化日志
"""

from .logging_setup import configure_logging
from .runtime_config import (
    ConcurrencyConfig,
    LoggingConfig,
    RenderConfig,
    RetryConfig,
    RuntimeConfig,
    get_config,
    reload_config,
)
from .store_table import StoreTable

__all__ = [
    "RuntimeConfig",
    "ConcurrencyConfig",
    "RetryConfig",
    "RenderConfig",
    "LoggingConfig",
    "get_config",
    "reload_config",
    "StoreTable",
    "configure_logging",
]
