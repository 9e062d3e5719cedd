"""
运行期配置 - 环境变量 + 可选 YAML

职责：
- 加载目标表格ID、凭据、并发/重试/渲染参数
- 提供环境变量覆盖机制（前缀 CHART_ARCHIVER_，嵌套分隔符 __）
- 启动前校验必填项，缺失即致命
"""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path
from typing import Any, Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml
from pydantic import AliasChoices, BaseModel, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings

from ..interfaces import ConfigurationError


class ConcurrencyConfig(BaseModel):
    """并发配置"""

    max_in_flight: int = Field(2, ge=1)


class RetryConfig(BaseModel):
    """重试配置"""

    max_attempts: int = Field(5, ge=1)
    initial_wait_ms: int = Field(700, ge=0)
    max_wait_ms: int = Field(8000, ge=0)
    jitter_ms: int = Field(300, ge=0)


class RenderConfig(BaseModel):
    """渲染配置"""

    strategy: Literal["reuse_page", "page_per_chart"] = "page_per_chart"
    margin: float = Field(0.0, ge=0)
    untitled_prefix: str = "Grafico"
    title_max_len: int = Field(80, ge=1)
    scratch_title: str = "chart-archiver-scratch"
    scratch_folder_id: str | None = None
    template_id: str | None = None
    destroy_mode: Literal["delete", "trash"] = "delete"


class LoggingConfig(BaseModel):
    """日志配置"""

    log_level: str = "INFO"
    log_to_file: bool = False
    log_dir: Path = Path("logs")


class RuntimeConfig(BaseSettings):
    """运行期配置（支持环境变量覆盖）"""

    # 目标与凭据
    spreadsheet_id: str = Field(
        "",
        validation_alias=AliasChoices("CHART_ARCHIVER_SPREADSHEET_ID", "SPREADSHEET_ID"),
    )
    credentials_json: str = Field(
        "",
        validation_alias=AliasChoices("CHART_ARCHIVER_CREDENTIALS_JSON", "SHEETS_PRIVATE_KEY"),
    )
    credentials_file: Path | None = None

    # 基础路径
    stores_path: Path = Path("config/stores.yaml")
    report_dir: Path = Path("reports")
    timezone: str = "UTC"

    # 各子配置
    concurrency: ConcurrencyConfig = Field(default_factory=ConcurrencyConfig)
    retries: RetryConfig = Field(default_factory=RetryConfig)
    render: RenderConfig = Field(default_factory=RenderConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {
        "env_prefix": "CHART_ARCHIVER_",
        "env_nested_delimiter": "__",
        "populate_by_name": True,
        "arbitrary_types_allowed": True,
    }

    @field_validator("timezone")
    @classmethod
    def _check_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"未知时区: {value}") from e
        return value

    @classmethod
    def from_yaml(cls, yaml_path: str | Path) -> RuntimeConfig:
        """
        从YAML文件加载配置（文件不存在时仅使用环境变量）

        Raises:
            ConfigurationError: YAML语法错误或字段校验失败
        """
        path = Path(yaml_path)
        try:
            if not path.exists():
                return cls()

            with open(path, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
            if not isinstance(data, dict):
                raise ConfigurationError(f"配置文件格式错误: {path}")

            runtime_opts = data.get("runtime_options") or {}
            if not isinstance(runtime_opts, dict):
                raise ConfigurationError(f"runtime_options 必须是映射: {path}")

            overrides: dict[str, Any] = {}
            for key, model in (
                ("concurrency", ConcurrencyConfig),
                ("retries", RetryConfig),
                ("render", RenderConfig),
                ("logging", LoggingConfig),
            ):
                if key in runtime_opts:
                    overrides[key] = model(**cls._extract(runtime_opts, key))

            for key in ("stores_path", "report_dir", "timezone"):
                if key in runtime_opts:
                    overrides[key] = runtime_opts[key]

            config = cls(**overrides)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"配置文件解析失败 {path}: {e}") from e
        except ValidationError as e:
            raise ConfigurationError(f"运行期配置无效: {e}") from e

        config._resolve_paths(base_dir=path.parent, keys=overrides.keys())
        return config

    @staticmethod
    def _extract(data: dict[str, Any], key: str) -> dict[str, Any]:
        """提取并展平配置"""
        section = data.get(key) or {}
        if not isinstance(section, dict):
            raise ConfigurationError(f"配置段 {key} 必须是映射")
        result = {}
        for k, v in section.items():
            if isinstance(v, dict) and "default" in v:
                result[k] = v["default"]
            elif not isinstance(v, dict):
                result[k] = v
        return result

    def _resolve_paths(self, base_dir: Path, keys: Iterable[str]) -> None:
        """解析YAML中给出的相对路径为绝对路径（基于配置文件所在目录）"""
        keys = set(keys)
        for key in ("stores_path", "report_dir"):
            value: Path = getattr(self, key)
            if key in keys and not value.is_absolute():
                setattr(self, key, (base_dir / value).resolve())
        if "logging" in keys and not self.logging.log_dir.is_absolute():
            self.logging.log_dir = (base_dir / self.logging.log_dir).resolve()

    def missing_required(self) -> list[str]:
        """列出缺失的必填项"""
        missing = []
        if not self.spreadsheet_id.strip():
            missing.append("CHART_ARCHIVER_SPREADSHEET_ID")
        if not self.credentials_json.strip() and not self.credentials_file:
            missing.append("CHART_ARCHIVER_CREDENTIALS_JSON / CHART_ARCHIVER_CREDENTIALS_FILE")
        return missing

    def validate_required(self) -> None:
        """启动前校验"""
        missing = self.missing_required()
        if missing:
            raise ConfigurationError(f"缺少必要配置: {', '.join(missing)}")

    def get_report_path(self, date_key: str, stamp: str) -> Path:
        """获取运行报告路径"""
        return self.report_dir / f"run-{date_key}-{stamp}.json"


# 全局配置实例
_config: RuntimeConfig | None = None


def get_config() -> RuntimeConfig:
    """获取全局配置（惰性加载）"""
    global _config
    if _config is None:
        _config = RuntimeConfig.from_yaml(Path("config/runtime.yaml"))
    return _config


def reload_config(yaml_path: str | Path | None = None) -> RuntimeConfig:
    """重新加载配置"""
    global _config
    path = yaml_path or "config/runtime.yaml"
    _config = RuntimeConfig.from_yaml(path)
    return _config
