"""
凭据加载 - 服务账号 JSON（环境变量字符串或文件）
"""

from __future__ import annotations

import json
from typing import Any

from google.oauth2 import service_account

from ..config import RuntimeConfig
from ..interfaces import ConfigurationError

SCOPES = [
    "https://www.googleapis.com/auth/drive",
    "https://www.googleapis.com/auth/spreadsheets.readonly",
    "https://www.googleapis.com/auth/presentations",
]


def parse_service_account_info(raw: str) -> dict[str, Any]:
    """解析服务账号JSON，并把转义的 \\n 还原为换行"""
    try:
        info = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"服务账号凭据不是有效JSON: {e}") from e
    if not isinstance(info, dict):
        raise ConfigurationError("服务账号凭据必须是JSON对象")

    missing = [k for k in ("client_email", "private_key") if not info.get(k)]
    if missing:
        raise ConfigurationError(f"服务账号凭据缺少字段: {', '.join(missing)}")

    info["private_key"] = info["private_key"].replace("\\n", "\n")
    return info


def load_credentials(config: RuntimeConfig) -> service_account.Credentials:
    """按配置加载服务账号凭据"""
    if config.credentials_json.strip():
        raw = config.credentials_json
    elif config.credentials_file:
        if not config.credentials_file.exists():
            raise ConfigurationError(f"凭据文件不存在: {config.credentials_file}")
        raw = config.credentials_file.read_text(encoding="utf-8")
    else:
        raise ConfigurationError("未配置服务账号凭据")

    info = parse_service_account_info(raw)
    try:
        return service_account.Credentials.from_service_account_info(info, scopes=SCOPES)
    except ValueError as e:
        raise ConfigurationError(f"服务账号凭据无效: {e}") from e
