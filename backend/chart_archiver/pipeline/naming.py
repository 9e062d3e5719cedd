"""
命名规则 - 图表标题清洗与归档文件名

文件名格式：{门店}__{标题}__{YYYY-MM-DD}.pdf
"""

from __future__ import annotations

import re
from datetime import datetime
from zoneinfo import ZoneInfo

from ..models import ChartRef

_UNSAFE_CHARS = re.compile(r'[\\/:*?"<>|]')

DEFAULT_UNTITLED_PREFIX = "Grafico"
DEFAULT_TITLE_MAX_LEN = 80


def sanitize_title(title: str, max_len: int = DEFAULT_TITLE_MAX_LEN) -> str:
    """去除文件系统不安全字符并截断"""
    cleaned = _UNSAFE_CHARS.sub("", title or "").strip()
    return cleaned[:max_len].strip()


def chart_title(
    chart: ChartRef,
    index: int,
    prefix: str = DEFAULT_UNTITLED_PREFIX,
    max_len: int = DEFAULT_TITLE_MAX_LEN,
) -> str:
    """图表标题（无标题时用 前缀_序号，序号从1开始）"""
    title = sanitize_title(chart.title, max_len)
    return title or sanitize_title(f"{prefix}_{index}", max_len)


def build_filename(store: str, title: str, date_key: str) -> str:
    """门店名同样去除不安全字符（不截断）"""
    store = _UNSAFE_CHARS.sub("", store).strip()
    return f"{store}__{title}__{date_key}.pdf"


def today_key(tz: str = "UTC", now: datetime | None = None) -> str:
    """按时区取当天日期键 YYYY-MM-DD"""
    now = now or datetime.now(ZoneInfo(tz))
    return now.astimezone(ZoneInfo(tz)).strftime("%Y-%m-%d")


def validate_date_key(value: str) -> str:
    """校验 YYYY-MM-DD 格式"""
    datetime.strptime(value, "%Y-%m-%d")
    return value
