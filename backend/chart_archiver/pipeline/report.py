"""
运行报告 - 生成 run-{date}-{HHMMSS}.json

职责：
1. 汇总门店状态与图表结果
2. 落盘到 report_dir（供事后排查）
"""

from __future__ import annotations

import json
from pathlib import Path

from ..models import RunReport

SCHEMA_VERSION = "1.0"


def build_manifest(report: RunReport) -> dict:
    """生成报告字典"""
    return {
        "schema_version": SCHEMA_VERSION,
        "date_key": report.date_key,
        "summary": {
            "stores_total": len(report.stores),
            "stores_skipped": sum(1 for s in report.stores if s.skip_reason),
            "exports_succeeded": report.success_count,
            "exports_failed": report.failure_count,
        },
        "stores": [s.model_dump(mode="json") for s in report.stores],
        "results": [r.model_dump(mode="json") for r in report.results],
        "timestamps": {
            "started_at": report.started_at.isoformat() if report.started_at else None,
            "finished_at": report.finished_at.isoformat() if report.finished_at else None,
        },
    }


def write_report(report: RunReport, path: Path) -> Path:
    """写入报告文件"""
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(build_manifest(report), f, ensure_ascii=False, indent=2)
    return path
