"""
门店表加载器 - 读取 config/stores.yaml

职责：
- 解析YAML并生成不可变、有序的门店表
- 校验门店名唯一、字段非空
- 启动时加载一次，显式传入编排器（无全局访问）

文件格式：
    stores:
      - name: ARENAL
        sheet: ARENAL          # 可省略，默认与 name 相同
        folder_id: 1AbC...
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from pathlib import Path
from types import MappingProxyType
from typing import Any

import yaml
from pydantic import ValidationError

from ..interfaces import ConfigurationError
from ..models import Store


class StoreTable(Mapping[str, Store]):
    """不可变有序门店表 {门店名: Store}"""

    def __init__(self, stores: list[Store] | tuple[Store, ...]):
        table: dict[str, Store] = {}
        for store in stores:
            if store.name in table:
                raise ConfigurationError(f"门店名重复: {store.name}")
            table[store.name] = store
        self._table = MappingProxyType(table)

    def __getitem__(self, name: str) -> Store:
        return self._table[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._table)

    def __len__(self) -> int:
        return len(self._table)

    def __repr__(self) -> str:
        return f"StoreTable({list(self._table)})"

    @property
    def stores(self) -> tuple[Store, ...]:
        """按配置顺序返回全部门店"""
        return tuple(self._table.values())

    def only(self, names: list[str]) -> StoreTable:
        """按名称筛选（保持原顺序）"""
        unknown = [n for n in names if n not in self._table]
        if unknown:
            raise ConfigurationError(f"未知门店: {', '.join(unknown)}")
        return StoreTable([s for s in self.stores if s.name in names])

    @classmethod
    def from_entries(cls, entries: list[dict[str, Any]]) -> StoreTable:
        stores = []
        for i, entry in enumerate(entries, start=1):
            if not isinstance(entry, dict):
                raise ConfigurationError(f"第{i}个门店配置格式错误: {entry!r}")
            name = entry.get("name")
            try:
                stores.append(
                    Store(
                        name=name,
                        sheet_name=entry.get("sheet") or name,
                        folder_id=entry.get("folder_id"),
                    )
                )
            except ValidationError as e:
                raise ConfigurationError(f"第{i}个门店配置无效({name}): {e}") from e
        return cls(stores)

    @classmethod
    def load(cls, path: str | Path) -> StoreTable:
        """从YAML加载门店表"""
        path = Path(path)
        if not path.exists():
            raise ConfigurationError(f"门店表不存在: {path}")

        try:
            with open(path, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"门店表解析失败 {path}: {e}") from e

        entries = data.get("stores") if isinstance(data, dict) else None
        if not entries:
            raise ConfigurationError(f"门店表为空: {path}")
        if not isinstance(entries, list):
            raise ConfigurationError(f"stores 必须是列表: {path}")
        return cls.from_entries(entries)
