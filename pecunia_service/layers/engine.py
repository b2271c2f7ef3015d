"""
缓存引擎
快速层（Tier-1）优先 → 持久层（Tier-2）兜底，持久层命中时提升回快速层。

记录格式（文本 JSON）：
  {value, timestamp(毫秒), date(YYYY-MM-DD), symbol(大写), attribute(小写)}
"""

import json
import logging
import time
from typing import Any, Callable, Dict, List, NamedTuple, Optional, Tuple

from pydantic import BaseModel, ValidationError

from pecunia_service.layers.keys import (
    key_prefix,
    make_key,
    namespace_prefix,
    normalize_attribute,
    normalize_symbol,
)
from pecunia_service.layers.stores import CacheStore

logger = logging.getLogger(__name__)

FAST_TTL_SECONDS = 6 * 60 * 60
STALENESS_WINDOW_MS = 24 * 60 * 60 * 1000


def _now_ms() -> int:
    return int(time.time() * 1000)


def is_expired(timestamp: int, max_age_ms: int, now_ms: Optional[int] = None) -> bool:
    """记录年龄严格大于 max_age_ms 视为过期"""
    now = _now_ms() if now_ms is None else now_ms
    return (now - timestamp) > max_age_ms


class CacheRecord(BaseModel):
    """单条缓存记录，value 原样保存"""
    value: Any
    timestamp: int
    date: str = ""
    symbol: str = ""
    attribute: str = ""


class HistoryEntry(NamedTuple):
    date: str
    value: Any


class FinanceCacheEngine:
    """两级行情缓存引擎，快速层与持久层由外部注入"""

    def __init__(
        self,
        fast: CacheStore,
        durable: CacheStore,
        fast_ttl: int = FAST_TTL_SECONDS,
        staleness_ms: int = STALENESS_WINDOW_MS,
        now_ms: Callable[[], int] = _now_ms,
        log: Optional[logging.Logger] = None,
    ):
        self.fast = fast
        self.durable = durable
        self._fast_ttl = fast_ttl
        self._staleness_ms = staleness_ms
        self._now_ms = now_ms
        self._log = log or logger

    # ── 记录编解码 ────────────────────────────────────────

    def _parse(self, key: str, raw: Optional[str]) -> Optional[CacheRecord]:
        if not raw:
            return None
        try:
            return CacheRecord.model_validate_json(raw)
        except (ValidationError, ValueError) as exc:
            self._log.warning(f"缓存记录解析失败 {key}: {exc}")
            return None

    # ── 读取 ──────────────────────────────────────────────

    def read(self, symbol: str, attribute: str, date: Optional[str] = None) -> Any:
        """
        读取缓存值，未命中返回 None

        指定 date 时精确读取，不做过期检查；
        未指定 date 时取持久层中日期最新的条目，超过过期窗口则删除并返回 None。
        """
        if date:
            return self._read_exact(make_key(symbol, attribute, date))
        return self._read_latest(symbol, attribute)

    def _read_fast(self, key: str) -> Optional[CacheRecord]:
        record = self._parse(key, self.fast.get(key))
        if record is not None:
            self._log.debug(f"快速层命中: {key}")
        return record

    def _read_exact(self, key: str) -> Any:
        record = self._read_fast(key)
        if record is not None:
            return record.value

        raw = self.durable.get(key)
        record = self._parse(key, raw)
        if record is None:
            return None
        self._log.debug(f"持久层命中: {key}")
        self.fast.put(key, raw, self._fast_ttl)
        return record.value

    def _read_latest(self, symbol: str, attribute: str) -> Any:
        keys = self.durable.list_keys(key_prefix(symbol, attribute))
        if not keys:
            return None
        latest = max(keys)

        record = self._read_fast(latest)
        if record is not None:
            return record.value

        raw = self.durable.get(latest)
        record = self._parse(latest, raw)
        if record is None:
            return None
        self._log.debug(f"持久层命中: {latest}")
        if is_expired(record.timestamp, self._staleness_ms, self._now_ms()):
            self._log.info(f"缓存已过期，删除: {latest}")
            self.durable.remove(latest)
            return None
        self.fast.put(latest, raw, self._fast_ttl)
        return record.value

    # ── 写入 ──────────────────────────────────────────────

    def write(self, symbol: str, attribute: str, value: Any, date: str) -> None:
        """同时写入快速层与持久层；序列化失败只记录日志，不抛出"""
        key = make_key(symbol, attribute, date)
        record = CacheRecord(
            value=value,
            timestamp=self._now_ms(),
            date=str(date),
            symbol=normalize_symbol(symbol),
            attribute=normalize_attribute(attribute),
        )
        try:
            raw = json.dumps(record.model_dump(), ensure_ascii=False, allow_nan=False)
        except (TypeError, ValueError) as exc:
            self._log.warning(f"缓存写入失败 {key}: {exc}")
            return
        self.fast.put(key, raw, self._fast_ttl)
        self.durable.put(key, raw)
        self._log.info(f"缓存写入（快速层 + 持久层）: {key} = {value}")

    # ── 维护 ──────────────────────────────────────────────

    def remove_all(self, symbol: str, attribute: str) -> int:
        """删除该 symbol/attribute 的所有日期条目，返回持久层匹配的键数"""
        keys = self.durable.list_keys(key_prefix(symbol, attribute))
        for key in keys:
            self.durable.remove(key)
            self.fast.remove(key)
        return len(keys)

    def clear_all(self) -> None:
        self.durable.remove_all()
        self.fast.remove_all()
        self._log.info("缓存已全部清空")

    def expire_older_than(self, max_age_ms: int) -> int:
        """删除年龄超过 max_age_ms 的条目，无法解析的记录跳过，返回删除数量"""
        now = self._now_ms()
        expired = 0
        for key in self.durable.list_keys(namespace_prefix()):
            record = self._parse(key, self.durable.get(key))
            if record is None:
                continue
            if is_expired(record.timestamp, max_age_ms, now):
                self.durable.remove(key)
                self.fast.remove(key)
                expired += 1
        self._log.info(f"已过期删除 {expired} 条缓存")
        return expired

    # ── 查询 ──────────────────────────────────────────────

    def entries(self, prefix: Optional[str] = None) -> List[Tuple[str, Optional[CacheRecord]]]:
        """按键降序返回持久层条目，无法解析的记录值为 None"""
        keys = sorted(self.durable.list_keys(prefix or namespace_prefix()), reverse=True)
        return [(key, self._parse(key, self.durable.get(key))) for key in keys]

    def history(self, symbol: str, attribute: str) -> List[HistoryEntry]:
        """历史值，日期从新到旧"""
        return [
            HistoryEntry(record.date, record.value)
            for _, record in self.entries(key_prefix(symbol, attribute))
            if record is not None
        ]

    def historical_value(self, symbol: str, attribute: str, date: str) -> Any:
        value = self.read(symbol, attribute, date)
        if value is not None:
            return value
        return f"#N/A (no data for {date})"

    def list_all(self) -> str:
        """所有缓存条目及其年龄（分钟）"""
        keys = self.durable.list_keys(namespace_prefix())
        if not keys:
            return "No cached finance data"

        now = self._now_ms()
        lines = ["Cached Finance Data:"]
        for key in keys:
            record = self._parse(key, self.durable.get(key))
            if record is None:
                lines.append(f"{key}: [error reading]")
                continue
            age = (now - record.timestamp) / 1000 / 60
            lines.append(f"{key}: {record.value} ({age:.1f} min old)")
        return "\n".join(lines) + "\n"

    def stats(self) -> Dict[str, int]:
        return {
            "fast": len(self.fast.list_keys()),
            "durable": len(self.durable.list_keys()),
        }
