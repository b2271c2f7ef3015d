"""
行情值解析策略
  "Loading..."             → 有缓存用缓存，否则原样返回 "Loading..."
  "#N/A" / "#ERROR!" / 空值 → 有缓存用缓存，否则统一返回 "#N/A"
  其他有效值               → 写入缓存并原样返回
"""

import logging
from datetime import datetime, timezone, tzinfo
from typing import Any, List, Optional, Sequence
from zoneinfo import ZoneInfo

from pecunia_service.config import settings
from pecunia_service.layers.engine import FinanceCacheEngine

logger = logging.getLogger(__name__)

LOADING = "Loading..."
NOT_AVAILABLE = "#N/A"
ERROR = "#ERROR!"

_UNAVAILABLE = (NOT_AVAILABLE, ERROR, "")


def _zone(tz: str) -> tzinfo:
    return timezone.utc if tz.upper() == "UTC" else ZoneInfo(tz)


def resolve_date(date: Optional[str] = None, tz: Optional[str] = None) -> str:
    """显式日期原样使用，否则取 settings.QUOTE_DATE_TZ（默认 UTC）下的当天 ISO 日期，与主机本地时区无关"""
    if date:
        return date
    return datetime.now(_zone(tz or settings.QUOTE_DATE_TZ)).date().isoformat()


def split_attributes(attributes: str) -> List[str]:
    return [a.strip() for a in str(attributes).split(",")]


class QuoteResolver:
    """行情值解析：决定信任上游值、替换为缓存值或返回不可用"""

    def __init__(self, engine: FinanceCacheEngine):
        self._engine = engine

    def resolve_single(self, symbol: str, attribute: str, candidate: Any, date: str) -> Any:
        if candidate == LOADING:
            cached = self._engine.read(symbol, attribute, date)
            if cached is not None:
                logger.info(f"加载中，使用缓存值 {symbol} {attribute} ({date}): {cached}")
                return cached
            return LOADING

        if candidate is None or (isinstance(candidate, str) and candidate in _UNAVAILABLE):
            cached = self._engine.read(symbol, attribute, date)
            if cached is not None:
                logger.info(f"行情不可用，使用缓存值 {symbol} {attribute} ({date}): {cached}")
                return cached
            return NOT_AVAILABLE

        self._engine.write(symbol, attribute, candidate, date)
        return candidate

    def resolve_many(
        self,
        symbol: str,
        attributes: Sequence[str],
        candidates: Sequence[Any],
        date: str,
    ) -> List[Any]:
        """按下标逐个解析，候选值不足的位置按空值处理"""
        results = []
        for i, attribute in enumerate(attributes):
            candidate = candidates[i] if i < len(candidates) else None
            results.append(self.resolve_single(symbol, attribute, candidate, date))
        return results
