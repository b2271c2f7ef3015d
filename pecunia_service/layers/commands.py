"""
缓存运维命令
?  SET  GET  HISTORY  REMOVE  LIST  CLEARCACHE  EXPIRECACHE  TEST
命令名大小写不敏感，结果均为字符串（GET 命中时返回缓存值本身）。
"""

import logging
from typing import Any, Optional

from pecunia_service.layers.engine import STALENESS_WINDOW_MS, FinanceCacheEngine
from pecunia_service.layers.keys import key_prefix
from pecunia_service.layers.resolution import resolve_date

logger = logging.getLogger(__name__)

COMMANDS = ["SET", "GET", "REMOVE", "LIST", "HISTORY", "CLEARCACHE", "EXPIRECACHE", "TEST"]

HELP_TEXT = "Commands: " + ", ".join(COMMANDS)
UNKNOWN_TEXT = "Unknown command. Use '?' for help."

_TEST_SYMBOL = "TEST:SYMBOL"
_TEST_ATTRIBUTE = "price"
_TEST_VALUE = 123.45


class CommandDispatcher:
    """命令分发，直接调用缓存引擎，不经过行情解析"""

    def __init__(self, engine: FinanceCacheEngine, expire_max_age_ms: int = STALENESS_WINDOW_MS):
        self._engine = engine
        self._expire_max_age_ms = expire_max_age_ms
        self._handlers = {
            "?": self._help,
            "SET": self._set,
            "GET": self._get,
            "HISTORY": self._history,
            "REMOVE": self._remove,
            "LIST": self._list,
            "CLEARCACHE": self._clear,
            "EXPIRECACHE": self._expire,
            "TEST": self._self_test,
        }

    def dispatch(
        self,
        command: str,
        symbol: str = "",
        attribute: str = "",
        date: Optional[str] = None,
        option: Any = None,
    ) -> Any:
        handler = self._handlers.get(str(command).strip().upper())
        if handler is None:
            logger.info(f"未知命令: {command}")
            return UNKNOWN_TEXT
        return handler(symbol, attribute, resolve_date(date), option)

    # ── 命令实现 ──────────────────────────────────────────

    def _help(self, symbol, attribute, date, option) -> str:
        return HELP_TEXT

    def _set(self, symbol, attribute, date, option) -> str:
        if option is None or option == "":
            return "SET requires a value in cmdOption"
        self._engine.write(symbol, attribute, option, date)
        return f"Set {symbol} {attribute} = {option}"

    def _get(self, symbol, attribute, date, option) -> Any:
        value = self._engine.read(symbol, attribute, date)
        return value if value is not None else "No cache found"

    def _history(self, symbol, attribute, date, option) -> str:
        entries = self._engine.entries(key_prefix(symbol, attribute))
        if not entries:
            return f"No history for {symbol} {attribute}"

        lines = [f"History for {symbol} {attribute}:"]
        for key, record in entries:
            if record is None:
                lines.append(f"{key}: [error]")
            else:
                lines.append(f"{record.date}: {record.value}")
        return "\n".join(lines) + "\n"

    def _remove(self, symbol, attribute, date, option) -> str:
        count = self._engine.remove_all(symbol, attribute)
        return f"Removed {count} cache entries for {symbol} {attribute}"

    def _list(self, symbol, attribute, date, option) -> str:
        return self._engine.list_all()

    def _clear(self, symbol, attribute, date, option) -> str:
        self._engine.clear_all()
        return "All cache cleared"

    def _expire(self, symbol, attribute, date, option) -> str:
        self._engine.expire_older_than(self._expire_max_age_ms)
        return "Old cache entries expired"

    def _self_test(self, symbol, attribute, date, option) -> str:
        self._engine.write(_TEST_SYMBOL, _TEST_ATTRIBUTE, _TEST_VALUE, date)
        retrieved = self._engine.read(_TEST_SYMBOL, _TEST_ATTRIBUTE, date)
        if retrieved == _TEST_VALUE:
            return "Cache test PASSED"
        logger.warning(f"缓存自检失败: 期望 {_TEST_VALUE}，实际 {retrieved}")
        return "Cache test FAILED"
