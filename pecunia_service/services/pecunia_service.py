"""
Pecunia 服务
组装存储、缓存引擎、解析策略与命令分发，对外提供统一的 resolve 入口。

每个文档（表格）拥有独立的 PecuniaService 与独立命名空间的存储，
文档之间不共享缓存数据；同一文档内的调用通过锁串行执行。
"""

import logging
import re
import threading
from typing import Any, Dict, List, Optional, Tuple

from pecunia_service.config import PecuniaSettings, settings as default_settings
from pecunia_service.db import get_mongo_collection, get_redis
from pecunia_service.layers.commands import CommandDispatcher
from pecunia_service.layers.engine import FinanceCacheEngine, HistoryEntry
from pecunia_service.layers.resolution import QuoteResolver, resolve_date, split_attributes
from pecunia_service.layers.stores import (
    CacheStore,
    FileStore,
    MemoryStore,
    MemoryTTLStore,
    MongoStore,
    RedisStore,
)
from pecunia_service.models.requests import CommandRequest, PecuniaRequest, QuoteRequest

logger = logging.getLogger(__name__)

_COMMAND_TOKEN = re.compile(r"^[A-Z?]+$")

_HOUR_MS = 60 * 60 * 1000


def classify_invocation(
    symbol: str = "",
    attributes: str = "price",
    values: Any = None,
    date: Optional[str] = None,
    cmd_option: Any = None,
) -> PecuniaRequest:
    """
    将表格函数形态的参数转换为显式请求

    cmd_option 非空，或 values 是全大写字母 / "?" 组成的字符串时视为命令，
    命令名取 values，cmd_option 作为命令参数。
    """
    is_command = bool(cmd_option) or (
        isinstance(values, str) and values != "" and _COMMAND_TOKEN.match(values) is not None
    )
    if is_command:
        return CommandRequest(
            command=str(values) if values is not None else "",
            symbol=symbol or "",
            attributes=attributes or "",
            date=date or None,
            option=cmd_option if cmd_option != "" else None,
        )
    return QuoteRequest(symbol=symbol or "", attributes=attributes or "", values=values, date=date or None)


def build_stores(namespace: str, cfg: PecuniaSettings = default_settings) -> Tuple[CacheStore, CacheStore]:
    """按配置创建快速层与持久层，后端不可用时降级"""
    if cfg.CACHE_BACKEND == "memory":
        return MemoryTTLStore(max_entries=cfg.FAST_CACHE_MAX_ENTRIES), MemoryStore()

    redis = get_redis()
    if redis is not None:
        fast: CacheStore = RedisStore(redis, namespace)
    else:
        logger.warning(f"Redis 不可用，文档 {namespace} 的快速层降级为内存存储")
        fast = MemoryTTLStore(max_entries=cfg.FAST_CACHE_MAX_ENTRIES)

    collection = get_mongo_collection()
    if collection is not None:
        durable: CacheStore = MongoStore(collection, namespace)
    else:
        logger.warning(f"MongoDB 不可用，文档 {namespace} 的持久层降级为文件存储")
        durable = FileStore(cfg.CACHE_DIR, namespace)
    return fast, durable


class PecuniaService:
    """单个文档的行情缓存服务"""

    def __init__(
        self,
        engine: FinanceCacheEngine,
        expire_max_age_ms: int = 24 * _HOUR_MS,
    ):
        self.engine = engine
        self._resolver = QuoteResolver(engine)
        self._dispatcher = CommandDispatcher(engine, expire_max_age_ms=expire_max_age_ms)
        self._lock = threading.Lock()

    @classmethod
    def from_settings(cls, namespace: str, cfg: PecuniaSettings = default_settings) -> "PecuniaService":
        fast, durable = build_stores(namespace, cfg)
        engine = FinanceCacheEngine(
            fast,
            durable,
            fast_ttl=cfg.FAST_CACHE_TTL,
            staleness_ms=cfg.STALENESS_WINDOW_HOURS * _HOUR_MS,
        )
        return cls(engine, expire_max_age_ms=cfg.EXPIRE_MAX_AGE_HOURS * _HOUR_MS)

    def handle(self, request: PecuniaRequest) -> Any:
        with self._lock:
            if isinstance(request, CommandRequest):
                return self._dispatcher.dispatch(
                    request.command,
                    symbol=request.symbol,
                    attribute=request.attributes,
                    date=request.date,
                    option=request.option,
                )
            return self._resolve_quote(request)

    def resolve(
        self,
        symbol: str = "",
        attributes: str = "price",
        values: Any = None,
        date: Optional[str] = None,
        cmd_option: Any = None,
    ) -> Any:
        """表格函数入口：返回单值、值列表或命令结果字符串"""
        return self.handle(classify_invocation(symbol, attributes, values, date, cmd_option))

    # ── 只读查询（与 handle 共用同一把锁） ─────────────────

    def stats(self) -> Dict[str, int]:
        with self._lock:
            return self.engine.stats()

    def history(self, symbol: str, attribute: str) -> List[HistoryEntry]:
        with self._lock:
            return self.engine.history(symbol, attribute)

    def _resolve_quote(self, request: QuoteRequest) -> Any:
        if not request.symbol or not request.attributes:
            return ""

        date = resolve_date(request.date)
        attrs = split_attributes(request.attributes)
        values = request.values if isinstance(request.values, (list, tuple)) else [request.values]

        if len(attrs) > 1:
            return self._resolver.resolve_many(request.symbol, attrs, values, date)
        candidate = values[0] if values else None
        return self._resolver.resolve_single(request.symbol, attrs[0], candidate, date)


class ServiceRegistry:
    """按文档 ID 管理 PecuniaService，生命周期由应用持有"""

    def __init__(self, cfg: PecuniaSettings = default_settings):
        self._cfg = cfg
        self._services: Dict[str, PecuniaService] = {}
        self._lock = threading.Lock()

    def get(self, document_id: str) -> PecuniaService:
        with self._lock:
            service = self._services.get(document_id)
            if service is None:
                logger.info(f"创建文档缓存上下文: {document_id}")
                service = PecuniaService.from_settings(document_id, self._cfg)
                self._services[document_id] = service
            return service

    def __len__(self) -> int:
        return len(self._services)
