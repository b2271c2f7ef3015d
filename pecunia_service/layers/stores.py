"""
存储适配层
每一级存储都是同一个能力接口 {get, put, remove, remove_all, list_keys}：

  快速层（Tier-1）: MemoryTTLStore（内存，容量 + TTL 受限） / RedisStore
  持久层（Tier-2）: MemoryStore（内存，无界） / FileStore（本地文件） / MongoStore

存储层只负责存取文本记录，不包含任何缓存策略；淘汰、过期由后端自行完成，
引擎必须容忍快速层的静默丢失。
"""

import hashlib
import json
import logging
import os
import re
import tempfile
import time
from collections import OrderedDict
from typing import Callable, Dict, List, Optional, Protocol, Tuple

from pymongo.errors import PyMongoError
from redis import Redis, RedisError

logger = logging.getLogger(__name__)


class CacheStore(Protocol):
    """单级缓存存储能力"""

    def get(self, key: str) -> Optional[str]:
        ...

    def put(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        ...

    def remove(self, key: str) -> None:
        ...

    def remove_all(self) -> None:
        ...

    def list_keys(self, prefix: Optional[str] = None) -> List[str]:
        ...


# ── 内存实现 ──────────────────────────────────────────────

class MemoryTTLStore:
    """进程内快速层：按写入时间设置 TTL，超出容量时淘汰最久未使用的条目"""

    def __init__(
        self,
        max_entries: int = 2000,
        default_ttl: Optional[int] = None,
        clock: Callable[[], float] = time.time,
    ):
        self._max_entries = max_entries
        self._default_ttl = default_ttl
        self._clock = clock
        # key -> (value, expires_at 秒级时间戳或 None)
        self._data: "OrderedDict[str, Tuple[str, Optional[float]]]" = OrderedDict()

    def _alive(self, key: str) -> bool:
        item = self._data.get(key)
        if item is None:
            return False
        expires_at = item[1]
        if expires_at is not None and expires_at <= self._clock():
            del self._data[key]
            return False
        return True

    def get(self, key: str) -> Optional[str]:
        if not self._alive(key):
            return None
        self._data.move_to_end(key)
        return self._data[key][0]

    def put(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        ttl = ttl if ttl is not None else self._default_ttl
        expires_at = self._clock() + ttl if ttl is not None else None
        self._data[key] = (value, expires_at)
        self._data.move_to_end(key)
        while len(self._data) > self._max_entries:
            evicted, _ = self._data.popitem(last=False)
            logger.debug(f"快速层容量已满，淘汰: {evicted}")

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def remove_all(self) -> None:
        self._data.clear()

    def list_keys(self, prefix: Optional[str] = None) -> List[str]:
        return [
            k for k in list(self._data)
            if self._alive(k) and (prefix is None or k.startswith(prefix))
        ]


class MemoryStore:
    """进程内持久层：无容量限制、无 TTL"""

    def __init__(self):
        self._data: Dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def put(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def remove_all(self) -> None:
        self._data.clear()

    def list_keys(self, prefix: Optional[str] = None) -> List[str]:
        return [k for k in self._data if prefix is None or k.startswith(prefix)]


# ── 文件实现 ──────────────────────────────────────────────

class FileStore:
    """本地文件持久层：每个键一个 JSON 文件，MongoDB 不可用时的降级方案"""

    def __init__(self, cache_dir: str, namespace: str = "default"):
        self._dir = os.path.join(cache_dir, namespace)

    def _path(self, key: str) -> str:
        digest = hashlib.md5(key.encode("utf-8")).hexdigest()
        return os.path.join(self._dir, f"{digest}.json")

    def _iter_docs(self):
        if not os.path.isdir(self._dir):
            return
        for name in sorted(os.listdir(self._dir)):
            if not name.endswith(".json"):
                continue
            path = os.path.join(self._dir, name)
            doc = self._load(path)
            if doc is not None:
                yield path, doc

    @staticmethod
    def _load(path: str) -> Optional[dict]:
        """读取单个缓存文件，内容不是 JSON 对象时视为损坏"""
        try:
            with open(path, "r", encoding="utf-8") as fh:
                doc = json.load(fh)
        except (OSError, ValueError) as exc:
            logger.warning(f"文件缓存读取失败 {path}: {exc}")
            return None
        if not isinstance(doc, dict):
            logger.warning(f"文件缓存格式错误 {path}: 期望 JSON 对象，实际为 {type(doc).__name__}")
            return None
        return doc

    def get(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not os.path.exists(path):
            return None
        doc = self._load(path)
        return doc.get("value") if doc is not None else None

    def put(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        # 先写临时文件再原子替换，写入中途失败不会破坏已有记录
        tmp_path = None
        try:
            os.makedirs(self._dir, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=self._dir, suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump({"key": key, "value": value}, fh, ensure_ascii=False)
            os.replace(tmp_path, self._path(key))
        except OSError as exc:
            logger.warning(f"文件缓存写入失败: {key}: {exc}")
            if tmp_path and os.path.exists(tmp_path):
                try:
                    os.remove(tmp_path)
                except OSError as cleanup_exc:
                    logger.debug(f"临时文件清理失败 {tmp_path}: {cleanup_exc}")

    def remove(self, key: str) -> None:
        path = self._path(key)
        try:
            if os.path.exists(path):
                os.remove(path)
        except OSError as exc:
            logger.warning(f"文件缓存删除失败: {key}: {exc}")

    def remove_all(self) -> None:
        for path, _ in list(self._iter_docs()):
            try:
                os.remove(path)
            except OSError as exc:
                logger.warning(f"文件缓存删除失败: {path}: {exc}")

    def list_keys(self, prefix: Optional[str] = None) -> List[str]:
        keys = []
        for _, doc in self._iter_docs():
            key = doc.get("key")
            if key and (prefix is None or key.startswith(prefix)):
                keys.append(key)
        return keys


# ── Redis 实现 ────────────────────────────────────────────

_GLOB_SPECIAL = re.compile(r"([*?\[\]\\])")


def _glob_escape(text: str) -> str:
    return _GLOB_SPECIAL.sub(r"\\\1", text)


class RedisStore:
    """Redis 快速层，键统一加 pecunia:<namespace>: 前缀以隔离不同文档"""

    def __init__(self, client: Redis, namespace: str = "default"):
        self._client = client
        self._ns = f"pecunia:{namespace}:"

    def get(self, key: str) -> Optional[str]:
        try:
            return self._client.get(self._ns + key)
        except RedisError as exc:
            logger.warning(f"Redis 读取失败: {key}: {exc}")
            return None

    def put(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        # 与 MemoryTTLStore 一致：None 为不过期，ttl <= 0 立即过期
        try:
            if ttl is None:
                self._client.set(self._ns + key, value)
            elif ttl > 0:
                self._client.setex(self._ns + key, ttl, value)
            else:
                self._client.delete(self._ns + key)
        except RedisError as exc:
            logger.warning(f"Redis 写入失败: {key}: {exc}")

    def remove(self, key: str) -> None:
        try:
            self._client.delete(self._ns + key)
        except RedisError as exc:
            logger.warning(f"Redis 删除失败: {key}: {exc}")

    def remove_all(self) -> None:
        keys = [self._ns + k for k in self.list_keys()]
        if not keys:
            return
        try:
            self._client.delete(*keys)
        except RedisError as exc:
            logger.warning(f"Redis 清空失败: {exc}")

    def list_keys(self, prefix: Optional[str] = None) -> List[str]:
        pattern = _glob_escape(self._ns + (prefix or "")) + "*"
        try:
            return [k[len(self._ns):] for k in self._client.scan_iter(match=pattern)]
        except RedisError as exc:
            logger.warning(f"Redis 扫描失败: {exc}")
            return []


# ── MongoDB 实现 ──────────────────────────────────────────

class MongoStore:
    """MongoDB 持久层，文档结构 {document, key, value}"""

    def __init__(self, collection, namespace: str = "default"):
        self._col = collection
        self._ns = namespace

    def get(self, key: str) -> Optional[str]:
        try:
            doc = self._col.find_one({"document": self._ns, "key": key})
        except PyMongoError as exc:
            logger.warning(f"MongoDB 读取失败: {key}: {exc}")
            return None
        return doc.get("value") if doc else None

    def put(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        try:
            self._col.update_one(
                {"document": self._ns, "key": key},
                {"$set": {"document": self._ns, "key": key, "value": value}},
                upsert=True,
            )
        except PyMongoError as exc:
            logger.warning(f"MongoDB 写入失败: {key}: {exc}")

    def remove(self, key: str) -> None:
        try:
            self._col.delete_one({"document": self._ns, "key": key})
        except PyMongoError as exc:
            logger.warning(f"MongoDB 删除失败: {key}: {exc}")

    def remove_all(self) -> None:
        try:
            self._col.delete_many({"document": self._ns})
        except PyMongoError as exc:
            logger.warning(f"MongoDB 清空失败: {exc}")

    def list_keys(self, prefix: Optional[str] = None) -> List[str]:
        query = {"document": self._ns}
        if prefix:
            query["key"] = {"$regex": "^" + re.escape(prefix)}
        try:
            return [doc["key"] for doc in self._col.find(query, {"key": 1, "_id": 0})]
        except PyMongoError as exc:
            logger.warning(f"MongoDB 扫描失败: {exc}")
            return []
