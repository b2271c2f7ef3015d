"""
后端连接管理模块
统一管理 Redis（快速层）与 MongoDB（持久层）的同步连接
"""

import logging
from typing import Optional

from pymongo import MongoClient
from pymongo.collection import Collection
from pymongo.errors import PyMongoError
from redis import ConnectionPool, Redis, RedisError

from pecunia_service.config import settings

logger = logging.getLogger(__name__)

# ── 全局连接实例 ─────────────────────────────────────────
_mongo_client: Optional[MongoClient] = None
_mongo_collection: Optional[Collection] = None
_redis_client: Optional[Redis] = None
_redis_pool: Optional[ConnectionPool] = None


def init_mongodb() -> bool:
    """初始化 MongoDB 连接，返回是否成功"""
    global _mongo_client, _mongo_collection
    if not settings.MONGODB_ENABLED:
        logger.info("MongoDB 未启用，跳过初始化")
        return False
    try:
        _mongo_client = MongoClient(
            settings.MONGO_URI,
            maxPoolSize=settings.MONGO_MAX_CONNECTIONS,
            serverSelectionTimeoutMS=settings.MONGO_SERVER_SELECTION_TIMEOUT_MS,
            connectTimeoutMS=settings.MONGO_CONNECT_TIMEOUT_MS,
            socketTimeoutMS=settings.MONGO_SOCKET_TIMEOUT_MS,
        )
        _mongo_client.admin.command("ping")
        _mongo_collection = _mongo_client[settings.MONGODB_DATABASE][settings.MONGODB_COLLECTION]
        _mongo_collection.create_index([("document", 1), ("key", 1)], unique=True)
        logger.info(f"✅ MongoDB 连接成功: {settings.MONGODB_HOST}:{settings.MONGODB_PORT}")
        return True
    except PyMongoError as exc:
        logger.warning(f"⚠️ MongoDB 连接失败（持久层将降级为文件存储）: {exc}")
        _mongo_client = None
        _mongo_collection = None
        return False


def init_redis() -> bool:
    """初始化 Redis 连接，返回是否成功"""
    global _redis_client, _redis_pool
    if not settings.REDIS_ENABLED:
        logger.info("Redis 未启用，跳过初始化")
        return False
    try:
        _redis_pool = ConnectionPool.from_url(
            settings.REDIS_URL,
            max_connections=settings.REDIS_MAX_CONNECTIONS,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=10,
        )
        _redis_client = Redis(connection_pool=_redis_pool)
        _redis_client.ping()
        logger.info(f"✅ Redis 连接成功: {settings.REDIS_HOST}:{settings.REDIS_PORT}")
        return True
    except RedisError as exc:
        logger.warning(f"⚠️ Redis 连接失败（快速层将降级为内存存储）: {exc}")
        _redis_client = None
        _redis_pool = None
        return False


def close_connections():
    """关闭所有后端连接"""
    global _mongo_client, _mongo_collection, _redis_client, _redis_pool
    if _mongo_client:
        _mongo_client.close()
        _mongo_client = None
        _mongo_collection = None
        logger.info("MongoDB 连接已关闭")
    if _redis_client:
        _redis_client.close()
        _redis_client = None
    if _redis_pool:
        _redis_pool.disconnect()
        _redis_pool = None
        logger.info("Redis 连接已关闭")


def get_mongo_collection() -> Optional[Collection]:
    """获取缓存集合（可能为 None）"""
    return _mongo_collection


def get_redis() -> Optional[Redis]:
    """获取 Redis 客户端（可能为 None）"""
    return _redis_client


def check_health() -> dict:
    """检查所有后端连接健康状态"""
    result = {
        "mongodb": {"status": "disabled"},
        "redis": {"status": "disabled"},
    }
    if _mongo_client:
        try:
            _mongo_client.admin.command("ping")
            result["mongodb"] = {"status": "healthy", "host": settings.MONGODB_HOST}
        except PyMongoError as exc:
            result["mongodb"] = {"status": "unhealthy", "error": str(exc)}
    elif settings.MONGODB_ENABLED:
        result["mongodb"] = {"status": "disconnected"}

    if _redis_client:
        try:
            _redis_client.ping()
            result["redis"] = {"status": "healthy", "host": settings.REDIS_HOST}
        except RedisError as exc:
            result["redis"] = {"status": "unhealthy", "error": str(exc)}
    elif settings.REDIS_ENABLED:
        result["redis"] = {"status": "disconnected"}

    return result
