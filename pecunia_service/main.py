"""
Pecunia 行情缓存服务
独立 FastAPI 应用程序入口

启动方式:
    uvicorn pecunia_service.main:app --host 0.0.0.0 --port 8002
    python -m pecunia_service.main
"""

import logging
import time
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from pecunia_service import __version__
from pecunia_service.config import settings
from pecunia_service.db import init_mongodb, init_redis, close_connections
from pecunia_service.routers import health, quotes, cache
from pecunia_service.services.pecunia_service import ServiceRegistry

# ── 日志配置 ──────────────────────────────────────────────
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


# ── 生命周期管理 ──────────────────────────────────────────
@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用启动/关闭生命周期钩子"""
    logger.info("=" * 60)
    logger.info(f"🚀 Pecunia QuoteCache v{__version__} 启动中")
    logger.info(f"   Backend   : {settings.CACHE_BACKEND}")
    logger.info("=" * 60)

    if settings.CACHE_BACKEND == "redis_mongo":
        # 连接失败不阻断启动，降级运行
        redis_ok = init_redis()
        mongo_ok = init_mongodb()
        if mongo_ok and redis_ok:
            logger.info("✅ 所有缓存后端就绪")
        elif mongo_ok:
            logger.warning("⚠️ Redis 不可用，快速层降级为内存模式")
        elif redis_ok:
            logger.warning("⚠️ MongoDB 不可用，持久层降级为文件模式")
        else:
            logger.warning("⚠️ 缓存后端均不可用，降级为内存 + 文件模式")

    app.state.registry = ServiceRegistry(settings)

    yield

    logger.info("🔄 行情缓存服务正在关闭...")
    close_connections()
    logger.info("✅ 行情缓存服务已关闭")


# ── 应用实例 ──────────────────────────────────────────────
app = FastAPI(
    title="Pecunia 行情缓存服务",
    description=(
        "表格行情函数的持久化兜底服务：\n"
        "- 📊 上游返回 Loading... / #N/A / #ERROR! 时使用最近一次有效值\n"
        "- 🗄️ 两级缓存（Redis → MongoDB，降级为内存 / 文件）\n"
        "- 🛠️ 运维命令（SET / GET / REMOVE / LIST / HISTORY / CLEARCACHE / EXPIRECACHE / TEST）"
    ),
    version=__version__,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# ── CORS 中间件 ───────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── 请求计时中间件 ─────────────────────────────────────────
@app.middleware("http")
async def add_process_time(request: Request, call_next):
    start = time.time()
    response = await call_next(request)
    response.headers["X-Process-Time"] = f"{(time.time() - start) * 1000:.1f}ms"
    return response


# ── 全局异常处理 ──────────────────────────────────────────
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"未处理的异常: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"success": False, "error": "内部服务错误", "message": str(exc)},
    )


# ── 注册路由 ──────────────────────────────────────────────
app.include_router(health.router)
app.include_router(quotes.router)
app.include_router(cache.router)


# ── 根路由 ───────────────────────────────────────────────
@app.get("/", include_in_schema=False)
async def root():
    return {
        "service": "Pecunia QuoteCache",
        "version": __version__,
        "docs": "/docs",
        "health": "/health",
    }


# ── 直接运行入口 ──────────────────────────────────────────
if __name__ == "__main__":
    uvicorn.run(
        "pecunia_service.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower(),
    )
