"""健康检查路由"""

import time

from fastapi import APIRouter

from pecunia_service import __version__
from pecunia_service.config import settings
from pecunia_service.db import check_health

router = APIRouter(tags=["健康检查"])


@router.get("/health")
def health():
    """服务健康检查"""
    return {
        "success": True,
        "data": {
            "status": "ok",
            "version": __version__,
            "timestamp": int(time.time()),
            "service": "Pecunia QuoteCache",
            "cache_backend": settings.CACHE_BACKEND,
            "databases": check_health(),
        },
        "message": "服务运行正常",
    }


@router.get("/healthz")
def healthz():
    """Kubernetes 存活检查"""
    return {"status": "ok"}


@router.get("/readyz")
def readyz():
    """Kubernetes 就绪检查"""
    return {"ready": True}
