"""
缓存查询路由
GET /api/documents/{document_id}/cache/stats    - 各层键数量
GET /api/documents/{document_id}/cache/history  - 某 symbol/attribute 的历史值
"""

from fastapi import APIRouter, Query, Request

from pecunia_service.models.response import ApiResponse
from pecunia_service.routers.quotes import get_service

router = APIRouter(prefix="/api/documents", tags=["缓存管理"])


@router.get("/{document_id}/cache/stats", response_model=ApiResponse)
def cache_stats(document_id: str, request: Request):
    """获取缓存统计信息（快速层 / 持久层键数量）"""
    svc = get_service(request, document_id)
    return ApiResponse.ok(data=svc.stats(), document=document_id)


@router.get("/{document_id}/cache/history", response_model=ApiResponse)
def cache_history(
    document_id: str,
    request: Request,
    symbol: str = Query(..., description="股票代码，如 NASDAQ:GOOGL"),
    attribute: str = Query(default="price"),
):
    """获取历史缓存值，日期从新到旧"""
    svc = get_service(request, document_id)
    entries = svc.history(symbol, attribute)
    return ApiResponse.ok(
        data=[{"date": e.date, "value": e.value} for e in entries],
        document=document_id,
    )
