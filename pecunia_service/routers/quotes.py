"""
行情解析与命令路由
POST /api/documents/{document_id}/resolve             - 表格函数入口（行情或命令）
POST /api/documents/{document_id}/commands/{command}  - 直接执行运维命令
"""

from fastapi import APIRouter, Request

from pecunia_service.models.requests import CommandBody, CommandRequest, ResolveBody
from pecunia_service.models.response import ApiResponse
from pecunia_service.services.pecunia_service import PecuniaService

router = APIRouter(prefix="/api/documents", tags=["行情缓存"])


def get_service(request: Request, document_id: str) -> PecuniaService:
    return request.app.state.registry.get(document_id)


@router.post("/{document_id}/resolve", response_model=ApiResponse)
def resolve(document_id: str, body: ResolveBody, request: Request):
    """
    解析行情值

    - `values` 为上游行情结果（单值或与 `attributes` 对齐的数组）
    - `values` 为命令名（如 `LIST`）或提供 `cmd_option` 时执行命令
    """
    svc = get_service(request, document_id)
    result = svc.resolve(
        symbol=body.symbol,
        attributes=body.attributes,
        values=body.values,
        date=body.date,
        cmd_option=body.cmd_option,
    )
    return ApiResponse.result(document_id, result)


@router.post("/{document_id}/commands/{command}", response_model=ApiResponse)
def run_command(document_id: str, command: str, body: CommandBody, request: Request):
    """执行缓存运维命令（? / SET / GET / HISTORY / REMOVE / LIST / CLEARCACHE / EXPIRECACHE / TEST）"""
    svc = get_service(request, document_id)
    result = svc.handle(CommandRequest(
        command=command,
        symbol=body.symbol,
        attributes=body.attributes,
        date=body.date,
        option=body.option,
    ))
    return ApiResponse.result(document_id, result, message=command.upper())
