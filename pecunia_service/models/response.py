"""统一 API 响应模型"""

from typing import Any, Optional
from pydantic import BaseModel


class ApiResponse(BaseModel):
    """标准 API 响应封装，document 为结果所属的文档缓存上下文"""
    success: bool = True
    document: Optional[str] = None
    data: Optional[Any] = None
    message: str = ""
    error: Optional[str] = None

    @classmethod
    def ok(cls, data: Any = None, message: str = "success", document: Optional[str] = None) -> "ApiResponse":
        return cls(success=True, document=document, data=data, message=message)

    @classmethod
    def result(cls, document: str, value: Any, message: str = "success") -> "ApiResponse":
        """解析 / 命令结果：单值、值列表或命令输出字符串"""
        return cls.ok(data={"result": value}, message=message, document=document)
