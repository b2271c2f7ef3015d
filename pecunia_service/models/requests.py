"""
请求模型
调用方在边界处构造显式的请求类型（行情解析 / 运维命令），核心层不再通过字符串形态判断。
"""

from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, Field


class QuoteRequest(BaseModel):
    """行情解析请求：attributes 为逗号分隔列表，values 为单值或与之对齐的序列"""
    kind: Literal["quote"] = "quote"
    symbol: str = ""
    attributes: str = "price"
    values: Any = None
    date: Optional[str] = None


class CommandRequest(BaseModel):
    """运维命令请求"""
    kind: Literal["command"] = "command"
    command: str
    symbol: str = ""
    attributes: str = ""
    date: Optional[str] = None
    option: Any = None


PecuniaRequest = Annotated[Union[QuoteRequest, CommandRequest], Field(discriminator="kind")]


class ResolveBody(BaseModel):
    """HTTP 解析接口请求体，字段与表格函数参数一一对应"""
    symbol: str = ""
    attributes: str = "price"
    values: Any = None
    date: Optional[str] = None
    cmd_option: Any = None


class CommandBody(BaseModel):
    """HTTP 命令接口请求体"""
    symbol: str = ""
    attributes: str = ""
    date: Optional[str] = None
    option: Any = None
