from pydantic import BaseModel, Field
from typing import Any, Optional


class BaseResponse(BaseModel):
    """基础响应模型"""
    success: bool = Field(
        ...,
        description="请求是否成功"
    )
    message: Optional[str] = Field(
        None,
        description="响应消息"
    )


class OperationResponse(BaseResponse):
    """账本操作响应"""
    error: Optional[str] = Field(
        None,
        description="失败时的错误类型",
        examples=["InsufficientStock"]
    )
    data: Any = Field(
        None,
        description="操作结果"
    )


class HealthCheckResponse(BaseModel):
    """健康检查响应"""
    status: str = Field(
        "healthy",
        description="服务状态"
    )
    service: str = Field(
        "ota-ledger",
        description="服务名称"
    )
    version: str = Field(
        "1.0.0",
        description="服务版本"
    )
