"""通用响应模型"""
from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """统一错误响应格式"""
    error: str


class SuccessResponse(BaseModel):
    """简单成功响应"""
    success: bool = True
