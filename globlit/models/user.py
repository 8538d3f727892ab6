"""用户相关 API 模型"""
from typing import Optional
from pydantic import BaseModel


class UserProfile(BaseModel):
    """当前用户信息"""
    username: Optional[str] = None
    email: Optional[str] = None


class UsernameUpdate(BaseModel):
    """修改用户名请求体"""
    username: Optional[str] = None


class UsernameUpdated(BaseModel):
    """修改用户名结果"""
    success: bool = True
    username: str
