"""路由依赖：新闻服务实例、当前登录用户"""
from typing import Optional
from fastapi import Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession
from globlit.database import get_db
from globlit.services.news_service import NewsService
from globlit.services.user_service import UserService


def get_news_service(request: Request) -> NewsService:
    """获取应用启动时创建的新闻代理服务"""
    service = getattr(request.app.state, "news_service", None)
    if service is None:
        raise RuntimeError("news service is not initialised")
    return service


def get_current_user_id(request: Request) -> int:
    """
    读取 session 中的用户 id（由外部登录流程写入）

    Raises:
        HTTPException: 未登录时 401
    """
    user_id = request.session.get("user_id") if "session" in request.scope else None
    if user_id is None:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return user_id


def get_user_service(db: Optional[AsyncSession] = Depends(get_db)) -> UserService:
    """获取用户服务，数据库不可用时 503"""
    if db is None:
        raise HTTPException(status_code=503, detail="Database unavailable")
    return UserService(db)
