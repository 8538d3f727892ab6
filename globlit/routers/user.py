"""用户 API 路由（需要登录）"""
from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.exc import SQLAlchemyError
from globlit.dependencies import get_current_user_id, get_user_service
from globlit.models.common import SuccessResponse
from globlit.models.user import UserProfile, UsernameUpdate, UsernameUpdated
from globlit.services.user_service import UserService, normalize_username
from globlit.utils.logger import logger

router = APIRouter()
auth_router = APIRouter()


@router.get("/me", response_model=UserProfile)
async def get_me(
    user_id: int = Depends(get_current_user_id),
    service: UserService = Depends(get_user_service),
):
    """当前用户信息"""
    try:
        user = await service.get_by_id(user_id)
    except SQLAlchemyError as e:
        logger.error(f"查询用户失败: user_id={user_id}, {e}")
        raise HTTPException(status_code=503, detail="Database unavailable")
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return UserProfile(username=user.username or user.name, email=user.email)


@router.post("/user/name", response_model=UsernameUpdated)
async def update_username(
    body: UsernameUpdate,
    user_id: int = Depends(get_current_user_id),
    service: UserService = Depends(get_user_service),
):
    """修改用户名（至少 2 个字符）"""
    username = normalize_username(body.username)
    if username is None:
        raise HTTPException(status_code=400, detail="Invalid username")
    try:
        user = await service.get_by_id(user_id)
        if user is None:
            raise HTTPException(status_code=404, detail="User not found")
        await service.update_username(user, username)
    except SQLAlchemyError as e:
        logger.error(f"修改用户名失败: user_id={user_id}, {e}")
        raise HTTPException(status_code=503, detail="Database unavailable")
    return UsernameUpdated(username=username)


@auth_router.get("/signout", response_model=SuccessResponse)
async def signout(request: Request):
    """退出登录，清空 session"""
    if "session" in request.scope:
        request.session.clear()
    return SuccessResponse()
