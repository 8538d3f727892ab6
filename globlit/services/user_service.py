"""用户服务：读取当前用户资料、修改用户名"""
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from globlit.models.db_models import User
from globlit.utils.logger import logger

MIN_USERNAME_LENGTH = 2
MAX_USERNAME_LENGTH = 64


class UserService:
    """用户资料查询与修改"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_id(self, user_id: int) -> Optional[User]:
        """按 id 查用户"""
        result = await self.db.execute(select(User).where(User.id == user_id))
        return result.scalars().first()

    async def update_username(self, user: User, username: str) -> User:
        """修改用户名（由 get_db 在请求结束时统一提交）"""
        user.username = username
        await self.db.flush()
        logger.info(f"用户名已修改: user_id={user.id}")
        return user


def normalize_username(username: Optional[str]) -> Optional[str]:
    """去掉首尾空白，长度不合法时返回 None"""
    if not username:
        return None
    username = username.strip()
    if len(username) < MIN_USERNAME_LENGTH or len(username) > MAX_USERNAME_LENGTH:
        return None
    return username
