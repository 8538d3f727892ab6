"""数据库模型"""
from sqlalchemy import Column, String, Integer, DateTime, Index
from sqlalchemy.sql import func
from globlit.database import Base


class User(Base):
    """用户表（记录由外部 OAuth 登录流程创建）"""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True, comment="主键ID")
    google_id = Column(String(64), nullable=True, comment="Google 账号ID")
    name = Column(String(255), nullable=True, comment="显示名称")
    username = Column(String(64), nullable=True, comment="用户名（可修改）")
    email = Column(String(255), nullable=True, comment="邮箱")
    avatar = Column(String(1024), nullable=True, comment="头像地址")
    created_at = Column(DateTime, server_default=func.now(), comment="创建时间")
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), comment="更新时间")

    __table_args__ = (
        Index("idx_users_google_id", "google_id", unique=True),
        Index("idx_users_email", "email"),
    )

    def to_dict(self):
        """转换为字典"""
        return {
            "username": self.username,
            "email": self.email,
        }
