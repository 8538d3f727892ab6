"""配置管理模块"""
from typing import Optional, Tuple
from pydantic_settings import BaseSettings

# NewsAPI top-headlines 支持的分类
ALLOWED_CATEGORIES: Tuple[str, ...] = (
    "general",
    "business",
    "entertainment",
    "health",
    "science",
    "sports",
    "technology",
)

# NewsAPI everything 支持的排序方式
ALLOWED_SORT_BY: Tuple[str, ...] = ("relevancy", "popularity", "publishedAt")

# 抓取全文时使用的 User-Agent
DEFAULT_USER_AGENT = "Globlit/1.0 (+https://example.com)"


class Settings(BaseSettings):
    """应用配置"""

    # 应用配置
    app_name: str = "Globlit"
    app_version: str = "1.0.0"
    debug: bool = False

    # 服务器配置
    host: str = "0.0.0.0"
    port: int = 3000

    # 日志配置
    log_level: str = "INFO"
    log_file: str = "logs/app.log"
    log_to_file: bool = True

    # 新闻上游（NewsAPI）配置，密钥只在服务端使用
    news_api_base_url: str = "https://newsapi.org/v2"
    news_api_key: Optional[str] = None
    news_api_timeout: int = 10

    # 缓存配置（秒）
    feed_cache_ttl: int = 30
    article_cache_ttl: int = 86400

    # 全文抓取配置
    article_fetch_timeout: float = 10.0
    article_max_bytes: int = 1024 * 1024
    article_user_agent: str = DEFAULT_USER_AGENT
    article_accept_language: str = "en-US,en;q=0.9"
    article_resolve_hosts: bool = True  # 额外解析域名，拒绝解析到内网地址的主机

    # 会话配置（登录流程由外部身份提供方完成，这里只读取 session）
    session_secret: Optional[str] = None
    session_max_age: int = 14 * 24 * 60 * 60
    session_https_only: bool = False

    # 数据库配置
    db_url: Optional[str] = None  # 完整 SQLAlchemy URL，优先于下面的分项
    db_host: str = "localhost"
    db_port: int = 3306
    db_user: str = "root"
    db_password: str = ""
    db_name: str = "globlit"
    db_charset: str = "utf8mb4"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False

    @property
    def database_url(self) -> str:
        """数据库连接 URL"""
        if self.db_url:
            return self.db_url
        return (
            f"mysql+aiomysql://{self.db_user}:{self.db_password}"
            f"@{self.db_host}:{self.db_port}/{self.db_name}?charset={self.db_charset}"
        )


# 全局配置实例
settings = Settings()
