"""日志配置模块"""
import sys
from pathlib import Path
from loguru import logger
from globlit.config import settings

# 日志里 URL 的最大长度，避免超长查询串刷屏
_MAX_URL_IN_LOG = 200


def setup_logger():
    """配置日志系统"""
    # 移除默认处理器
    logger.remove()

    # 控制台输出
    logger.add(
        sys.stdout,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
        level=settings.log_level,
        colorize=True,
    )

    if not settings.log_to_file:
        return logger

    # 文件输出
    log_file_path = Path(settings.log_file)
    log_file_path.parent.mkdir(parents=True, exist_ok=True)

    logger.add(
        settings.log_file,
        format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}",
        level=settings.log_level,
        rotation="10 MB",
        retention="7 days",
        compression="zip",
        encoding="utf-8",
    )

    return logger


def short_url(url: str) -> str:
    """截断 URL 用于日志输出"""
    if url is None:
        return ""
    return url if len(url) <= _MAX_URL_IN_LOG else url[:_MAX_URL_IN_LOG] + "..."


# 初始化日志
setup_logger()
