"""新闻代理 API 路由"""
from typing import Dict, Optional, Type
from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse
from globlit.dependencies import get_news_service
from globlit.exceptions import (
    ArticleTooLarge,
    ExtractionFailed,
    Forbidden,
    InvalidInput,
    Misconfigured,
    NewsProxyError,
    Timeout,
    UpstreamAuth,
    UpstreamUnavailable,
)
from globlit.models.common import ErrorResponse
from globlit.models.news import ExtractedArticle, FeedPage
from globlit.services.news_service import NewsService
from globlit.utils.logger import logger

router = APIRouter()

# 异常类型 -> HTTP 状态码（子类写在父类前面）
ERROR_STATUS: Dict[Type[NewsProxyError], int] = {
    ArticleTooLarge: 400,
    InvalidInput: 400,
    Forbidden: 400,
    Misconfigured: 500,
    UpstreamAuth: 502,
    UpstreamUnavailable: 502,
    Timeout: 504,
    ExtractionFailed: 422,
}

_ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    422: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
    502: {"model": ErrorResponse},
    504: {"model": ErrorResponse},
}


def status_for(exc: NewsProxyError) -> int:
    """查找异常对应的 HTTP 状态码，未登记的按 502 处理"""
    for exc_type, status in ERROR_STATUS.items():
        if isinstance(exc, exc_type):
            return status
    return 502


async def news_error_handler(request: Request, exc: NewsProxyError) -> JSONResponse:
    """新闻代理异常统一转成 {error: ...}"""
    status = status_for(exc)
    logger.warning(f"{request.url.path} 失败: {type(exc).__name__} -> {status}")
    return JSONResponse(status_code=status, content=ErrorResponse(error=exc.message).model_dump())


@router.get("/top", response_model=FeedPage, responses=_ERROR_RESPONSES)
async def top_headlines(
    country: Optional[str] = Query(default="us", description="国家代码"),
    category: Optional[str] = Query(default="general", description="分类：general | business | entertainment | health | science | sports | technology"),
    pageSize: Optional[str] = Query(default=None, description="每页条数，最大 50"),
    page: Optional[str] = Query(default=None, description="页码，从 1 开始"),
    service: NewsService = Depends(get_news_service),
):
    """头条新闻（按国家、分类）"""
    return await service.fetch_top(country, category, page, pageSize)


@router.get("/search", response_model=FeedPage, responses=_ERROR_RESPONSES)
async def search_news(
    q: Optional[str] = Query(default=None, description="查询词（必填）"),
    sortBy: Optional[str] = Query(default="publishedAt", description="排序：relevancy | popularity | publishedAt"),
    language: Optional[str] = Query(default="en", description="语言"),
    pageSize: Optional[str] = Query(default=None, description="每页条数，最大 100"),
    page: Optional[str] = Query(default=None, description="页码，从 1 开始"),
    service: NewsService = Depends(get_news_service),
):
    """关键词搜索新闻"""
    logger.info(f"news/search 请求: q={(q or '')[:100]}, sortBy={sortBy}, pageSize={pageSize}, page={page}")
    return await service.fetch_search(q, sortBy, page, pageSize, language)


@router.get("/feed", response_model=FeedPage, responses=_ERROR_RESPONSES)
async def merged_feed(
    country: Optional[str] = Query(default="us", description="国家代码"),
    pageSize: Optional[str] = Query(default=None, description="每个分类取的条数"),
    service: NewsService = Depends(get_news_service),
):
    """聚合所有分类的头条（去重，按发布时间倒序）"""
    if pageSize is None:
        return await service.fetch_feed(country)
    return await service.fetch_feed(country, pageSize)


@router.get("/hot", response_model=FeedPage, responses=_ERROR_RESPONSES)
async def hot_news(
    country: Optional[str] = Query(default="us", description="国家代码"),
    service: NewsService = Depends(get_news_service),
):
    """热门新闻（带配图，最多 12 条）"""
    return await service.fetch_hot(country)


@router.get("/full", response_model=ExtractedArticle, responses=_ERROR_RESPONSES)
async def full_article(
    url: Optional[str] = Query(default=None, description="文章地址"),
    service: NewsService = Depends(get_news_service),
):
    """抓取文章全文，返回清洗后的 HTML"""
    logger.info(f"news/full 请求: url={(url or '')[:200]}")
    return await service.fetch_full_article(url)
