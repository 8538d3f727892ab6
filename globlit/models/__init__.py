"""数据模型模块"""
from globlit.models.common import ErrorResponse, SuccessResponse
from globlit.models.news import Article, ArticleSource, ExtractedArticle, FeedPage, QueryKind, UpstreamQuery
from globlit.models.user import UserProfile, UsernameUpdate, UsernameUpdated

__all__ = [
    "ErrorResponse",
    "SuccessResponse",
    "Article",
    "ArticleSource",
    "ExtractedArticle",
    "FeedPage",
    "QueryKind",
    "UpstreamQuery",
    "UserProfile",
    "UsernameUpdate",
    "UsernameUpdated",
]
