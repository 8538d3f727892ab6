"""新闻代理 API 模型"""
from enum import Enum
from typing import Optional, List
from pydantic import BaseModel, ConfigDict


class QueryKind(str, Enum):
    """上游查询类型"""
    TOP = "top"
    SEARCH = "search"


class UpstreamQuery(BaseModel):
    """归一化后的上游查询（每次请求构造，不持久化）"""
    model_config = ConfigDict(frozen=True)
    kind: QueryKind
    country: Optional[str] = None
    category: Optional[str] = None
    query: Optional[str] = None
    sort_by: Optional[str] = None
    language: Optional[str] = None
    page: int = 1
    page_size: int = 10


class ArticleSource(BaseModel):
    """文章来源"""
    model_config = ConfigDict(extra="ignore")
    name: Optional[str] = None


class Article(BaseModel):
    """上游文章（只保留对外声明的字段）"""
    model_config = ConfigDict(extra="ignore")
    title: Optional[str] = None
    description: Optional[str] = None
    url: Optional[str] = None
    urlToImage: Optional[str] = None
    publishedAt: Optional[str] = None
    source: ArticleSource = ArticleSource()
    content: Optional[str] = None


class FeedPage(BaseModel):
    """分页新闻列表"""
    model_config = ConfigDict(frozen=True)
    articles: List[Article]
    totalResults: int
    page: int
    pageSize: int


class ExtractedArticle(BaseModel):
    """全文提取结果，content 为清洗后的 HTML"""
    model_config = ConfigDict(frozen=True)
    title: str = ""
    byline: str = ""
    content: str
    excerpt: str = ""
    length: int = 0
