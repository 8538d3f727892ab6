"""新闻代理服务：转发 NewsAPI 请求（隐藏密钥、缓存、分页归一化），抓取并提取文章全文"""
import asyncio
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional
from urllib.parse import urlencode, urlsplit
import httpx
from globlit.config import settings, ALLOWED_CATEGORIES, ALLOWED_SORT_BY, DEFAULT_USER_AGENT
from globlit.exceptions import (
    ArticleTooLarge,
    InvalidInput,
    Misconfigured,
    Timeout,
    UpstreamAuth,
    UpstreamUnavailable,
)
from globlit.models.news import Article, ExtractedArticle, FeedPage, QueryKind, UpstreamQuery
from globlit.services.article_extractor import extract_article
from globlit.services.cache_service import MISS, TTLCache
from globlit.utils.http_client import HttpClient, ResponseTooLarge
from globlit.utils.logger import logger, short_url
from globlit.utils.url_guard import ensure_public_host, validate_article_url

# 每页条数上限：(默认值, 最大值)
TOP_PAGE_SIZE = (10, 50)
SEARCH_PAGE_SIZE = (20, 100)

# 全文缓存的键前缀，和列表缓存（键为上游 URL）区分开
FULL_ARTICLE_PREFIX = "full:"

# 聚合首页：每个分类取的条数；热门：每个分类取的条数与总条数上限
FEED_PAGE_SIZE = 6
HOT_PAGE_SIZE = 5
HOT_LIMIT = 12


def _to_int(value: Any, default: int) -> int:
    """把查询参数转成整数，无法转换或为 0 时用默认值"""
    try:
        n = int(value)
    except (TypeError, ValueError):
        return default
    return n or default


def clamp_page(page: Any) -> int:
    """页码最小为 1"""
    return max(1, _to_int(page, 1))


def clamp_page_size(page_size: Any, default: int, maximum: int) -> int:
    """每页条数限制在 [1, maximum]"""
    return min(maximum, max(1, _to_int(page_size, default)))


def _published_ts(article: Article) -> Optional[float]:
    if not article.publishedAt:
        return None
    try:
        return datetime.fromisoformat(article.publishedAt.replace("Z", "+00:00")).timestamp()
    except ValueError:
        return None


def dedupe_articles(articles: Iterable[Article]) -> List[Article]:
    """按 url 去重，保留第一次出现的，没有 url 的丢弃"""
    seen = set()
    out = []
    for a in articles:
        if not a.url or a.url in seen:
            continue
        seen.add(a.url)
        out.append(a)
    return out


def sort_by_published(articles: List[Article]) -> List[Article]:
    """按发布时间倒序，没有时间的排最后"""
    def key(a: Article):
        ts = _published_ts(a)
        return (ts is None, -(ts or 0.0))
    return sorted(articles, key=key)


class NewsService:
    """新闻代理服务（缓存和 HTTP 客户端由外部注入）"""

    def __init__(
        self,
        cache: TTLCache,
        http_client: HttpClient,
        api_key: Optional[str] = None,
        base_url: str = "https://newsapi.org/v2",
        feed_cache_ttl: float = 30,
        article_cache_ttl: float = 86400,
        article_timeout: float = 10.0,
        article_max_bytes: int = 1024 * 1024,
        user_agent: str = DEFAULT_USER_AGENT,
        accept_language: str = "en-US,en;q=0.9",
        resolve_hosts: bool = True,
    ):
        """
        初始化新闻代理服务

        Args:
            cache: 进程内 TTL 缓存
            http_client: HTTP 客户端
            api_key: NewsAPI 密钥，为空时所有操作返回配置错误
            base_url: NewsAPI 基础地址
            feed_cache_ttl: 列表缓存时间（秒）
            article_cache_ttl: 全文缓存时间（秒）
            article_timeout: 全文抓取总超时（秒）
            article_max_bytes: 全文页面声明长度上限（字节）
            user_agent: 抓取全文使用的 User-Agent
            accept_language: 抓取全文使用的 Accept-Language
            resolve_hosts: 是否解析域名并拒绝解析到内网的主机
        """
        self.cache = cache
        self.http = http_client
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.feed_cache_ttl = feed_cache_ttl
        self.article_cache_ttl = article_cache_ttl
        self.article_timeout = article_timeout
        self.article_max_bytes = article_max_bytes
        self.user_agent = user_agent
        self.accept_language = accept_language
        self.resolve_hosts = resolve_hosts

    @classmethod
    def from_settings(
        cls,
        cache: TTLCache,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "NewsService":
        """按全局配置创建服务"""
        return cls(
            cache=cache,
            http_client=HttpClient(timeout=settings.news_api_timeout, transport=transport),
            api_key=settings.news_api_key,
            base_url=settings.news_api_base_url,
            feed_cache_ttl=settings.feed_cache_ttl,
            article_cache_ttl=settings.article_cache_ttl,
            article_timeout=settings.article_fetch_timeout,
            article_max_bytes=settings.article_max_bytes,
            user_agent=settings.article_user_agent,
            accept_language=settings.article_accept_language,
            resolve_hosts=settings.article_resolve_hosts,
        )

    async def close(self):
        """关闭 HTTP 客户端并清空缓存"""
        await self.http.close()
        self.cache.close()

    def _require_api_key(self):
        if not self.api_key:
            logger.error("NEWS_API_KEY 未配置，新闻代理不可用")
            raise Misconfigured()

    # ------------------------------------------------------------------
    # 查询归一化
    # ------------------------------------------------------------------

    def build_top_query(
        self,
        country: Optional[str] = "us",
        category: Optional[str] = "general",
        page: Any = 1,
        page_size: Any = TOP_PAGE_SIZE[0],
    ) -> UpstreamQuery:
        """校验分类并归一化头条查询"""
        category = category or "general"
        if category not in ALLOWED_CATEGORIES:
            raise InvalidInput("Invalid category")
        return UpstreamQuery(
            kind=QueryKind.TOP,
            country=(country or "us").lower(),
            category=category,
            page=clamp_page(page),
            page_size=clamp_page_size(page_size, *TOP_PAGE_SIZE),
        )

    def build_search_query(
        self,
        query: Optional[str],
        sort_by: Optional[str] = "publishedAt",
        page: Any = 1,
        page_size: Any = SEARCH_PAGE_SIZE[0],
        language: Optional[str] = "en",
    ) -> UpstreamQuery:
        """校验查询词与排序方式并归一化搜索查询"""
        if not query or not query.strip():
            raise InvalidInput("Missing query")
        sort_by = sort_by or "publishedAt"
        if sort_by not in ALLOWED_SORT_BY:
            raise InvalidInput("Invalid sortBy")
        return UpstreamQuery(
            kind=QueryKind.SEARCH,
            query=query.strip(),
            sort_by=sort_by,
            language=(language or "en").lower(),
            page=clamp_page(page),
            page_size=clamp_page_size(page_size, *SEARCH_PAGE_SIZE),
        )

    def upstream_url(self, q: UpstreamQuery) -> str:
        """拼出完整的上游 URL（也是缓存键），参数顺序固定"""
        if q.kind == QueryKind.TOP:
            path = "/top-headlines"
            params = [
                ("country", q.country),
                ("category", q.category),
                ("pageSize", q.page_size),
                ("page", q.page),
            ]
        else:
            path = "/everything"
            params = [
                ("q", q.query),
                ("language", q.language),
                ("sortBy", q.sort_by),
                ("pageSize", q.page_size),
                ("page", q.page),
            ]
        return f"{self.base_url}{path}?{urlencode(params)}"

    # ------------------------------------------------------------------
    # 列表接口
    # ------------------------------------------------------------------

    async def _proxy_fetch(self, url: str, failure_message: str) -> Dict[str, Any]:
        """先查缓存，未命中时带密钥请求上游并缓存原始响应"""
        cached = self.cache.get(url)
        if cached is not MISS:
            logger.info(f"新闻代理缓存命中: {short_url(url)}")
            return cached

        logger.info(f"新闻代理请求上游: {short_url(url)}")
        try:
            data = await self.http.get_json(url, headers={"X-Api-Key": self.api_key})
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 401:
                logger.error("NewsAPI 鉴权失败，请检查 NEWS_API_KEY")
                raise UpstreamAuth()
            logger.error(f"NewsAPI 返回错误状态: {e.response.status_code}")
            raise UpstreamUnavailable(failure_message)
        except httpx.RequestError as e:
            logger.error(f"NewsAPI 请求失败: {type(e).__name__}: {e}")
            raise UpstreamUnavailable(failure_message)
        except ValueError as e:
            logger.error(f"NewsAPI 响应不是合法 JSON: {e}")
            raise UpstreamUnavailable(failure_message)

        if not isinstance(data, dict):
            logger.error(f"NewsAPI 响应格式异常: {type(data).__name__}")
            raise UpstreamUnavailable(failure_message)

        self.cache.set(url, data, self.feed_cache_ttl)
        return data

    @staticmethod
    def _to_page(data: Dict[str, Any], q: UpstreamQuery) -> FeedPage:
        articles = [Article.model_validate(a) for a in (data.get("articles") or []) if isinstance(a, dict)]
        return FeedPage(
            articles=articles,
            totalResults=_to_int(data.get("totalResults"), 0),
            page=q.page,
            pageSize=q.page_size,
        )

    async def fetch_top(
        self,
        country: Optional[str] = "us",
        category: Optional[str] = "general",
        page: Any = 1,
        page_size: Any = TOP_PAGE_SIZE[0],
    ) -> FeedPage:
        """
        获取头条新闻

        Args:
            country: 国家代码
            category: 分类，必须在白名单内
            page: 页码
            page_size: 每页条数（最大 50）

        Returns:
            分页新闻列表
        """
        self._require_api_key()
        q = self.build_top_query(country, category, page, page_size)
        data = await self._proxy_fetch(self.upstream_url(q), "Failed to fetch news")
        return self._to_page(data, q)

    async def fetch_search(
        self,
        query: Optional[str],
        sort_by: Optional[str] = "publishedAt",
        page: Any = 1,
        page_size: Any = SEARCH_PAGE_SIZE[0],
        language: Optional[str] = "en",
    ) -> FeedPage:
        """
        关键词搜索新闻

        Args:
            query: 查询词，必填
            sort_by: relevancy | popularity | publishedAt
            page: 页码
            page_size: 每页条数（最大 100）
            language: 语言

        Returns:
            分页新闻列表
        """
        self._require_api_key()
        q = self.build_search_query(query, sort_by, page, page_size, language)
        data = await self._proxy_fetch(self.upstream_url(q), "Failed to search news")
        return self._to_page(data, q)

    async def fetch_feed(
        self,
        country: Optional[str] = "us",
        page_size: Any = FEED_PAGE_SIZE,
        require_image: bool = False,
        limit: Optional[int] = None,
    ) -> FeedPage:
        """
        聚合所有分类的头条：并发拉取，按 url 去重，按发布时间倒序

        只在本次结果内去重，不同请求之间的分页结果不做去重。
        任一分类失败则整体失败。

        Args:
            country: 国家代码
            page_size: 每个分类取的条数
            require_image: 只保留同时有标题和配图的文章
            limit: 返回条数上限
        """
        self._require_api_key()
        pages = await asyncio.gather(*(
            self.fetch_top(country, category, 1, page_size) for category in ALLOWED_CATEGORIES
        ))
        articles = dedupe_articles(a for p in pages for a in p.articles)
        if require_image:
            articles = [a for a in articles if a.title and a.urlToImage]
        articles = sort_by_published(articles)
        if limit is not None:
            articles = articles[:limit]
        return FeedPage(articles=articles, totalResults=len(articles), page=1, pageSize=len(articles))

    async def fetch_hot(self, country: Optional[str] = "us") -> FeedPage:
        """热门新闻：各分类头条中带配图的前 12 条"""
        return await self.fetch_feed(country, HOT_PAGE_SIZE, require_image=True, limit=HOT_LIMIT)

    # ------------------------------------------------------------------
    # 全文接口
    # ------------------------------------------------------------------

    async def _check_redirect(self, url: str) -> None:
        hostname = urlsplit(validate_article_url(url)).hostname
        if self.resolve_hosts:
            await ensure_public_host(hostname)

    async def _download(self, url: str) -> str:
        if self.resolve_hosts:
            await ensure_public_host(urlsplit(url).hostname)
        return await self.http.fetch_html(
            url,
            headers={"User-Agent": self.user_agent, "Accept-Language": self.accept_language},
            max_bytes=self.article_max_bytes,
            check_redirect=self._check_redirect,
        )

    async def fetch_full_article(self, url: Optional[str]) -> ExtractedArticle:
        """
        抓取文章页面，提取正文并清洗

        Args:
            url: 文章地址（仅限公网 http/https）

        Returns:
            提取结果，按 URL 缓存 24 小时

        Raises:
            Misconfigured: 未配置密钥
            InvalidInput: URL 缺失/非法，或页面声明长度超限
            Forbidden: 本机/内网地址
            Timeout: 超过抓取总时限
            UpstreamUnavailable: 页面返回错误状态或网络错误
            ExtractionFailed: 没有可读正文
        """
        self._require_api_key()
        url = validate_article_url(url)

        cache_key = f"{FULL_ARTICLE_PREFIX}{url}"
        cached = self.cache.get(cache_key)
        if cached is not MISS:
            logger.info(f"全文缓存命中: {short_url(url)}")
            return cached

        try:
            html = await asyncio.wait_for(self._download(url), timeout=self.article_timeout)
        except (asyncio.TimeoutError, httpx.TimeoutException):
            logger.warning(f"全文抓取超时: {short_url(url)}")
            raise Timeout()
        except ResponseTooLarge as e:
            logger.warning(f"文章过大: {short_url(url)}, content-length={e.declared}")
            raise ArticleTooLarge()
        except httpx.HTTPStatusError as e:
            logger.warning(f"全文抓取失败: {short_url(url)}, status={e.response.status_code}")
            raise UpstreamUnavailable("Failed to fetch article")
        except httpx.RequestError as e:
            logger.warning(f"全文抓取失败: {short_url(url)}, {type(e).__name__}: {e}")
            raise UpstreamUnavailable("Failed to fetch article")

        # readability 和 bleach 都是同步计算，放到线程里避免阻塞事件循环
        article = await asyncio.to_thread(extract_article, html, url)
        logger.info(f"全文提取完成: {short_url(url)}, length={article.length}")
        self.cache.set(cache_key, article, self.article_cache_ttl)
        return article
