import os

# 测试环境不写日志文件，不读本地 .env 中的密钥
os.environ.setdefault("LOG_TO_FILE", "false")
os.environ.setdefault("NEWS_API_KEY", "")

import json
import pytest
import httpx

from globlit.services.cache_service import TTLCache
from globlit.services.news_service import NewsService
from globlit.utils.http_client import HttpClient

TEST_API_KEY = "test-news-api-key"


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


def sample_articles(prefix: str = "a", count: int = 2, published: str = "2024-05-01T10:00:00Z"):
    return [
        {
            "source": {"id": None, "name": "Example Times"},
            "author": "Someone",
            "title": f"{prefix} headline {i}",
            "description": f"{prefix} description {i}",
            "url": f"https://news.example.com/{prefix}/{i}",
            "urlToImage": f"https://img.example.com/{prefix}/{i}.jpg",
            "publishedAt": published,
            "content": f"{prefix} content {i}",
        }
        for i in range(count)
    ]


def newsapi_body(articles=None, total: int = None):
    articles = sample_articles() if articles is None else articles
    return {"status": "ok", "totalResults": len(articles) if total is None else total, "articles": articles}


ARTICLE_HTML = """
<html>
<head>
  <title>City council approves new park budget | Daily News</title>
  <meta name="author" content="Jane Reporter">
  <meta name="description" content="The council voted to fund a new riverside park.">
  <script>window.tracker = 'tracking-code';</script>
  <style>.ad { color: red; }</style>
</head>
<body>
  <nav class="menu"><a href="/">Home</a> <a href="/politics">Politics</a></nav>
  <div class="sidebar">Subscribe to our newsletter for daily updates and offers.</div>
  <article class="post-content">
    <h1>City council approves new park budget</h1>
    <p>The city council on Tuesday approved a budget of twelve million dollars for a new riverside park,
       ending months of debate about how the land along the river should be used by residents and visitors.</p>
    <p>Supporters said the park will provide green space for families in the densely populated eastern
       districts, where residents currently have to travel across town to reach the nearest public garden.</p>
    <p>Critics argued that the money could have been spent on road repairs and public transport, and
       several members asked for an independent review of the projected maintenance costs over ten years.
       Read our <a href="/related" onclick="track()">related coverage</a> for the full timeline.</p>
    <p>Construction is expected to begin next spring and the first section of the park, including a
       playground and a walking path along the water, should open to the public within eighteen months.</p>
    <script>alert('inline');</script>
    <iframe src="https://ads.example.com/frame"></iframe>
  </article>
  <div class="footer">Copyright Daily News. All rights reserved.</div>
</body>
</html>
"""


class RecordingTransport:
    """按 URL 路径返回预设响应并记录所有请求"""

    def __init__(self, handler):
        self.handler = handler
        self.requests = []
        self.transport = httpx.MockTransport(self._handle)

    async def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        result = self.handler(request)
        if hasattr(result, "__await__"):
            result = await result
        return result

    @property
    def calls(self) -> int:
        return len(self.requests)


def json_response(body, status_code: int = 200) -> httpx.Response:
    return httpx.Response(status_code, content=json.dumps(body).encode(), headers={"content-type": "application/json"})


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_service(clock):
    def _make(handler, api_key=TEST_API_KEY, article_timeout=10.0, article_max_bytes=1024 * 1024):
        recorder = RecordingTransport(handler)
        service = NewsService(
            cache=TTLCache(clock=clock),
            http_client=HttpClient(timeout=5, transport=recorder.transport),
            api_key=api_key,
            base_url="https://newsapi.test/v2",
            article_timeout=article_timeout,
            article_max_bytes=article_max_bytes,
            resolve_hosts=False,
        )
        return service, recorder

    return _make
