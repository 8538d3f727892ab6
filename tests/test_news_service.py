import asyncio
import time
from urllib.parse import parse_qs, urlsplit
from unittest.mock import patch

import httpx
import pytest

from globlit.config import DEFAULT_USER_AGENT
from globlit.exceptions import (
    ArticleTooLarge,
    ExtractionFailed,
    Forbidden,
    InvalidInput,
    Misconfigured,
    Timeout,
    UpstreamAuth,
    UpstreamUnavailable,
)
from globlit.services.cache_service import MISS
from globlit.services.news_service import FULL_ARTICLE_PREFIX, clamp_page, clamp_page_size, dedupe_articles, sort_by_published
from globlit.models.news import Article
from globlit.services.article_extractor import extract_article

from conftest import ARTICLE_HTML, TEST_API_KEY, json_response, newsapi_body, sample_articles


def _params(request: httpx.Request):
    return {k: v[0] for k, v in parse_qs(urlsplit(str(request.url)).query).items()}


def ok_handler(request):
    return json_response(newsapi_body())


class TestFetchTop:
    async def test_cache_hit_suppresses_second_upstream_call(self, make_service):
        service, recorder = make_service(ok_handler)

        first = await service.fetch_top("us", "business", 1, 10)
        second = await service.fetch_top("us", "business", 1, 10)

        assert recorder.calls == 1
        assert first.model_dump_json() == second.model_dump_json()

    async def test_distinct_parameters_use_distinct_cache_keys(self, make_service):
        service, recorder = make_service(ok_handler)

        await service.fetch_top("us", "business", 1, 10)
        await service.fetch_top("us", "business", 2, 10)
        await service.fetch_top("gb", "business", 1, 10)
        await service.fetch_top("us", "sports", 1, 10)

        assert recorder.calls == 4

    async def test_cache_expires_after_ttl(self, make_service, clock):
        service, recorder = make_service(ok_handler)

        await service.fetch_top("us", "science")
        clock.advance(29)
        await service.fetch_top("us", "science")
        assert recorder.calls == 1

        clock.advance(2)
        await service.fetch_top("us", "science")
        assert recorder.calls == 2

    async def test_invalid_category_makes_no_network_call(self, make_service):
        service, recorder = make_service(ok_handler)

        with pytest.raises(InvalidInput) as exc:
            await service.fetch_top("us", "politics")

        assert exc.value.message == "Invalid category"
        assert recorder.calls == 0

    async def test_page_size_is_clamped_to_50(self, make_service):
        service, recorder = make_service(ok_handler)

        page = await service.fetch_top("us", "general", 1, 999)

        assert page.pageSize == 50
        assert _params(recorder.requests[0])["pageSize"] == "50"

    async def test_page_is_at_least_one(self, make_service):
        service, recorder = make_service(ok_handler)

        page = await service.fetch_top("us", "general", -3, "abc")

        assert page.page == 1
        assert page.pageSize == 10
        assert _params(recorder.requests[0])["page"] == "1"

    async def test_api_key_is_sent_as_header_and_not_returned(self, make_service):
        service, recorder = make_service(ok_handler)

        page = await service.fetch_top("us", "health")

        request = recorder.requests[0]
        assert request.headers["X-Api-Key"] == TEST_API_KEY
        assert TEST_API_KEY not in str(request.url)
        assert TEST_API_KEY not in page.model_dump_json()

    async def test_response_only_contains_declared_fields(self, make_service):
        service, _ = make_service(ok_handler)

        page = await service.fetch_top("us", "health")
        data = page.model_dump()

        assert set(data) == {"articles", "totalResults", "page", "pageSize"}
        assert set(data["articles"][0]) == {
            "title", "description", "url", "urlToImage", "publishedAt", "source", "content",
        }
        assert data["articles"][0]["source"] == {"name": "Example Times"}
        assert data["totalResults"] == 2

    async def test_missing_articles_field(self, make_service):
        service, _ = make_service(lambda r: json_response({"status": "ok"}))

        page = await service.fetch_top("us", "general")

        assert page.articles == []
        assert page.totalResults == 0

    async def test_401_is_upstream_auth(self, make_service):
        service, _ = make_service(lambda r: json_response({"status": "error", "code": "apiKeyInvalid"}, 401))

        with pytest.raises(UpstreamAuth):
            await service.fetch_top("us", "general")

    @pytest.mark.parametrize("status", [400, 429, 500, 503])
    async def test_other_errors_are_upstream_unavailable(self, make_service, status):
        service, _ = make_service(lambda r: json_response({"status": "error"}, status))

        with pytest.raises(UpstreamUnavailable) as exc:
            await service.fetch_top("us", "general")
        assert exc.value.message == "Failed to fetch news"

    async def test_network_error_is_upstream_unavailable(self, make_service):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        service, _ = make_service(handler)

        with pytest.raises(UpstreamUnavailable):
            await service.fetch_top("us", "general")

    async def test_invalid_json_is_upstream_unavailable(self, make_service):
        service, _ = make_service(lambda r: httpx.Response(200, content=b"<html>oops</html>"))

        with pytest.raises(UpstreamUnavailable):
            await service.fetch_top("us", "general")

    async def test_failures_are_not_cached(self, make_service):
        responses = [json_response({}, 500), json_response(newsapi_body())]
        service, recorder = make_service(lambda r: responses.pop(0))

        with pytest.raises(UpstreamUnavailable):
            await service.fetch_top("us", "general")
        page = await service.fetch_top("us", "general")

        assert recorder.calls == 2
        assert len(page.articles) == 2


class TestFetchSearch:
    async def test_page_size_is_clamped_to_100(self, make_service):
        service, recorder = make_service(ok_handler)

        page = await service.fetch_search("climate", page_size=500)

        assert page.pageSize == 100
        params = _params(recorder.requests[0])
        assert params["pageSize"] == "100"
        assert params["q"] == "climate"
        assert params["sortBy"] == "publishedAt"
        assert params["language"] == "en"

    async def test_query_is_url_encoded(self, make_service):
        service, recorder = make_service(ok_handler)

        await service.fetch_search("rock & roll", sort_by="relevancy")

        assert "rock+%26+roll" in str(recorder.requests[0].url)
        assert _params(recorder.requests[0])["q"] == "rock & roll"

    @pytest.mark.parametrize("query", [None, "", "   "])
    async def test_missing_query(self, make_service, query):
        service, recorder = make_service(ok_handler)

        with pytest.raises(InvalidInput) as exc:
            await service.fetch_search(query)

        assert exc.value.message == "Missing query"
        assert recorder.calls == 0

    async def test_invalid_sort(self, make_service):
        service, recorder = make_service(ok_handler)

        with pytest.raises(InvalidInput):
            await service.fetch_search("x", sort_by="random")
        assert recorder.calls == 0

    async def test_search_error_message(self, make_service):
        service, _ = make_service(lambda r: json_response({}, 502))

        with pytest.raises(UpstreamUnavailable) as exc:
            await service.fetch_search("x")
        assert exc.value.message == "Failed to search news"

    async def test_search_and_top_caches_do_not_collide(self, make_service):
        service, recorder = make_service(ok_handler)

        await service.fetch_top("us", "general")
        await service.fetch_search("general")

        assert recorder.calls == 2


class TestMissingApiKey:
    async def test_every_operation_fails_fast(self, make_service):
        service, recorder = make_service(ok_handler, api_key=None)

        with pytest.raises(Misconfigured):
            await service.fetch_top("us", "general")
        with pytest.raises(Misconfigured):
            await service.fetch_search("x")
        with pytest.raises(Misconfigured):
            await service.fetch_full_article("https://news.example.com/story")
        with pytest.raises(Misconfigured):
            await service.fetch_feed("us")

        assert recorder.calls == 0

    async def test_message_does_not_name_the_credential(self, make_service):
        service, _ = make_service(ok_handler, api_key="")

        with pytest.raises(Misconfigured) as exc:
            await service.fetch_top("us", "general")
        assert "KEY" not in exc.value.message.upper()


class TestFetchFeed:
    async def test_merges_dedupes_and_sorts(self, make_service):
        def handler(request):
            category = _params(request)["category"]
            articles = sample_articles(category, 2, published=f"2024-05-0{1 + len(category) % 8}T10:00:00Z")
            # 每个分类都带上同一篇文章
            articles.append({
                "title": "Shared",
                "url": "https://news.example.com/shared",
                "publishedAt": "2024-01-01T00:00:00Z",
                "source": {"name": "Wire"},
            })
            return json_response(newsapi_body(articles))

        service, recorder = make_service(handler)

        page = await service.fetch_feed("us", 2)

        assert recorder.calls == 7
        urls = [a.url for a in page.articles]
        assert urls.count("https://news.example.com/shared") == 1
        assert len(urls) == 7 * 2 + 1
        assert page.totalResults == len(urls)
        dates = [a.publishedAt for a in page.articles]
        assert dates == sorted(dates, reverse=True)

    async def test_hot_requires_image_and_caps_at_12(self, make_service):
        def handler(request):
            category = _params(request)["category"]
            articles = sample_articles(category, 3)
            articles.append({"title": "No image", "url": f"https://news.example.com/{category}/noimg"})
            return json_response(newsapi_body(articles))

        service, _ = make_service(handler)

        page = await service.fetch_hot("us")

        assert len(page.articles) == 12
        assert all(a.urlToImage and a.title for a in page.articles)

    async def test_one_failing_category_fails_the_feed(self, make_service):
        def handler(request):
            if _params(request)["category"] == "sports":
                return json_response({}, 500)
            return json_response(newsapi_body())

        service, _ = make_service(handler)

        with pytest.raises(UpstreamUnavailable):
            await service.fetch_feed("us")


class TestFetchFullArticle:
    @pytest.mark.parametrize("url", ["http://127.0.0.1/x", "http://192.168.1.5/x", "http://localhost/x"])
    async def test_private_targets_make_no_network_call(self, make_service, url):
        service, recorder = make_service(ok_handler)

        with pytest.raises(Forbidden):
            await service.fetch_full_article(url)
        assert recorder.calls == 0

    @pytest.mark.parametrize("url", [None, "", "nota url", "ftp://example.com/a"])
    async def test_bad_urls_are_invalid_input(self, make_service, url):
        service, recorder = make_service(ok_handler)

        with pytest.raises(InvalidInput):
            await service.fetch_full_article(url)
        assert recorder.calls == 0

    async def test_extracts_and_caches_for_a_day(self, make_service, clock):
        service, recorder = make_service(lambda r: httpx.Response(200, text=ARTICLE_HTML))
        url = "https://news.example.com/story"

        first = await service.fetch_full_article(url)
        second = await service.fetch_full_article(url)

        assert recorder.calls == 1
        assert first == second
        assert "twelve million dollars" in first.content
        assert set(first.model_dump()) == {"title", "byline", "content", "excerpt", "length"}
        assert service.cache.get(FULL_ARTICLE_PREFIX + url) == first
        # 全文缓存与列表缓存使用不同的键
        assert service.cache.get(url) is MISS

        clock.advance(86400)
        await service.fetch_full_article(url)
        assert recorder.calls == 2

    async def test_request_headers(self, make_service):
        service, recorder = make_service(lambda r: httpx.Response(200, text=ARTICLE_HTML))

        await service.fetch_full_article("https://news.example.com/story")

        request = recorder.requests[0]
        assert request.headers["User-Agent"] == DEFAULT_USER_AGENT
        assert "X-Api-Key" not in request.headers

    async def test_extraction_does_not_block_other_requests(self, make_service):
        service, _ = make_service(lambda r: httpx.Response(200, text=ARTICLE_HTML))

        def slow_extract(html, url):
            time.sleep(0.5)
            return extract_article(html, url)

        ticks = []

        async def ticker():
            while True:
                ticks.append(time.monotonic())
                await asyncio.sleep(0.005)

        with patch("globlit.services.news_service.extract_article", side_effect=slow_extract):
            task = asyncio.create_task(ticker())
            article = await service.fetch_full_article("https://news.example.com/story")
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        assert "twelve million dollars" in article.content
        assert len(ticks) > 10
        assert max(b - a for a, b in zip(ticks, ticks[1:])) < 0.2

    async def test_slow_response_times_out(self, make_service):
        async def handler(request):
            await asyncio.sleep(5)
            return httpx.Response(200, text=ARTICLE_HTML)

        service, _ = make_service(handler, article_timeout=0.05)

        with pytest.raises(Timeout):
            await service.fetch_full_article("https://slow.example.com/story")

    async def test_transport_timeout_is_timeout(self, make_service):
        def handler(request):
            raise httpx.ReadTimeout("read timed out", request=request)

        service, _ = make_service(handler)

        with pytest.raises(Timeout):
            await service.fetch_full_article("https://slow.example.com/story")

    async def test_declared_content_length_over_limit(self, make_service):
        def handler(request):
            return httpx.Response(200, headers={"content-length": str(2 * 1024 * 1024)}, content=b"<html></html>")

        service, _ = make_service(handler)

        with pytest.raises(ArticleTooLarge):
            await service.fetch_full_article("https://big.example.com/story")

    async def test_error_status_is_upstream_unavailable(self, make_service):
        service, _ = make_service(lambda r: httpx.Response(404, text="not found"))

        with pytest.raises(UpstreamUnavailable) as exc:
            await service.fetch_full_article("https://news.example.com/missing")
        assert exc.value.message == "Failed to fetch article"

    async def test_page_without_content_fails_extraction(self, make_service):
        service, recorder = make_service(
            lambda r: httpx.Response(200, text="<html><body><script>x()</script></body></html>")
        )
        url = "https://news.example.com/empty"

        with pytest.raises(ExtractionFailed):
            await service.fetch_full_article(url)
        assert service.cache.get(FULL_ARTICLE_PREFIX + url) is MISS

    async def test_redirect_to_private_address_is_forbidden(self, make_service):
        def handler(request):
            if request.url.host == "news.example.com":
                return httpx.Response(302, headers={"location": "http://169.254.169.254/latest/meta-data"})
            return httpx.Response(200, text=ARTICLE_HTML)

        service, recorder = make_service(handler)

        with pytest.raises(Forbidden):
            await service.fetch_full_article("https://news.example.com/story")
        assert [r.url.host for r in recorder.requests] == ["news.example.com"]

    async def test_public_redirect_is_followed(self, make_service):
        def handler(request):
            if request.url.path == "/old":
                return httpx.Response(301, headers={"location": "/story"})
            return httpx.Response(200, text=ARTICLE_HTML)

        service, recorder = make_service(handler)

        article = await service.fetch_full_article("https://news.example.com/old")

        assert recorder.calls == 2
        assert "twelve million dollars" in article.content


class TestHelpers:
    def test_clamp_page(self):
        assert clamp_page(None) == 1
        assert clamp_page("0") == 1
        assert clamp_page("-2") == 1
        assert clamp_page("7") == 7

    def test_clamp_page_size(self):
        assert clamp_page_size(None, 10, 50) == 10
        assert clamp_page_size("0", 10, 50) == 10
        assert clamp_page_size("-5", 10, 50) == 1
        assert clamp_page_size("999", 10, 50) == 50
        assert clamp_page_size(500, 20, 100) == 100

    def test_dedupe_keeps_first_and_drops_missing_url(self):
        articles = [
            Article(title="a", url="https://x/1"),
            Article(title="b", url="https://x/1"),
            Article(title="c"),
            Article(title="d", url="https://x/2"),
        ]
        assert [a.title for a in dedupe_articles(articles)] == ["a", "d"]

    def test_sort_puts_missing_dates_last(self):
        articles = [
            Article(title="none"),
            Article(title="old", publishedAt="2023-01-01T00:00:00Z"),
            Article(title="new", publishedAt="2024-01-01T00:00:00Z"),
            Article(title="bad", publishedAt="yesterday"),
        ]
        assert [a.title for a in sort_by_published(articles)] == ["new", "old", "none", "bad"]
