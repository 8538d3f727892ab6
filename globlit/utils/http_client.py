"""HTTP客户端封装"""
from typing import Any, Awaitable, Callable, Dict, Optional
import httpx
from globlit.utils.logger import logger, short_url


class ResponseTooLarge(Exception):
    """响应声明的 Content-Length 超过上限"""

    def __init__(self, declared: int, limit: int):
        self.declared = declared
        self.limit = limit
        super().__init__(f"declared content-length {declared} exceeds {limit}")


class HttpClient:
    """异步HTTP客户端（不做重试，失败直接抛给调用方）"""

    def __init__(
        self,
        timeout: float = 10,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        初始化HTTP客户端

        Args:
            timeout: 请求超时时间（秒）
            transport: 自定义传输层（测试时注入 httpx.MockTransport）
        """
        self.timeout = timeout
        self.client = httpx.AsyncClient(
            timeout=timeout,
            follow_redirects=True,
            transport=transport,
        )

    async def close(self):
        """关闭客户端"""
        await self.client.aclose()

    async def get_json(
        self,
        url: str,
        headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        """
        发送GET请求并解析JSON

        Args:
            url: 完整URL（查询参数已编码在内）
            headers: 请求头

        Returns:
            JSON响应数据

        Raises:
            httpx.HTTPStatusError: 非 2xx 响应
            httpx.RequestError: 网络错误
        """
        logger.debug(f"GET请求: {short_url(url)}")
        response = await self.client.get(url, headers=headers)
        if response.is_error:
            # 只记录状态码和一小段响应体，避免把上游错误详情原样透出
            logger.error(f"HTTP状态错误: {response.status_code}, 响应: {response.text[:300]}")
        response.raise_for_status()
        return response.json()

    async def fetch_html(
        self,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        max_bytes: Optional[int] = None,
        check_redirect: Optional[Callable[[str], Awaitable[None]]] = None,
        max_redirects: int = 5,
    ) -> str:
        """
        流式抓取页面HTML

        先看响应头声明的 Content-Length，超过上限时不读取响应体。
        没有声明长度的响应不在这里拦截。
        重定向逐跳跟随，每一跳的目标先交给 check_redirect 校验。

        Args:
            url: 页面URL
            headers: 请求头
            max_bytes: 声明长度上限（字节）
            check_redirect: 重定向目标校验函数，校验不通过时抛异常
            max_redirects: 最多跟随的重定向次数

        Returns:
            解码后的HTML文本

        Raises:
            ResponseTooLarge: 声明长度超过上限
            httpx.HTTPStatusError: 非 2xx 响应
            httpx.TooManyRedirects: 重定向次数超限
            httpx.RequestError: 网络错误
        """
        for _ in range(max_redirects + 1):
            logger.debug(f"抓取页面: {short_url(url)}")
            async with self.client.stream("GET", url, headers=headers, follow_redirects=False) as response:
                if response.is_redirect and response.next_request is not None:
                    url = str(response.next_request.url)
                    if check_redirect is not None:
                        await check_redirect(url)
                    continue
                response.raise_for_status()
                declared = response.headers.get("content-length")
                if max_bytes is not None and declared and declared.isdigit() and int(declared) > max_bytes:
                    raise ResponseTooLarge(int(declared), max_bytes)
                await response.aread()
                return response.text
        raise httpx.TooManyRedirects(f"Exceeded {max_redirects} redirects", request=response.request)
