"""新闻代理异常定义（与传输层无关，HTTP 状态码映射在路由层完成）"""


class NewsProxyError(Exception):
    """新闻代理异常基类，message 为可以直接返回给调用方的安全文案"""

    default_message = "News proxy error"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidInput(NewsProxyError):
    """调用方参数错误：分类不合法、缺少查询词、URL 无法解析等"""

    default_message = "Invalid input"


class ArticleTooLarge(InvalidInput):
    """文章声明的 Content-Length 超过上限"""

    default_message = "Article too large"


class Forbidden(NewsProxyError):
    """目标主机为本机/内网地址，拒绝抓取"""

    default_message = "Refusing to fetch local/private address"


class Misconfigured(NewsProxyError):
    """服务端缺少必要配置"""

    default_message = "Server misconfiguration"


class UpstreamAuth(NewsProxyError):
    """上游拒绝了 API 密钥（401）"""

    default_message = "News API authentication failed"


class UpstreamUnavailable(NewsProxyError):
    """上游非 2xx 或网络错误"""

    default_message = "Failed to fetch news"


class Timeout(NewsProxyError):
    """抓取超时"""

    default_message = "Timeout fetching article"


class ExtractionFailed(NewsProxyError):
    """页面中未能提取出正文"""

    default_message = "Unable to extract article content"
