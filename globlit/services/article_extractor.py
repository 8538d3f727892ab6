"""正文提取：用 readability 从整页 HTML 中找出正文块，去掉导航、广告、脚本"""
import re
from typing import Optional
from lxml import etree
import lxml.html
from readability import Document
from globlit.exceptions import ExtractionFailed
from globlit.models.news import ExtractedArticle
from globlit.services.sanitizer import sanitize_html
from globlit.utils.logger import logger, short_url

_MAX_BYLINE = 200
_MAX_EXCERPT = 500

# 先编码成字节再解析：str 带 <?xml encoding=...?> 声明时 lxml 会拒绝解析
_PAGE_PARSER = lxml.html.HTMLParser(encoding="utf-8")

# 作者信息常见的 meta 标签
_BYLINE_META_XPATHS = (
    '//meta[@name="author"]/@content',
    '//meta[@property="article:author"]/@content',
    '//meta[@name="byl"]/@content',
    '//meta[@name="sailthru.author"]/@content',
    '//meta[@name="parsely-author"]/@content',
)
# 作者信息常见的页面元素
_BYLINE_NODE_XPATHS = (
    '//*[@rel="author"]',
    '//*[@itemprop="author"]',
    '//*[contains(concat(" ", normalize-space(@class), " "), " byline ")]',
    '//*[contains(concat(" ", normalize-space(@class), " "), " author ")]',
)
_EXCERPT_META_XPATHS = (
    '//meta[@name="description"]/@content',
    '//meta[@property="og:description"]/@content',
    '//meta[@name="twitter:description"]/@content',
)


def _clean(s: Optional[str]) -> str:
    if not s:
        return ""
    return re.sub(r"\s+", " ", s).strip()


def _first(doc, xpaths, limit: int) -> str:
    for xp in xpaths:
        for value in doc.xpath(xp):
            if isinstance(value, str):
                text = _clean(value)
            else:
                text = _clean(value.get("content") or value.text_content())
            # article:author 经常是作者主页链接，不是名字
            if text and not text.startswith(("http://", "https://")):
                return text[:limit]
    return ""


def _text_of(fragment: str) -> str:
    try:
        return lxml.html.fragment_fromstring(fragment, create_parent="div").text_content()
    except (etree.ParserError, ValueError):
        return ""


def _first_paragraph(fragment: str) -> str:
    try:
        root = lxml.html.fragment_fromstring(fragment, create_parent="div")
    except (etree.ParserError, ValueError):
        return ""
    for p in root.iter("p"):
        text = _clean(p.text_content())
        if text:
            return text[:_MAX_EXCERPT]
    return ""


def extract_article(html: str, url: Optional[str] = None) -> ExtractedArticle:
    """
    从整页 HTML 中提取正文并清洗

    Args:
        html: 页面 HTML
        url: 页面地址，用于把相对链接转成绝对链接

    Returns:
        提取结果（content 为清洗后的 HTML）

    Raises:
        ExtractionFailed: 页面无法解析或没有可读正文
    """
    if not html or not html.strip():
        raise ExtractionFailed()

    try:
        page = lxml.html.document_fromstring(html.encode("utf-8", "replace"), parser=_PAGE_PARSER)
        doc = Document(html, url=url)
        raw_content = doc.summary(html_partial=True)
        title = _clean(doc.short_title())
    except (etree.LxmlError, ValueError) as e:
        # readability 的 Unparseable 继承自 ValueError
        logger.warning(f"正文提取失败: {short_url(url)}, {e}")
        raise ExtractionFailed()

    content = sanitize_html(raw_content)
    text = _clean(_text_of(content)) if content else ""
    if not text:
        logger.info(f"页面没有可读正文: {short_url(url)}")
        raise ExtractionFailed()

    excerpt = _first(page, _EXCERPT_META_XPATHS, _MAX_EXCERPT) or _first_paragraph(content)
    byline = _first(page, _BYLINE_META_XPATHS, _MAX_BYLINE) or _first(page, _BYLINE_NODE_XPATHS, _MAX_BYLINE)

    return ExtractedArticle(
        title=title or excerpt,
        byline=byline,
        content=content,
        excerpt=excerpt,
        length=len(_text_of(content)),
    )
