"""文章 HTML 清洗：白名单标签/属性，外链统一新窗口打开且不带 referrer/opener"""
from html import escape
import bleach
from bleach.html5lib_shim import Filter
from lxml import etree
import lxml.html

# 普通排版标签 + 图片
ALLOWED_TAGS = frozenset({
    "address", "article", "aside", "footer", "header",
    "h1", "h2", "h3", "h4", "h5", "h6", "hgroup", "main", "nav", "section",
    "blockquote", "dd", "div", "dl", "dt", "figcaption", "figure", "hr",
    "li", "ol", "p", "pre", "ul",
    "a", "abbr", "b", "bdi", "bdo", "br", "cite", "code", "data", "dfn",
    "em", "i", "kbd", "mark", "q", "rb", "rp", "rt", "rtc", "ruby", "s",
    "samp", "small", "span", "strong", "sub", "sup", "time", "u", "var", "wbr",
    "caption", "col", "colgroup", "table", "tbody", "td", "tfoot", "th", "thead", "tr",
    "img",
})

ALLOWED_ATTRIBUTES = {
    "a": ["href", "name", "target", "rel"],
    "img": ["src", "alt", "title"],
}

ALLOWED_PROTOCOLS = frozenset({"http", "https", "mailto"})

# 连同内容一起删除的标签（只去标签会把脚本源码当正文留下）
_DROP_WITH_CONTENT = (
    "script", "style", "noscript", "iframe", "frame", "frameset", "object",
    "embed", "applet", "template", "textarea", "select", "button", "form", "svg", "math",
)


class ExternalLinkFilter(Filter):
    """所有 <a> 强制 target=_blank 与 rel=noopener noreferrer"""

    def __iter__(self):
        for token in super().__iter__():
            if token["type"] in ("StartTag", "EmptyTag") and token["name"] == "a":
                attrs = dict(token.get("data") or {})
                attrs[(None, "target")] = "_blank"
                attrs[(None, "rel")] = "noopener noreferrer"
                token["data"] = attrs
            yield token


_cleaner = bleach.sanitizer.Cleaner(
    tags=ALLOWED_TAGS,
    attributes=ALLOWED_ATTRIBUTES,
    protocols=ALLOWED_PROTOCOLS,
    strip=True,
    strip_comments=True,
    filters=[ExternalLinkFilter],
)


def drop_unsafe_elements(html: str) -> str:
    """删除脚本、样式、内嵌框架等元素及其内容"""
    root = lxml.html.fragment_fromstring(html, create_parent="div")
    etree.strip_elements(root, *_DROP_WITH_CONTENT, with_tail=False)
    head = escape(root.text) if root.text else ""
    return head + "".join(lxml.html.tostring(child, encoding="unicode") for child in root)


def sanitize_html(html: str) -> str:
    """
    清洗提取出的文章 HTML

    不在白名单内的标签和属性直接去掉（不是转义），结果可以直接插入页面渲染。

    Args:
        html: 正文 HTML 片段

    Returns:
        清洗后的 HTML
    """
    if not html or not html.strip():
        return ""
    return _cleaner.clean(drop_unsafe_elements(html))
