"""文章 URL 校验（SSRF 防护）：拒绝非 HTTP(S) 协议以及本机/内网地址"""
import asyncio
import ipaddress
import socket
from typing import Optional, Union
from urllib.parse import urlsplit
from globlit.exceptions import Forbidden, InvalidInput
from globlit.utils.logger import logger

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]

_ALLOWED_SCHEMES = {"http", "https"}
_LOCAL_HOSTNAMES = {"localhost", "localhost.localdomain", "ip6-localhost", "ip6-loopback"}


def _parse_ip(host: str) -> Optional[IPAddress]:
    try:
        return ipaddress.ip_address(host)
    except ValueError:
        return None


def is_public_ip(ip: IPAddress) -> bool:
    """是否为公网地址（排除回环、私有、链路本地、保留、组播、未指定地址）"""
    # ::ffff:10.0.0.1 这类映射地址按内嵌的 IPv4 判断
    mapped = getattr(ip, "ipv4_mapped", None)
    if mapped is not None:
        ip = mapped
    return not (
        ip.is_private
        or ip.is_loopback
        or ip.is_link_local
        or ip.is_reserved
        or ip.is_multicast
        or ip.is_unspecified
    )


def is_local_host(hostname: Optional[str]) -> bool:
    """主机名是否指向本机或内网（只看字面值，不做 DNS 解析）"""
    if not hostname:
        return True
    host = hostname.strip("[]").rstrip(".").lower()
    if not host:
        return True
    if host in _LOCAL_HOSTNAMES or host.endswith(".localhost"):
        return True
    ip = _parse_ip(host)
    if ip is not None:
        return not is_public_ip(ip)
    return False


def validate_article_url(url: Optional[str]) -> str:
    """
    校验待抓取的文章 URL，任何网络访问之前调用

    Args:
        url: 调用方传入的 URL

    Returns:
        去掉首尾空白后的 URL

    Raises:
        InvalidInput: 缺少 URL、无法解析或协议不是 http/https
        Forbidden: 主机为本机/内网地址
    """
    if not url or not url.strip():
        raise InvalidInput("Missing url parameter")
    url = url.strip()
    try:
        parts = urlsplit(url)
        hostname = parts.hostname
        # 访问 port 会校验端口是否合法
        parts.port
    except ValueError:
        raise InvalidInput("Invalid url")
    if parts.scheme.lower() not in _ALLOWED_SCHEMES:
        raise InvalidInput("Invalid protocol")
    if not hostname:
        raise InvalidInput("Invalid url")
    if is_local_host(hostname):
        logger.warning(f"拒绝抓取本机/内网地址: {hostname}")
        raise Forbidden()
    return url


async def ensure_public_host(hostname: str) -> None:
    """
    解析域名，任一解析结果为非公网地址则拒绝

    解析失败时不拦截，交给后续请求自行报错。

    Raises:
        Forbidden: 解析到本机/内网地址
    """
    if _parse_ip(hostname.strip("[]")) is not None:
        return
    loop = asyncio.get_running_loop()
    try:
        infos = await loop.getaddrinfo(hostname, None, proto=socket.IPPROTO_TCP)
    except (socket.gaierror, UnicodeError) as e:
        logger.debug(f"域名解析失败，交由请求处理: {hostname}, {e}")
        return
    for _family, _type, _proto, _canon, sockaddr in infos:
        ip = _parse_ip(sockaddr[0].split("%", 1)[0])
        if ip is not None and not is_public_ip(ip):
            logger.warning(f"域名解析到内网地址，拒绝抓取: {hostname} -> {ip}")
            raise Forbidden()
