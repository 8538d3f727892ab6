"""缓存服务：进程内 TTL 缓存"""
import time
from typing import Any, Callable, Dict, Optional, Tuple
from globlit.utils.logger import logger

# 未命中时返回的哨兵对象（缓存值本身可以是 None）
MISS = object()


class TTLCache:
    """
    进程内 key -> value 缓存，每个条目带绝对过期时间

    读取时惰性淘汰过期条目，没有后台清理任务。
    不做线程同步，只在单线程事件循环里使用。
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        max_entries: Optional[int] = None,
    ):
        """
        初始化缓存

        Args:
            clock: 时钟函数（秒），测试时可注入
            max_entries: 条目上限，超过时先清理过期条目，仍超过则淘汰最早写入的
        """
        self._clock = clock
        self._max_entries = max_entries
        self._entries: Dict[str, Tuple[Any, float]] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: str) -> Any:
        """
        读取缓存

        Args:
            key: 缓存键

        Returns:
            命中返回缓存值，未命中或已过期返回 MISS
        """
        entry = self._entries.get(key)
        if entry is None:
            return MISS
        value, expires_at = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            logger.debug(f"缓存过期淘汰: {key[:200]}")
            return MISS
        return value

    def set(self, key: str, value: Any, ttl_seconds: float) -> None:
        """
        写入缓存（覆盖已有条目）

        Args:
            key: 缓存键
            value: 缓存值
            ttl_seconds: 存活时间（秒）
        """
        # 重新插入，保证字典顺序即写入顺序
        self._entries.pop(key, None)
        self._entries[key] = (value, self._clock() + ttl_seconds)
        if self._max_entries is not None and len(self._entries) > self._max_entries:
            self._evict()

    def delete(self, key: str) -> None:
        """删除指定条目"""
        self._entries.pop(key, None)

    def clear(self) -> None:
        """清空缓存"""
        self._entries.clear()

    def close(self) -> None:
        """释放缓存（应用关闭时调用）"""
        count = len(self._entries)
        self.clear()
        logger.info(f"缓存已释放，清理 {count} 条")

    def _evict(self) -> None:
        now = self._clock()
        for key in [k for k, (_, exp) in self._entries.items() if now >= exp]:
            del self._entries[key]
        while len(self._entries) > self._max_entries:
            oldest = next(iter(self._entries))
            del self._entries[oldest]
