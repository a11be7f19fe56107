"""按键串行化的锁"""

import logging
import threading
from contextlib import contextmanager
from typing import Dict, Hashable, Iterator

from redlock import Redlock

from ota_ledger.core.errors import LockConflictError

logger = logging.getLogger(__name__)


class KeyedLock:
    """每个键一把进程内锁，配置 Redlock 时再叠加一把分布式锁

    同一 (sku, 日期) 或 (sku, 渠道) 上的操作严格串行；不同键互不阻塞。
    """

    def __init__(self, namespace: str, rlock: Redlock = None, ttl: int = 10000):
        self.namespace = namespace
        self.rlock = rlock
        self.ttl = ttl
        self._guard = threading.Lock()
        self._locks: Dict[Hashable, threading.Lock] = {}

    def _local_lock(self, key: Hashable) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            return lock

    def lock_key(self, key: Hashable) -> str:
        if isinstance(key, tuple):
            suffix = ":".join(str(part) for part in key)
        else:
            suffix = str(key)
        return f"lock:{self.namespace}:{suffix}"

    @contextmanager
    def hold(self, key: Hashable) -> Iterator[None]:
        local = self._local_lock(key)
        with local:
            lock = None
            if self.rlock:
                lock_key = self.lock_key(key)
                lock = self.rlock.lock(lock_key, self.ttl)
                if not lock:
                    logger.warning(f"获取分布式锁失败: {lock_key}")
                    raise LockConflictError(lock_key)
            try:
                yield
            finally:
                # 释放分布式锁
                if self.rlock and lock:
                    self.rlock.unlock(lock)
