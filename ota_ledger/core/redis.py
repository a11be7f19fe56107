"""Redis 客户端配置模块"""

from redis import Redis
from redlock import Redlock

from ota_ledger.core.config import settings


def create_redis():
    """创建同步 Redis 客户端（未启用时返回 None）"""
    if not settings.REDIS_ENABLED:
        return None
    return Redis.from_url(settings.redis_url, decode_responses=True)


# Redlock 配置（支持单实例和多实例）
def create_redlock():
    """根据配置动态创建 Redlock 实例"""
    if not settings.REDIS_ENABLED:
        return None

    redis_hosts = settings.REDIS_HOSTS or settings.REDIS_HOST

    if "," in redis_hosts:  # 多实例模式
        hosts = redis_hosts.split(",")
        servers = [
            {"host": host.strip(), "port": settings.REDIS_PORT, "db": settings.REDIS_DB}
            for host in hosts
        ]
    else:  # 单实例模式
        servers = [
            {"host": redis_hosts.strip(), "port": settings.REDIS_PORT, "db": settings.REDIS_DB}
        ]

    return Redlock(servers)


redis_client = create_redis()
redlock = create_redlock()

# 导出
__all__ = [
    "redis_client",
    "redlock",
    "create_redis",
    "create_redlock",
]
