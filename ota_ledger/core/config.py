import os
from typing import Optional
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # 快照配置（为空则以空账本启动）
    SNAPSHOT_DIR: Optional[str] = os.getenv("SNAPSHOT_DIR") or None

    # Redis 配置
    REDIS_ENABLED: bool = os.getenv("REDIS_ENABLED", "false").lower() in ("1", "true", "yes")
    REDIS_HOST: str = os.getenv("REDIS_HOST", "localhost")
    REDIS_PORT: int = int(os.getenv("REDIS_PORT", "6379"))
    REDIS_DB: int = int(os.getenv("REDIS_DB", "0"))
    REDIS_HOSTS: str = os.getenv("REDIS_HOSTS", "")

    # 锁与缓存
    LOCK_TTL_MS: int = int(os.getenv("LOCK_TTL_MS", "10000"))
    STOCK_CACHE_TTL: int = int(os.getenv("STOCK_CACHE_TTL", "300"))

    # 业务参数
    FUTURE_STOCK_HORIZON_DAYS: int = int(os.getenv("FUTURE_STOCK_HORIZON_DAYS", "7"))

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    @property
    def redis_url(self) -> str:
        return f"redis://{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"


settings = Settings()
