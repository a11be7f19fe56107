"""依赖注入与配置单元测试"""
from unittest.mock import Mock, patch

from ota_ledger.core.config import Settings
from ota_ledger.core.dependencies import (
    container,
    get_approval_gate,
    get_container,
    get_inventory_ledger,
    get_order_coordinator,
    get_redis,
    get_redlock,
)
from ota_ledger.core import redis as redis_module
from ota_ledger.services.inventory_ledger import InventoryLedger


class TestDependencies:
    """依赖注入测试类"""

    def test_get_redis_disabled(self):
        """测试未启用 Redis 时返回 None"""
        with patch('ota_ledger.core.dependencies.redis_client', None):
            assert get_redis() is None

    def test_get_redis_success(self):
        """测试 Redis 连接成功"""
        with patch('ota_ledger.core.dependencies.redis_client') as mock_redis_client:
            mock_redis_client.ping.return_value = True

            assert get_redis() == mock_redis_client
            mock_redis_client.ping.assert_called_once()

    def test_get_redis_failure(self):
        """测试 Redis 连接失败"""
        with patch('ota_ledger.core.dependencies.redis_client') as mock_redis_client:
            mock_redis_client.ping.side_effect = Exception("连接失败")

            # 连接失败应该返回 None
            assert get_redis() is None

    def test_get_redlock_success(self):
        """测试 Redlock 有服务器配置"""
        with patch('ota_ledger.core.dependencies.redlock') as mock_redlock:
            mock_redlock.servers = [Mock()]
            assert get_redlock() == mock_redlock

    def test_get_redlock_failure(self):
        """测试 Redlock 无服务器配置"""
        with patch('ota_ledger.core.dependencies.redlock') as mock_redlock:
            mock_redlock.servers = []
            assert get_redlock() is None

    def test_ledger_providers(self):
        """测试账本依赖取自同一个容器"""
        assert get_container() is container
        assert isinstance(get_inventory_ledger(container), InventoryLedger)
        assert get_order_coordinator(container).inventory is container.inventory
        assert get_approval_gate(container).prices is container.prices


class TestSettings:
    """配置测试类"""

    def test_defaults(self):
        """测试默认配置"""
        settings = Settings()
        assert settings.LOCK_TTL_MS == 10000
        assert settings.STOCK_CACHE_TTL == 300
        assert settings.FUTURE_STOCK_HORIZON_DAYS == 7
        assert settings.redis_url.startswith("redis://")

    def test_env_override(self, monkeypatch):
        """测试环境变量覆盖"""
        monkeypatch.setenv("FUTURE_STOCK_HORIZON_DAYS", "14")
        assert Settings().FUTURE_STOCK_HORIZON_DAYS == 14

    def test_redis_disabled_creates_nothing(self):
        """测试未启用 Redis 时不创建客户端与锁"""
        with patch.object(redis_module.settings, "REDIS_ENABLED", False):
            assert redis_module.create_redis() is None
            assert redis_module.create_redlock() is None

    def test_redlock_multi_host(self):
        """测试多实例 Redlock 配置"""
        with patch.object(redis_module.settings, "REDIS_ENABLED", True), \
                patch.object(redis_module.settings, "REDIS_HOSTS", "r1, r2,r3"), \
                patch('ota_ledger.core.redis.Redlock') as mock_redlock:
            redis_module.create_redlock()

        servers = mock_redlock.call_args[0][0]
        assert [s["host"] for s in servers] == ["r1", "r2", "r3"]
