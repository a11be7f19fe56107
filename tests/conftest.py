"""测试配置和 fixtures"""
from datetime import date
from decimal import Decimal

import pytest
from unittest.mock import Mock
from redis import Redis
from redlock import Redlock

from ota_ledger.models.price import PriceRecord, PriceStatus
from ota_ledger.services.audit_trail import AuditTrail
from ota_ledger.services.container import LedgerContainer
from ota_ledger.services.inventory_ledger import InventoryLedger
from ota_ledger.services.order_ledger import OrderLedger
from ota_ledger.services.price_store import PriceVersionStore


@pytest.fixture
def mock_redis():
    """创建模拟 Redis 客户端"""
    redis_mock = Mock(spec=Redis)
    redis_mock.get.return_value = None
    redis_mock.setex.return_value = True
    redis_mock.delete.return_value = 1
    return redis_mock


@pytest.fixture
def mock_redlock():
    """创建模拟 Redlock 分布式锁"""
    redlock_mock = Mock(spec=Redlock)
    lock_mock = Mock()
    redlock_mock.lock.return_value = lock_mock
    redlock_mock.unlock.return_value = True
    return redlock_mock


@pytest.fixture
def audit():
    return AuditTrail()


@pytest.fixture
def inventory(audit):
    """不带 Redis 的库存账本"""
    return InventoryLedger(audit)


@pytest.fixture
def prices(audit):
    return PriceVersionStore(audit)


@pytest.fixture
def orders(audit):
    return OrderLedger(audit)


@pytest.fixture
def container():
    """全新的账本容器"""
    return LedgerContainer()


@pytest.fixture
def client(container):
    """使用独立账本容器的测试客户端"""
    from fastapi.testclient import TestClient

    from ota_ledger.core.dependencies import get_container
    from ota_ledger.main import app

    app.dependency_overrides[get_container] = lambda: container
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def active_price():
    """示例生效价格 P1: (S1, C1) 2024-01-01 ~ 2024-01-31"""
    return PriceRecord(
        id="P1",
        sku_id="S1",
        channel_id="C1",
        sale_price=Decimal("199.00"),
        cost_price=Decimal("120.00"),
        start_at=date(2024, 1, 1),
        end_at=date(2024, 1, 31),
        status=PriceStatus.ACTIVE,
    )


@pytest.fixture
def sample_order_row():
    """示例导入订单行"""
    return {
        "order_no": "A1",
        "channel_id": "C1",
        "sku_id": "S1",
        "travel_date": "2024-06-01",
        "quantity": 2,
        "sale_price": "100.00",
        "cost_price": "60.00",
    }
