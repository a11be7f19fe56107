"""依赖注入配置模块"""

from fastapi import Depends

from ota_ledger.core.config import settings

# Redis 依赖
from ota_ledger.core.redis import redis_client, redlock

from ota_ledger.services.approval_gate import ApprovalGate
from ota_ledger.services.audit_trail import AuditTrail
from ota_ledger.services.container import LedgerContainer
from ota_ledger.services.inventory_ledger import InventoryLedger
from ota_ledger.services.order_coordinator import OrderCoordinator
from ota_ledger.services.order_ledger import OrderLedger
from ota_ledger.services.price_store import PriceVersionStore


def get_redis():
    """获取同步 Redis 客户端（不可用时返回 None）"""
    if redis_client is None:
        return None
    try:
        redis_client.ping()
        return redis_client
    except Exception:
        return None


def get_redlock():
    """获取 Redlock 分布式锁实例"""
    if redlock is None or not redlock.servers:
        return None
    return redlock


# 进程内唯一的账本实例，启动时由快照填充
container = LedgerContainer(
    redis=get_redis(),
    rlock=get_redlock(),
    lock_ttl=settings.LOCK_TTL_MS,
    cache_ttl=settings.STOCK_CACHE_TTL,
)


def get_container() -> LedgerContainer:
    return container


def get_inventory_ledger(c: LedgerContainer = Depends(get_container)) -> InventoryLedger:
    return c.inventory


def get_price_store(c: LedgerContainer = Depends(get_container)) -> PriceVersionStore:
    return c.prices


def get_order_ledger(c: LedgerContainer = Depends(get_container)) -> OrderLedger:
    return c.orders


def get_order_coordinator(c: LedgerContainer = Depends(get_container)) -> OrderCoordinator:
    return c.coordinator


def get_approval_gate(c: LedgerContainer = Depends(get_container)) -> ApprovalGate:
    return c.approvals


def get_audit_trail(c: LedgerContainer = Depends(get_container)) -> AuditTrail:
    return c.audit


# 常用的依赖注入别名
ContainerDep = Depends(get_container)
InventoryDep = Depends(get_inventory_ledger)
PriceStoreDep = Depends(get_price_store)
OrderLedgerDep = Depends(get_order_ledger)
CoordinatorDep = Depends(get_order_coordinator)
ApprovalGateDep = Depends(get_approval_gate)
AuditDep = Depends(get_audit_trail)
