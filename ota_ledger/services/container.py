"""账本实例装配"""

from redis import Redis
from redlock import Redlock

from ota_ledger.services.approval_gate import ApprovalGate
from ota_ledger.services.audit_trail import AuditTrail
from ota_ledger.services.catalog_store import CatalogStore
from ota_ledger.services.inventory_ledger import InventoryLedger
from ota_ledger.services.order_coordinator import OrderCoordinator
from ota_ledger.services.order_ledger import OrderLedger
from ota_ledger.services.price_store import PriceVersionStore


class LedgerContainer:
    """每个账本只持有自己的记录表和日志，彼此通过显式引用协作"""

    def __init__(self, redis: Redis = None, rlock: Redlock = None, lock_ttl: int = 10000, cache_ttl: int = 300):
        self.audit = AuditTrail()
        self.inventory = InventoryLedger(self.audit, redis=redis, rlock=rlock, lock_ttl=lock_ttl, cache_ttl=cache_ttl)
        self.prices = PriceVersionStore(self.audit, rlock=rlock, lock_ttl=lock_ttl)
        self.orders = OrderLedger(self.audit)
        self.catalog = CatalogStore(self.audit)
        self.approvals = ApprovalGate(self.prices, self.catalog, self.audit)
        self.coordinator = OrderCoordinator(self.orders, self.inventory, self.prices, self.catalog, self.audit)
