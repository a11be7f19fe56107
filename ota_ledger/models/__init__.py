# Models
from .inventory import InventoryRecord, InventoryLogEntry, InventoryChangeType, QtySnapshot
from .price import PriceRecord, PriceHistoryEntry, PriceStatus
from .order import Order, OrderStatusHistoryEntry, OrderStatus
from .approval import ApprovalRequest, ApprovalStatus, ObjectType
from .audit import AuditEntry, AuditOperation
from .catalog import (
    ListingStatus,
    Product,
    ProductResource,
    Sku,
    SkuChannel,
    SupplierResource,
    SupplierPriceHistoryEntry,
)

__all__ = [
    "InventoryRecord",
    "InventoryLogEntry",
    "InventoryChangeType",
    "QtySnapshot",
    "PriceRecord",
    "PriceHistoryEntry",
    "PriceStatus",
    "Order",
    "OrderStatusHistoryEntry",
    "OrderStatus",
    "ApprovalRequest",
    "ApprovalStatus",
    "ObjectType",
    "AuditEntry",
    "AuditOperation",
    "ListingStatus",
    "Product",
    "ProductResource",
    "Sku",
    "SkuChannel",
    "SupplierResource",
    "SupplierPriceHistoryEntry",
]
