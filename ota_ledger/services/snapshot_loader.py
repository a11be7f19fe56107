"""JSON 快照载入 / 导出

每种实体一个 JSON 数组文件，启动时整体载入为内存中的账本状态。
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Type, Union

from pydantic import BaseModel, ValidationError

from ota_ledger.models import (
    ApprovalRequest,
    AuditEntry,
    InventoryLogEntry,
    InventoryRecord,
    Order,
    OrderStatusHistoryEntry,
    PriceHistoryEntry,
    PriceRecord,
    Product,
    ProductResource,
    Sku,
    SkuChannel,
    SupplierPriceHistoryEntry,
    SupplierResource,
)
from ota_ledger.services.container import LedgerContainer

logger = logging.getLogger(__name__)

SNAPSHOT_FILES: Dict[str, Type[BaseModel]] = {
    "inventory": InventoryRecord,
    "inventory_log": InventoryLogEntry,
    "prices": PriceRecord,
    "price_history": PriceHistoryEntry,
    "orders": Order,
    "order_status_history": OrderStatusHistoryEntry,
    "approvals": ApprovalRequest,
    "audit_log": AuditEntry,
    "products": Product,
    "product_resources": ProductResource,
    "skus": Sku,
    "sku_channels": SkuChannel,
    "supplier_resources": SupplierResource,
    "supplier_resource_price_history": SupplierPriceHistoryEntry,
}


@dataclass
class SnapshotIssue:
    entity: str
    index: int
    message: str


@dataclass
class SnapshotReport:
    counts: Dict[str, int] = field(default_factory=dict)
    issues: List[SnapshotIssue] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.issues


class SnapshotError(Exception):
    """快照文件格式错误"""


def read_snapshot(directory: Union[str, Path], strict: bool = True):
    """读取目录中的全部实体文件，返回 (数据, 报告)

    strict=True 时遇到非法行直接抛 SnapshotError，否则跳过该行并记录到报告。
    """
    directory = Path(directory)
    if not directory.is_dir():
        raise SnapshotError(f"快照目录不存在: {directory}")

    data: Dict[str, list] = {}
    report = SnapshotReport()
    for entity, model in SNAPSHOT_FILES.items():
        path = directory / f"{entity}.json"
        if not path.exists():
            logger.info(f"快照缺少 {path.name}，跳过")
            data[entity] = []
            continue
        try:
            rows = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise SnapshotError(f"{path.name} 不是合法 JSON: {e}") from e
        if not isinstance(rows, list):
            raise SnapshotError(f"{path.name} 必须是 JSON 数组")

        items = []
        for index, row in enumerate(rows):
            try:
                items.append(model.model_validate(row))
            except ValidationError as e:
                if strict:
                    raise SnapshotError(f"{path.name} 第 {index} 行不合法: {e}") from e
                report.issues.append(SnapshotIssue(entity=entity, index=index, message=str(e)))
        data[entity] = items
        report.counts[entity] = len(items)
    return data, report


def load_snapshot(directory: Union[str, Path], container: LedgerContainer, strict: bool = True) -> SnapshotReport:
    """把快照载入各账本"""
    data, report = read_snapshot(directory, strict=strict)
    container.inventory.hydrate(data["inventory"], data["inventory_log"])
    container.prices.hydrate(data["prices"], data["price_history"])
    container.orders.hydrate(data["orders"], data["order_status_history"])
    container.approvals.hydrate(data["approvals"])
    container.audit.hydrate(data["audit_log"])
    container.catalog.hydrate(
        products=data["products"],
        product_resources=data["product_resources"],
        skus=data["skus"],
        sku_channels=data["sku_channels"],
        supplier_resources=data["supplier_resources"],
        supplier_price_history=data["supplier_resource_price_history"],
    )
    logger.info(f"快照载入完成: {report.counts}")
    return report


def dump_snapshot(directory: Union[str, Path], container: LedgerContainer) -> Dict[str, int]:
    """把当前账本状态按实体写回 JSON 数组"""
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)
    catalog = container.catalog
    tables = {
        "inventory": container.inventory.list_records(),
        "inventory_log": container.inventory.logs(),
        "prices": container.prices.list_records(),
        "price_history": container.prices.history(),
        "orders": container.orders.list_orders(),
        "order_status_history": container.orders.history(),
        "approvals": container.approvals.list_requests(),
        "audit_log": container.audit.entries(),
        "products": list(catalog.products.values()),
        "product_resources": list(catalog.product_resources),
        "skus": list(catalog.skus.values()),
        "sku_channels": list(catalog.sku_channels),
        "supplier_resources": list(catalog.supplier_resources.values()),
        "supplier_resource_price_history": list(catalog.supplier_price_history),
    }
    counts = {}
    for entity, items in tables.items():
        rows = [item.model_dump(mode="json") for item in items]
        (directory / f"{entity}.json").write_text(
            json.dumps(rows, ensure_ascii=False, indent=2), encoding="utf-8"
        )
        counts[entity] = len(rows)
    logger.info(f"快照导出完成: {directory}")
    return counts
