"""商品目录：产品结构、SKU、渠道绑定与供应商结算价"""

import logging
import threading
from datetime import date, timedelta
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Sequence

from ota_ledger.core.errors import ErrorKind, LedgerResult
from ota_ledger.models.approval import ObjectType
from ota_ledger.models.audit import AuditOperation
from ota_ledger.models.catalog import (
    ListingStatus,
    Product,
    ProductResource,
    Sku,
    SkuChannel,
    SupplierPriceHistoryEntry,
    SupplierResource,
)
from ota_ledger.models.inventory import InventoryRecord
from ota_ledger.models.price import PriceRecord, PriceStatus
from ota_ledger.services.audit_trail import AuditTrail
from ota_ledger.services.structure_fingerprint import build_hash

logger = logging.getLogger(__name__)


class CatalogStore:
    def __init__(self, audit: AuditTrail):
        self.audit = audit
        self._lock = threading.RLock()
        self.products: Dict[str, Product] = {}
        self.product_resources: List[ProductResource] = []
        self.skus: Dict[str, Sku] = {}
        self.sku_channels: List[SkuChannel] = []
        self.supplier_resources: Dict[str, SupplierResource] = {}
        self.supplier_price_history: List[SupplierPriceHistoryEntry] = []

    # ==================== 查询 ====================

    def find_by_hash(self, structure_hash: str, exclude_id: Optional[str] = None) -> Optional[Product]:
        for p in self.products.values():
            if p.structure_hash == structure_hash and p.id != exclude_id:
                return p
        return None

    def lines_of(self, product_id: str) -> List[ProductResource]:
        return [line for line in self.product_resources if line.product_id == product_id]

    def shelf_gates(
        self,
        sku_id: str,
        prices: Iterable[PriceRecord],
        inventory: Iterable[InventoryRecord],
        horizon_days: int = 7,
        today: Optional[date] = None,
    ) -> List[str]:
        """SKU 上架前置条件检查，返回缺失项（空列表表示可以上架）"""
        today = today or date.today()
        missing = []
        if not any(c.sku_id == sku_id and c.status == ListingStatus.LISTED for c in self.sku_channels):
            missing.append("未绑定渠道")
        if not any(p.sku_id == sku_id and p.status == PriceStatus.ACTIVE for p in prices):
            missing.append("缺生效价格")
        window_start = today - timedelta(days=1)
        window_end = today + timedelta(days=horizon_days)
        if not any(
            inv.sku_id == sku_id and window_start <= inv.inventory_date < window_end and inv.available_qty > 0
            for inv in inventory
        ):
            missing.append(f"未来 {horizon_days} 天无库存")
        return missing

    # ==================== 变更 ====================

    def save_product(
        self,
        product: Product,
        lines: Sequence[ProductResource],
        operator: str,
        override: bool = False,
        has_orders: bool = False,
    ) -> LedgerResult:
        """保存产品结构；指纹命中已有产品时返回警告，override 后仍可创建"""
        if not lines:
            return LedgerResult.failure(ErrorKind.VALIDATION_ERROR, "请选择至少一个资源")
        if has_orders and product.id in self.products:
            return LedgerResult.failure(ErrorKind.INVALID_STATE, "产品已有订单，禁止改结构，请复制为新产品")

        structure_hash = build_hash(lines)
        with self._lock:
            duplicate = self.find_by_hash(structure_hash, exclude_id=product.id)
            if duplicate and not override:
                logger.warning(f"结构指纹命中已有产品: {duplicate.id} ({duplicate.product_name})")
                return LedgerResult.failure(
                    ErrorKind.STRUCTURE_DUPLICATE,
                    f"结构指纹命中 {duplicate.product_name}，可跳转查看/复用",
                    data=duplicate.id,
                )
            existed = product.id in self.products
            saved = product.model_copy(update={"structure_hash": structure_hash, "created_by": product.created_by or operator})
            self.products[saved.id] = saved
            self.product_resources = [r for r in self.product_resources if r.product_id != saved.id] + [
                line.model_copy(update={"product_id": saved.id}) for line in lines
            ]
        self.audit.record(
            table_name="product",
            record_id=saved.id,
            operation=AuditOperation.UPDATE if existed else AuditOperation.INSERT,
            diff_data={"structure_hash": structure_hash, "lines": len(lines)},
            operator=operator,
            source="产品结构",
        )
        logger.info(f"产品保存成功: product_id={saved.id}, hash={structure_hash}")
        return LedgerResult.success(saved)

    def set_status(self, object_type: ObjectType, object_id: str, status: ListingStatus, operator: Optional[str] = None) -> LedgerResult:
        """修改产品或 SKU 的上下架状态"""
        if object_type == ObjectType.PRODUCT:
            table = self.products
        elif object_type == ObjectType.SKU:
            table = self.skus
        else:
            return LedgerResult.failure(ErrorKind.VALIDATION_ERROR, f"{object_type.value} 没有上下架状态")

        with self._lock:
            target = table.get(object_id)
            if target is None:
                return LedgerResult.failure(ErrorKind.RECORD_NOT_FOUND, f"未找到 {object_type.value} {object_id}")
            before = target.status
            target.status = status
        self.audit.record(
            table_name=object_type.value,
            record_id=object_id,
            operation=AuditOperation.STATUS_CHANGE,
            diff_data={"before": before.value, "after": status.value},
            operator=operator,
        )
        return LedgerResult.success(target)

    def apply_settlement_price(
        self,
        supplier_resource_id: str,
        new_price: Optional[Decimal],
        operator: Optional[str] = None,
        reason: Optional[str] = None,
        approval_id: Optional[str] = None,
    ) -> LedgerResult:
        """直接写入新的供应商结算价并留存调价历史"""
        with self._lock:
            target = self.supplier_resources.get(supplier_resource_id)
            if target is None:
                return LedgerResult.failure(ErrorKind.RECORD_NOT_FOUND, "未找到供给关系")
            before = target.settlement_price
            target.settlement_price = Decimal(str(new_price)) if new_price is not None else None
            entry = SupplierPriceHistoryEntry(
                supplier_resource_id=supplier_resource_id,
                before_price=before,
                after_price=target.settlement_price,
                reason=reason,
                operator=operator,
                approval_id=approval_id,
            )
            self.supplier_price_history.append(entry)
        change = entry.model_dump(mode="json", include={"before_price", "after_price"})
        self.audit.record(
            table_name=ObjectType.SUPPLIER.value,
            record_id=supplier_resource_id,
            operation=AuditOperation.UPDATE,
            diff_data=change,
            operator=operator,
            source="结算价变更",
        )
        logger.info(f"结算价变更: supplier_resource_id={supplier_resource_id}, {before} -> {target.settlement_price}")
        return LedgerResult.success(entry)

    def hydrate(
        self,
        products: Iterable[Product] = (),
        product_resources: Iterable[ProductResource] = (),
        skus: Iterable[Sku] = (),
        sku_channels: Iterable[SkuChannel] = (),
        supplier_resources: Iterable[SupplierResource] = (),
        supplier_price_history: Iterable[SupplierPriceHistoryEntry] = (),
    ) -> None:
        with self._lock:
            self.products = {p.id: p for p in products}
            self.product_resources = list(product_resources)
            self.skus = {s.id: s for s in skus}
            self.sku_channels = list(sku_channels)
            self.supplier_resources = {s.id: s for s in supplier_resources}
            self.supplier_price_history = list(supplier_price_history)
