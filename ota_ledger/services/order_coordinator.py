"""订单与库存的跨账本协调（带补偿）"""

import logging
from datetime import date
from decimal import Decimal
from typing import Optional, Union

from ota_ledger.core.errors import DuplicateOrderError, ErrorKind, LedgerResult
from ota_ledger.models.audit import AuditOperation
from ota_ledger.models.base import as_date, new_id
from ota_ledger.services.audit_trail import AuditTrail
from ota_ledger.services.catalog_store import CatalogStore
from ota_ledger.services.inventory_ledger import InventoryLedger
from ota_ledger.services.order_ledger import OrderLedger
from ota_ledger.services.price_store import PriceVersionStore

logger = logging.getLogger(__name__)


class OrderCoordinator:
    """下单 / 核销 / 退款 各自包含订单与库存两步，第二步失败时撤销第一步"""

    def __init__(
        self,
        orders: OrderLedger,
        inventory: InventoryLedger,
        prices: PriceVersionStore,
        catalog: CatalogStore,
        audit: AuditTrail,
    ):
        self.orders = orders
        self.inventory = inventory
        self.prices = prices
        self.catalog = catalog
        self.audit = audit

    def place_order(
        self,
        sku_id: str,
        channel_id: str,
        travel_date: Union[date, str],
        quantity: int,
        operator: str,
        sale_price: Optional[Decimal] = None,
        cost_price: Optional[Decimal] = None,
        order_no: Optional[str] = None,
        remark: Optional[str] = None,
    ) -> LedgerResult:
        """冻结库存后创建订单；未显式给价时取出行日的生效价格"""
        day = as_date(travel_date)
        if sale_price is None:
            price = self.prices.active_price_for(sku_id, channel_id, day)
            if price is None:
                return LedgerResult.failure(ErrorKind.VALIDATION_ERROR, "缺生效价格")
            sale_price = price.sale_price
            if cost_price is None:
                cost_price = price.cost_price
        # 并发下的重复由 create_order 在锁内拦截
        if order_no and self.orders.find_by_key(order_no, channel_id):
            return LedgerResult.failure(ErrorKind.DUPLICATE_KEY, f"订单号 {order_no} 在该渠道已存在")

        order_id = new_id()
        frozen = self.inventory.freeze(sku_id, day, quantity, order_id, operator)
        if not frozen.ok:
            return frozen

        sku = self.catalog.skus.get(sku_id)
        try:
            order = self.orders.create_order(
                sku_id=sku_id,
                channel_id=channel_id,
                travel_date=day,
                quantity=quantity,
                sale_price=sale_price,
                cost_price=cost_price,
                order_no=order_no,
                product_id=sku.product_id if sku else "",
                order_id=order_id,
                created_by=operator,
                remark=remark,
            )
        except DuplicateOrderError as e:
            self._compensate(
                "inventory",
                f"{sku_id}-{day.isoformat()}",
                lambda: self.inventory.release(sku_id, day, quantity, order_id, operator),
                operator,
                f"订单号重复，解冻库存: {e}",
            )
            return LedgerResult.failure(ErrorKind.DUPLICATE_KEY, str(e))
        except (ValueError, ArithmeticError) as e:
            # pydantic ValidationError 是 ValueError 子类，非法金额为 decimal.InvalidOperation
            self._compensate(
                "inventory",
                f"{sku_id}-{day.isoformat()}",
                lambda: self.inventory.release(sku_id, day, quantity, order_id, operator),
                operator,
                f"创建订单失败，解冻库存: {e}",
            )
            return LedgerResult.failure(ErrorKind.VALIDATION_ERROR, f"订单数据不合法: {e}")

        return LedgerResult.success(order, message="订单已创建并冻结库存")

    def verify(self, order_id: str, operator: str) -> LedgerResult:
        """核销：订单标记已核销，再扣减冻结库存"""
        marked = self.orders.verify_order(order_id, operator)
        if not marked.ok:
            return marked
        order = marked.data
        consumed = self.inventory.consume(order.sku_id, order.travel_date, order.quantity, order.id, operator)
        if not consumed.ok:
            self._compensate(
                "order",
                order.id,
                lambda: self.orders.revert_status(order.id, operator, f"核销库存失败: {consumed.message}"),
                operator,
                consumed.message,
            )
            return consumed
        return LedgerResult.success(order, message="已核销，库存扣减")

    def refund(self, order_id: str, operator: str) -> LedgerResult:
        """退款：订单标记已退款，再解冻库存"""
        marked = self.orders.refund_order(order_id, operator)
        if not marked.ok:
            return marked
        order = marked.data
        released = self.inventory.release(order.sku_id, order.travel_date, order.quantity, order.id, operator)
        if not released.ok:
            self._compensate(
                "order",
                order.id,
                lambda: self.orders.revert_status(order.id, operator, f"解冻库存失败: {released.message}"),
                operator,
                released.message,
            )
            return released
        return LedgerResult.success(order, message="已退款，库存解冻")

    def _compensate(self, table_name: str, record_id: str, action, operator: str, reason: str) -> None:
        logger.warning(f"执行补偿: {table_name}/{record_id}, reason={reason}")
        result = action()
        if not result.ok:
            # 补偿也失败时留痕，交由人工处理
            logger.error(f"补偿失败: {table_name}/{record_id}, reason={result.message}")
            self.audit.record(
                table_name=table_name,
                record_id=record_id,
                operation=AuditOperation.COMPENSATE,
                diff_data={"reason": reason, "compensated": False, "error": result.message},
                operator=operator,
                source="saga",
            )
