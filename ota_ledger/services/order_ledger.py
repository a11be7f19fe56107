"""订单账本"""

import logging
import threading
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from pydantic import ValidationError

from ota_ledger.core.errors import DuplicateOrderError, ErrorKind, LedgerResult
from ota_ledger.models.audit import AuditOperation
from ota_ledger.models.base import as_date, utcnow
from ota_ledger.models.order import Order, OrderStatus, OrderStatusHistoryEntry, calc_amounts
from ota_ledger.services.audit_trail import AuditTrail

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ImportSummary:
    added: int
    skipped: int


class OrderLedger:
    """订单生命周期：创建即已支付，之后核销或退款

    库存的冻结、核销、解冻由调用方（OrderCoordinator）配合完成，本账本不直接操作库存。
    """

    def __init__(self, audit: AuditTrail):
        self.audit = audit
        self._orders: Dict[str, Order] = {}
        self._history: List[OrderStatusHistoryEntry] = []
        self._lock = threading.RLock()

    # ==================== 查询 ====================

    def get(self, order_id: str) -> Optional[Order]:
        return self._orders.get(order_id)

    def find_by_key(self, order_no: str, channel_id: str) -> Optional[Order]:
        for o in self._orders.values():
            if o.import_key == (order_no, channel_id):
                return o
        return None

    def list_orders(self, status: Optional[OrderStatus] = None) -> List[Order]:
        return [o for o in self._orders.values() if status is None or o.status == status]

    def history(self, order_id: Optional[str] = None) -> List[OrderStatusHistoryEntry]:
        return [h for h in self._history if order_id is None or h.order_id == order_id]

    # ==================== 变更 ====================

    def create_order(
        self,
        sku_id: str,
        channel_id: str,
        travel_date: Union[date, str],
        quantity: int,
        sale_price: Decimal,
        cost_price: Optional[Decimal] = None,
        order_no: Optional[str] = None,
        product_id: str = "",
        order_id: Optional[str] = None,
        created_by: Optional[str] = None,
        remark: Optional[str] = None,
    ) -> Order:
        """创建订单（状态直接为已支付），调用方须已冻结对应库存

        同渠道订单号已存在时抛出 DuplicateOrderError，检查与写入在同一把锁内完成。
        """
        sale_price = Decimal(str(sale_price))
        cost_price = Decimal(str(cost_price)) if cost_price is not None else None
        fields: Dict[str, Any] = dict(
            order_no=order_no,
            channel_id=channel_id,
            sku_id=sku_id,
            product_id=product_id,
            travel_date=as_date(travel_date),
            quantity=quantity,
            sale_price=sale_price,
            cost_price=cost_price,
            status=OrderStatus.PAID,
            created_by=created_by,
            remark=remark,
            **calc_amounts(sale_price, cost_price, quantity),
        )
        if order_id:
            fields["id"] = order_id
        if not order_no:
            fields["order_no"] = f"ON{utcnow().strftime('%Y%m%d%H%M%S%f')}"
        order = Order(**fields)

        with self._lock:
            if self.find_by_key(order.order_no, order.channel_id):
                raise DuplicateOrderError(order.order_no, order.channel_id)
            self._orders[order.id] = order
            self._history.append(
                OrderStatusHistoryEntry(
                    order_id=order.id,
                    before_status=OrderStatus.CREATED,
                    after_status=OrderStatus.PAID,
                    operator=created_by,
                    operated_at=order.created_at,
                )
            )
        self.audit.record(
            table_name="order",
            record_id=order.id,
            operation=AuditOperation.INSERT,
            diff_data=order.model_dump(mode="json"),
            operator=created_by,
            source="新建订单",
        )
        logger.info(f"创建订单成功: order_id={order.id}, order_no={order.order_no}, amount={order.sale_amount}")
        return order

    def verify_order(self, order_id: str, operator: str) -> LedgerResult:
        """核销：已支付 -> 已核销"""
        return self._transition(order_id, OrderStatus.VERIFIED, operator, "verified_at", source="核销")

    def refund_order(self, order_id: str, operator: str) -> LedgerResult:
        """退款：已支付 -> 已退款"""
        return self._transition(order_id, OrderStatus.REFUNDED, operator, "refunded_at", source="退款")

    def revert_status(self, order_id: str, operator: str, reason: str) -> LedgerResult:
        """补偿：把核销/退款中的订单退回已支付"""
        with self._lock:
            order = self._orders.get(order_id)
            if order is None:
                return LedgerResult.failure(ErrorKind.RECORD_NOT_FOUND, "未找到订单")
            before = order.status
            if before not in (OrderStatus.VERIFIED, OrderStatus.REFUNDED):
                return LedgerResult.failure(ErrorKind.INVALID_STATE, f"订单状态为 {before.value}，无需回退")
            order.status = OrderStatus.PAID
            order.verified_at = None
            order.refunded_at = None
            self._history.append(
                OrderStatusHistoryEntry(
                    order_id=order_id,
                    before_status=before,
                    after_status=OrderStatus.PAID,
                    operator=operator,
                    reason=reason,
                )
            )
        self.audit.record(
            table_name="order",
            record_id=order_id,
            operation=AuditOperation.COMPENSATE,
            diff_data={"status": OrderStatus.PAID.value, "from": before.value, "reason": reason},
            operator=operator,
            source="补偿",
        )
        logger.warning(f"订单状态已回退: order_id={order_id}, from={before.value}, reason={reason}")
        return LedgerResult.success(order)

    def import_orders(self, rows: Iterable[Union[Order, Mapping[str, Any]]]) -> LedgerResult:
        """按 (order_no, channel_id) 去重导入，已存在的行跳过且不修改

        先校验整批数据，任一行不合法则整批不入库，失败结果的 data 为不合法行的序号与原因。
        """
        parsed: List[Order] = []
        invalid: List[Dict[str, Any]] = []
        for index, row in enumerate(rows):
            if isinstance(row, Order):
                parsed.append(row)
                continue
            try:
                parsed.append(Order.model_validate(row))
            except ValidationError as e:
                invalid.append({"row": index, "errors": e.errors(include_url=False, include_context=False)})
        if invalid:
            logger.warning(f"导入订单被拒绝: 不合法行 {[item['row'] for item in invalid]}")
            return LedgerResult.failure(
                ErrorKind.VALIDATION_ERROR, f"订单数据不合法，共 {len(invalid)} 行，整批未导入", data=invalid
            )

        added = 0
        skipped = 0
        with self._lock:
            existing_keys = {o.import_key for o in self._orders.values()}
            for order in parsed:
                if order.import_key in existing_keys:
                    skipped += 1
                    continue
                self._orders[order.id] = order
                existing_keys.add(order.import_key)
                added += 1
        if added:
            self.audit.record(
                table_name="order",
                record_id="import",
                operation=AuditOperation.INSERT,
                diff_data={"added": added, "skipped": skipped},
                source="导入",
            )
        logger.info(f"导入订单完成: added={added}, skipped={skipped}")
        return LedgerResult.success(ImportSummary(added=added, skipped=skipped))

    def hydrate(self, orders: Iterable[Order], history: Iterable[OrderStatusHistoryEntry] = ()) -> None:
        with self._lock:
            self._orders = {o.id: o for o in orders}
            self._history = list(history)
        logger.info(f"载入订单 {len(self._orders)} 条")

    # ==================== 内部方法 ====================

    def _transition(self, order_id: str, target: OrderStatus, operator: str, stamp_field: str, source: str) -> LedgerResult:
        with self._lock:
            order = self._orders.get(order_id)
            if order is None:
                return LedgerResult.failure(ErrorKind.RECORD_NOT_FOUND, "未找到订单")
            if order.status != OrderStatus.PAID:
                logger.warning(f"订单状态流转被拒绝: order_id={order_id}, {order.status.value} -> {target.value}")
                return LedgerResult.failure(
                    ErrorKind.INVALID_STATE, f"订单状态为 {order.status.value}，只有已支付订单可以{source}"
                )
            before = order.status
            now = utcnow()
            order.status = target
            setattr(order, stamp_field, now)
            self._history.append(
                OrderStatusHistoryEntry(
                    order_id=order_id,
                    before_status=before,
                    after_status=target,
                    operator=operator,
                    operated_at=now,
                )
            )
        self.audit.record(
            table_name="order",
            record_id=order_id,
            operation=AuditOperation.STATUS_CHANGE,
            diff_data={"status": target.value},
            operator=operator,
            source=source,
        )
        logger.info(f"订单{source}成功: order_id={order_id}")
        return LedgerResult.success(order)
