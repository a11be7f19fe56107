"""库存账本实现"""

import logging
from contextlib import ExitStack
from datetime import date, timedelta
from typing import Dict, Iterable, List, Optional, Sequence, Union

from redis import Redis
from redlock import Redlock

from ota_ledger.core.errors import ErrorKind, LedgerResult
from ota_ledger.core.locks import KeyedLock
from ota_ledger.models.audit import AuditOperation
from ota_ledger.models.base import as_date
from ota_ledger.models.inventory import (
    InventoryChangeType,
    InventoryLogEntry,
    InventoryRecord,
    QtySnapshot,
)
from ota_ledger.services.audit_trail import AuditTrail

logger = logging.getLogger(__name__)

DateLike = Union[date, str]


class InventoryLedger:
    """按 (sku, 日期) 记账的库存核心服务

    冻结 / 核销 / 解冻 / 调整都在该键的锁内完成 校验 -> 修改 -> 写一条日志，
    任何一步失败都不留下修改。
    """

    def __init__(
        self,
        audit: AuditTrail,
        redis: Redis = None,
        rlock: Redlock = None,
        lock_ttl: int = 10000,
        cache_ttl: int = 300,
    ):
        self.audit = audit
        self.redis = redis
        self.rlock = rlock
        self.cache_ttl = cache_ttl
        self.locks = KeyedLock("inventory", rlock, lock_ttl)
        self._records: Dict[tuple, InventoryRecord] = {}
        self._logs: List[InventoryLogEntry] = []

    # ==================== 查询 ====================

    def get(self, sku_id: str, inventory_date: DateLike) -> Optional[InventoryRecord]:
        return self._records.get((sku_id, as_date(inventory_date)))

    def list_records(self, sku_id: Optional[str] = None) -> List[InventoryRecord]:
        records = [r for r in self._records.values() if sku_id is None or r.sku_id == sku_id]
        return sorted(records, key=lambda r: (r.sku_id, r.inventory_date))

    def logs(self, sku_id: Optional[str] = None, inventory_date: Optional[DateLike] = None) -> List[InventoryLogEntry]:
        items = list(self._logs)
        if sku_id is not None:
            items = [e for e in items if e.sku_id == sku_id]
        if inventory_date is not None:
            day = as_date(inventory_date)
            items = [e for e in items if e.inventory_date == day]
        return items

    def available(self, sku_id: str, inventory_date: DateLike) -> int:
        """查询可用库存（带缓存）"""
        day = as_date(inventory_date)
        cache_key = self._cache_key(sku_id, day)

        # 先查缓存
        if self.redis:
            cached = self.redis.get(cache_key)
            if cached is not None:
                logger.debug(f"Cache hit for {sku_id} {day}")
                return int(cached)

        record = self._records.get((sku_id, day))
        available = record.available_qty if record else 0

        if self.redis:
            self.redis.setex(cache_key, self.cache_ttl, available)
            logger.debug(f"Cache set for {sku_id} {day}: {available}")

        return available

    def has_future_stock(self, sku_id: str, horizon_days: int = 7, today: Optional[date] = None) -> bool:
        """未来 horizon_days 天内（含昨天）是否还有可售库存"""
        today = today or date.today()
        window_start = today - timedelta(days=1)
        window_end = today + timedelta(days=horizon_days)
        return any(
            record.sku_id == sku_id
            and window_start <= record.inventory_date < window_end
            and record.available_qty > 0
            for record in self._records.values()
        )

    # ==================== 变更 ====================

    def init_inventory(
        self,
        sku_id: str,
        dates: Sequence[DateLike],
        total: int,
        operator: str,
        reason: Optional[str] = None,
    ) -> LedgerResult:
        """批量初始化库存：不存在则创建，存在则只覆盖总量"""
        if not sku_id:
            return LedgerResult.failure(ErrorKind.VALIDATION_ERROR, "缺少 SKU")
        if isinstance(total, bool) or not isinstance(total, int) or total < 0:
            return LedgerResult.failure(ErrorKind.VALIDATION_ERROR, "库存总量必须为非负整数")
        days = sorted({as_date(d) for d in dates})
        if not days:
            return LedgerResult.failure(ErrorKind.VALIDATION_ERROR, "请选择日期区间")

        keys = [(sku_id, day) for day in days]
        # 按固定顺序拿齐所有日期的锁，整批要么全部生效要么全部不生效
        with ExitStack() as stack:
            for key in keys:
                stack.enter_context(self.locks.hold(key))

            for key in keys:
                existing = self._records.get(key)
                if existing and existing.frozen_qty + existing.sold_qty > total:
                    return LedgerResult.failure(
                        ErrorKind.VALIDATION_ERROR,
                        f"{key[1]} 已冻结+已售 {existing.frozen_qty + existing.sold_qty}，总量不能低于该值",
                    )

            entries = []
            for key in keys:
                existing = self._records.get(key)
                if existing:
                    before = existing.snapshot()
                    existing.total_qty = total
                    entries.append(self._append_log(existing, InventoryChangeType.ADJUST, before, operator, remark=reason))
                else:
                    record = InventoryRecord(sku_id=sku_id, inventory_date=key[1], total_qty=total)
                    self._records[key] = record
                    before = QtySnapshot(total=0, frozen=0, sold=0)
                    entries.append(self._append_log(record, InventoryChangeType.INITIALIZE, before, operator, remark=reason))

        for key in keys:
            self._invalidate(key)
        logger.info(f"批量初始化库存成功: sku_id={sku_id}, days={len(keys)}, total={total}")
        return LedgerResult.success(entries)

    def freeze(self, sku_id: str, inventory_date: DateLike, quantity: int, order_id: str, operator: str) -> LedgerResult:
        """支付冻结库存"""
        invalid = self._check_quantity(quantity)
        if invalid:
            return invalid
        key = (sku_id, as_date(inventory_date))

        with self.locks.hold(key):
            record = self._records.get(key)
            if record is None:
                return self._blocked(key, ErrorKind.NOT_INITIALIZED, "该日期未初始化库存")
            if record.available_qty < quantity:
                return self._blocked(key, ErrorKind.INSUFFICIENT_STOCK, "库存不足，无法冻结")

            before = record.snapshot()
            record.frozen_qty += quantity
            entry = self._append_log(record, InventoryChangeType.FREEZE, before, operator, order_id)

        self._invalidate(key)
        logger.info(f"冻结库存成功: order_id={order_id}, sku_id={sku_id}, date={key[1]}, quantity={quantity}")
        return LedgerResult.success(entry)

    def consume(self, sku_id: str, inventory_date: DateLike, quantity: int, order_id: str, operator: str) -> LedgerResult:
        """核销：冻结转已售"""
        return self._settle_frozen(sku_id, inventory_date, quantity, order_id, operator, to_sold=True)

    def release(self, sku_id: str, inventory_date: DateLike, quantity: int, order_id: str, operator: str) -> LedgerResult:
        """退款：归还冻结库存"""
        return self._settle_frozen(sku_id, inventory_date, quantity, order_id, operator, to_sold=False)

    def adjust(
        self,
        sku_id: str,
        inventory_date: DateLike,
        new_total: int,
        operator: str,
        remark: Optional[str] = None,
    ) -> LedgerResult:
        """人工调整总量，新总量不得低于 冻结+已售"""
        if isinstance(new_total, bool) or not isinstance(new_total, int) or new_total < 0:
            return LedgerResult.failure(ErrorKind.VALIDATION_ERROR, "库存总量必须为非负整数")
        key = (sku_id, as_date(inventory_date))

        with self.locks.hold(key):
            record = self._records.get(key)
            if record is None:
                return self._blocked(key, ErrorKind.RECORD_NOT_FOUND, "未找到库存记录")
            committed = record.frozen_qty + record.sold_qty
            if new_total < committed:
                return self._blocked(
                    key, ErrorKind.VALIDATION_ERROR, f"调整后总量 {new_total} 低于已冻结+已售 {committed}"
                )

            before = record.snapshot()
            record.total_qty = new_total
            entry = self._append_log(record, InventoryChangeType.MANUAL_ADJUST, before, operator, remark=remark)

        self._invalidate(key)
        logger.info(f"人工调整库存成功: sku_id={sku_id}, date={key[1]}, total={new_total}")
        return LedgerResult.success(entry)

    def hydrate(self, records: Iterable[InventoryRecord], logs: Iterable[InventoryLogEntry] = ()) -> None:
        """批量载入快照"""
        self._records = {record.key: record for record in records}
        self._logs = list(logs)
        logger.info(f"载入库存记录 {len(self._records)} 条, 日志 {len(self._logs)} 条")

    # ==================== 内部方法 ====================

    def _settle_frozen(self, sku_id, inventory_date, quantity, order_id, operator, to_sold: bool) -> LedgerResult:
        invalid = self._check_quantity(quantity)
        if invalid:
            return invalid
        key = (sku_id, as_date(inventory_date))

        with self.locks.hold(key):
            record = self._records.get(key)
            if record is None:
                return self._blocked(key, ErrorKind.RECORD_NOT_FOUND, "未找到库存记录")
            if record.frozen_qty < quantity:
                return self._blocked(key, ErrorKind.INSUFFICIENT_FROZEN, "冻结库存不足")

            before = record.snapshot()
            record.frozen_qty -= quantity
            if to_sold:
                record.sold_qty += quantity
            change_type = InventoryChangeType.VERIFY if to_sold else InventoryChangeType.RELEASE
            entry = self._append_log(record, change_type, before, operator, order_id)

        self._invalidate(key)
        action = "核销" if to_sold else "解冻"
        logger.info(f"{action}库存成功: order_id={order_id}, sku_id={sku_id}, date={key[1]}, quantity={quantity}")
        return LedgerResult.success(entry)

    def _append_log(
        self,
        record: InventoryRecord,
        change_type: InventoryChangeType,
        before: QtySnapshot,
        operator: str,
        related_order_id: Optional[str] = None,
        remark: Optional[str] = None,
    ) -> InventoryLogEntry:
        after = record.snapshot()
        entry = InventoryLogEntry(
            sku_id=record.sku_id,
            inventory_date=record.inventory_date,
            change_type=change_type,
            before_qty=before,
            after_qty=after,
            operator=operator,
            related_order_id=related_order_id,
            remark=remark,
        )
        self._logs.append(entry)
        operation = AuditOperation.INSERT if change_type == InventoryChangeType.INITIALIZE else AuditOperation.UPDATE
        self.audit.record(
            table_name="inventory",
            record_id=f"{record.sku_id}-{record.inventory_date.isoformat()}",
            operation=operation,
            diff_data={"change_type": change_type.value, "before": before.model_dump(), "after": after.model_dump()},
            operator=operator,
            source=change_type.value,
        )
        return entry

    @staticmethod
    def _check_quantity(quantity) -> Optional[LedgerResult]:
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
            return LedgerResult.failure(ErrorKind.VALIDATION_ERROR, "数量必须为正整数")
        return None

    @staticmethod
    def _blocked(key: tuple, error: ErrorKind, message: str) -> LedgerResult:
        logger.warning(f"库存操作被拒绝: sku_id={key[0]}, date={key[1]}, reason={message}")
        return LedgerResult.failure(error, message)

    @staticmethod
    def _cache_key(sku_id: str, day: date) -> str:
        return f"stock:available:{sku_id}:{day.isoformat()}"

    def _invalidate(self, key: tuple) -> None:
        # 失效缓存
        if self.redis:
            self.redis.delete(self._cache_key(*key))
            logger.debug(f"Cache invalidated for {key[0]} {key[1]}")
