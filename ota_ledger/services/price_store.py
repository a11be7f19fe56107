"""价格版本存储"""

import logging
import threading
from datetime import date, timedelta
from typing import Dict, Iterable, List, Optional, Union

from redlock import Redlock

from ota_ledger.core.errors import ErrorKind, LedgerResult
from ota_ledger.core.locks import KeyedLock
from ota_ledger.models.audit import AuditOperation
from ota_ledger.models.base import as_date, new_id
from ota_ledger.models.price import LIVE_PRICE_STATUSES, PriceHistoryEntry, PriceRecord, PriceStatus
from ota_ledger.services.audit_trail import AuditTrail

logger = logging.getLogger(__name__)

DateLike = Union[date, str]


class PriceVersionStore:
    """(sku, 渠道) 维度的区间价格记录，负责冲突检测与生效替换"""

    def __init__(self, audit: AuditTrail, rlock: Redlock = None, lock_ttl: int = 10000):
        self.audit = audit
        self.locks = KeyedLock("price", rlock, lock_ttl)
        self._records: Dict[str, PriceRecord] = {}
        self._history: List[PriceHistoryEntry] = []
        self._history_lock = threading.Lock()

    # ==================== 查询 ====================

    def get(self, price_id: str) -> Optional[PriceRecord]:
        return self._records.get(price_id)

    def list_records(self, sku_id: Optional[str] = None, channel_id: Optional[str] = None) -> List[PriceRecord]:
        return [
            p for p in self._records.values()
            if (sku_id is None or p.sku_id == sku_id) and (channel_id is None or p.channel_id == channel_id)
        ]

    def history(self, price_id: Optional[str] = None) -> List[PriceHistoryEntry]:
        with self._history_lock:
            items = list(self._history)
        if price_id is not None:
            items = [h for h in items if h.price_id == price_id]
        return items

    def check_conflict(
        self,
        sku_id: str,
        channel_id: str,
        start_at: DateLike,
        end_at: DateLike,
        exclude_id: Optional[str] = None,
    ) -> List[PriceRecord]:
        """返回与 [start_at, end_at] 闭区间重叠的未失效记录"""
        start, end = as_date(start_at), as_date(end_at)
        return [
            p for p in self._records.values()
            if p.sku_id == sku_id
            and p.channel_id == channel_id
            and p.id != exclude_id
            and p.status in LIVE_PRICE_STATUSES
            and p.overlaps(start, end)
        ]

    def active_price_for(self, sku_id: str, channel_id: str, on_date: DateLike) -> Optional[PriceRecord]:
        day = as_date(on_date)
        for p in self._records.values():
            if p.pair == (sku_id, channel_id) and p.status == PriceStatus.ACTIVE and p.covers(day):
                return p
        return None

    # ==================== 变更 ====================

    def upsert(self, record: PriceRecord) -> PriceRecord:
        """id 不存在则新增，否则整条替换"""
        with self.locks.hold(record.pair):
            existing = self._records.get(record.id)
            self._records[record.id] = record
        self.audit.record(
            table_name="price",
            record_id=record.id,
            operation=AuditOperation.UPDATE if existing else AuditOperation.INSERT,
            diff_data={
                "before": existing.model_dump(mode="json") if existing else None,
                "after": record.model_dump(mode="json"),
            },
            operator=record.created_by,
            source="upsert",
        )
        return record

    def propose(self, record: PriceRecord, operator: str, override: bool = False) -> LedgerResult:
        """调价：冲突检测通过后以待审批状态写入"""
        if record.start_at > record.end_at:
            return LedgerResult.failure(ErrorKind.VALIDATION_ERROR, "开始日期不能晚于结束日期")

        with self.locks.hold(record.pair):
            conflicts = self.check_conflict(
                record.sku_id, record.channel_id, record.start_at, record.end_at, exclude_id=record.id
            )
            if conflicts and not override:
                first = conflicts[0]
                logger.warning(f"价格时间冲突: price_id={record.id}, conflicts={[c.id for c in conflicts]}")
                return LedgerResult.failure(
                    ErrorKind.TIME_CONFLICT,
                    f"时间冲突：与 {first.start_at}~{first.end_at} 重叠",
                    data=[c.id for c in conflicts],
                )
            before = self._records.get(record.id)
            pending = record.model_copy(update={"status": PriceStatus.PENDING, "created_by": record.created_by or operator})
            self._records[pending.id] = pending

        self.audit.record(
            table_name="price",
            record_id=pending.id,
            operation=AuditOperation.UPDATE if before else AuditOperation.INSERT,
            diff_data={"after": pending.model_dump(mode="json")},
            operator=operator,
            source="调价",
        )
        logger.info(f"调价已提交待审批: price_id={pending.id}, override={override}")
        return LedgerResult.success(pending)

    def activate_price(self, price_id: str) -> LedgerResult:
        """生效目标价格，同 (sku, 渠道) 其他生效价格失效并截断到目标开始前一天"""
        target = self._records.get(price_id)
        if target is None:
            return LedgerResult.failure(ErrorKind.RECORD_NOT_FOUND, "未找到价格记录")

        superseded = []
        with self.locks.hold(target.pair):
            target = self._records[price_id]
            new_end = target.start_at - timedelta(days=1)
            for p in self._records.values():
                if p.id != price_id and p.pair == target.pair and p.status == PriceStatus.ACTIVE:
                    p.status = PriceStatus.SUPERSEDED
                    p.end_at = new_end
                    superseded.append(p.id)
            target.status = PriceStatus.ACTIVE

        self.audit.record(
            table_name="price",
            record_id=price_id,
            operation=AuditOperation.STATUS_CHANGE,
            diff_data={"status": PriceStatus.ACTIVE.value, "superseded": superseded},
            source="activate",
        )
        logger.info(f"价格生效: price_id={price_id}, superseded={superseded}")
        return LedgerResult.success(target)

    def revert_to_draft(self, price_id: str) -> LedgerResult:
        """审批驳回后的补偿：待审批价格退回草稿"""
        target = self._records.get(price_id)
        if target is None:
            return LedgerResult.failure(ErrorKind.RECORD_NOT_FOUND, "未找到价格记录")
        with self.locks.hold(target.pair):
            if target.status != PriceStatus.PENDING:
                return LedgerResult.failure(ErrorKind.INVALID_STATE, f"价格状态为 {target.status.value}，无需回退")
            target.status = PriceStatus.DRAFT
        self.audit.record(
            table_name="price",
            record_id=price_id,
            operation=AuditOperation.COMPENSATE,
            diff_data={"status": PriceStatus.DRAFT.value},
            source="审批驳回",
        )
        return LedgerResult.success(target)

    def restore(self, snapshot: PriceRecord) -> LedgerResult:
        """审批驳回后的补偿：待审批的修改恢复为提交前的记录

        若恢复为生效会与同 (sku, 渠道) 的另一条生效价格并存，则以草稿状态恢复。
        """
        target = self._records.get(snapshot.id)
        if target is None:
            return LedgerResult.failure(ErrorKind.RECORD_NOT_FOUND, "未找到价格记录")
        with self.locks.hold(target.pair):
            if target.status != PriceStatus.PENDING:
                return LedgerResult.failure(ErrorKind.INVALID_STATE, f"价格状态为 {target.status.value}，无需回退")
            restored = snapshot.model_copy()
            if restored.status == PriceStatus.ACTIVE and any(
                p.id != restored.id and p.pair == restored.pair and p.status == PriceStatus.ACTIVE
                for p in self._records.values()
            ):
                logger.warning(f"恢复价格时同渠道已有生效价格，改为草稿: price_id={restored.id}")
                restored.status = PriceStatus.DRAFT
            self._records[restored.id] = restored

        self.audit.record(
            table_name="price",
            record_id=restored.id,
            operation=AuditOperation.COMPENSATE,
            diff_data={
                "before": target.model_dump(mode="json"),
                "after": restored.model_dump(mode="json"),
            },
            source="审批驳回",
        )
        logger.info(f"价格已恢复为提交前版本: price_id={restored.id}, status={restored.status.value}")
        return LedgerResult.success(restored)

    def clone_active_to_draft(self, sku_id: str, channel_id: str) -> Optional[PriceRecord]:
        """以当前生效价格为基线复制一份草稿（不写入存储）"""
        for p in self._records.values():
            if p.pair == (sku_id, channel_id) and p.status == PriceStatus.ACTIVE:
                return p.model_copy(update={"id": new_id(), "status": PriceStatus.DRAFT})
        return None

    def add_history(self, entry: PriceHistoryEntry) -> PriceHistoryEntry:
        with self._history_lock:
            self._history.append(entry)
        return entry

    def hydrate(self, records: Iterable[PriceRecord], history: Iterable[PriceHistoryEntry] = ()) -> None:
        self._records = {p.id: p for p in records}
        with self._history_lock:
            self._history = list(history)
        logger.info(f"载入价格记录 {len(self._records)} 条, 历史 {len(self._history)} 条")
