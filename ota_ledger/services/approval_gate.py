"""审批流：提交变更，通过后由对应账本生效"""

import logging
from typing import Any, Callable, Dict, List, Optional, Union

from pydantic import ValidationError

from ota_ledger.core.errors import ErrorKind, LedgerResult
from ota_ledger.core.locks import KeyedLock
from ota_ledger.models.approval import ApprovalRequest, ApprovalStatus, ObjectType
from ota_ledger.models.audit import AuditOperation
from ota_ledger.models.base import utcnow
from ota_ledger.models.catalog import ListingStatus
from ota_ledger.models.price import PriceHistoryEntry, PriceRecord, PriceStatus
from ota_ledger.services.audit_trail import AuditTrail
from ota_ledger.services.catalog_store import CatalogStore
from ota_ledger.services.price_store import PriceVersionStore

logger = logging.getLogger(__name__)

Handler = Callable[[ApprovalRequest], LedgerResult]


class ApprovalGate:
    """审批单 pending -> approved | rejected，终态不可再变

    通过时按 object_type 分发到拥有该对象的账本；驳回时执行补偿，撤销提交前写入的待审批状态。
    """

    def __init__(self, prices: PriceVersionStore, catalog: CatalogStore, audit: AuditTrail):
        self.prices = prices
        self.catalog = catalog
        self.audit = audit
        self.locks = KeyedLock("approval")
        self._requests: Dict[str, ApprovalRequest] = {}

        self._on_approve: Dict[ObjectType, Handler] = {
            ObjectType.PRICE: self._approve_price,
            ObjectType.PRODUCT: self._approve_listing,
            ObjectType.SKU: self._approve_listing,
            ObjectType.SUPPLIER: self._approve_supplier,
        }
        self._on_reject: Dict[ObjectType, Handler] = {
            ObjectType.PRICE: self._reject_price,
            ObjectType.PRODUCT: self._reject_listing,
            ObjectType.SKU: self._reject_listing,
            ObjectType.SUPPLIER: self._reject_supplier,
        }
        for table in (self._on_approve, self._on_reject):
            missing = set(ObjectType) - set(table)
            if missing:
                raise RuntimeError(f"审批分发表缺少对象类型: {sorted(m.value for m in missing)}")

    # ==================== 查询 ====================

    def get(self, approval_id: str) -> Optional[ApprovalRequest]:
        return self._requests.get(approval_id)

    def list_requests(self, status: Optional[ApprovalStatus] = None) -> List[ApprovalRequest]:
        items = [r for r in self._requests.values() if status is None or r.status == status]
        return sorted(items, key=lambda r: r.applied_at, reverse=True)

    # ==================== 变更 ====================

    def submit(
        self,
        object_type: Union[ObjectType, str],
        object_id: str,
        action_type: str,
        before: Any,
        after: Any,
        applicant: str,
        approver: Optional[str] = None,
    ) -> ApprovalRequest:
        """生成待审批单，不修改目标对象"""
        request = ApprovalRequest(
            object_type=ObjectType(object_type),
            object_id=object_id,
            action_type=action_type,
            before_data=before,
            after_data=after,
            applicant=applicant,
            approver=approver,
        )
        self._requests[request.id] = request
        logger.info(f"提交审批: id={request.id}, {request.object_type.value}/{object_id}, action={action_type}")
        return request

    def decide(
        self,
        approval_id: str,
        status: Union[ApprovalStatus, str],
        comment: Optional[str] = None,
        operator: Optional[str] = None,
    ) -> LedgerResult:
        """审批决定，只能执行一次"""
        status = ApprovalStatus(status)
        if status == ApprovalStatus.PENDING:
            return LedgerResult.failure(ErrorKind.VALIDATION_ERROR, "审批结果只能是通过或驳回")

        with self.locks.hold(approval_id):
            request = self._requests.get(approval_id)
            if request is None:
                return LedgerResult.failure(ErrorKind.RECORD_NOT_FOUND, "未找到审批单")
            if request.is_terminal:
                return LedgerResult.failure(ErrorKind.INVALID_STATE, f"审批单已{request.status.value}，不能重复处理")

            approved = status == ApprovalStatus.APPROVED
            handler = (self._on_approve if approved else self._on_reject)[request.object_type]
            outcome = handler(request)
            if not outcome.ok:
                logger.warning(f"审批生效失败: id={approval_id}, reason={outcome.message}")
                return outcome

            request.status = status
            request.decided_at = utcnow()
            request.comment = comment

        self.audit.record(
            table_name=request.object_type.value,
            record_id=request.object_id,
            operation=AuditOperation.APPROVAL_PASS if approved else AuditOperation.APPROVAL_REJECT,
            diff_data=request.after_data if approved else {"comment": comment},
            operator=operator or request.approver,
            source="审批",
        )
        logger.info(f"审批完成: id={approval_id}, status={status.value}")
        return LedgerResult.success(request, message="已通过并生效" if approved else "已驳回")

    def hydrate(self, requests) -> None:
        self._requests = {r.id: r for r in requests}

    # ==================== 分发 ====================

    def _approve_price(self, request: ApprovalRequest) -> LedgerResult:
        result = self.prices.activate_price(request.object_id)
        if result.ok:
            self.prices.add_history(
                PriceHistoryEntry(
                    price_id=request.object_id,
                    before_data=request.before_data,
                    after_data=request.after_data,
                    operator=request.approver,
                    approval_id=request.id,
                )
            )
        return result

    def _approve_listing(self, request: ApprovalRequest) -> LedgerResult:
        return self.catalog.set_status(request.object_type, request.object_id, ListingStatus.LISTED, request.approver)

    def _approve_supplier(self, request: ApprovalRequest) -> LedgerResult:
        after = request.after_data if isinstance(request.after_data, dict) else {}
        if "settlement_price" not in after:
            return LedgerResult.failure(ErrorKind.VALIDATION_ERROR, "审批单缺少新的结算价")
        return self.catalog.apply_settlement_price(
            request.object_id,
            after["settlement_price"],
            operator=request.approver,
            reason=after.get("reason"),
            approval_id=request.id,
        )

    def _reject_price(self, request: ApprovalRequest) -> LedgerResult:
        price = self.prices.get(request.object_id)
        if price is None or price.status != PriceStatus.PENDING:
            return LedgerResult.success()
        # 修改已有价格时恢复提交前的记录，新建价格没有提交前记录，退回草稿
        if isinstance(request.before_data, dict) and request.before_data:
            # 提交前记录可能只含部分字段，缺失字段沿用当前记录，缺失状态按草稿处理
            data = {
                **price.model_dump(),
                "status": PriceStatus.DRAFT,
                **request.before_data,
                "id": request.object_id,
            }
            try:
                snapshot = PriceRecord.model_validate(data)
            except ValidationError as e:
                return LedgerResult.failure(ErrorKind.VALIDATION_ERROR, f"审批单的提交前记录不合法: {e}")
            return self.prices.restore(snapshot)
        return self.prices.revert_to_draft(request.object_id)

    def _reject_listing(self, request: ApprovalRequest) -> LedgerResult:
        table = self.catalog.products if request.object_type == ObjectType.PRODUCT else self.catalog.skus
        target = table.get(request.object_id)
        if target is None or target.status != ListingStatus.PENDING:
            return LedgerResult.success()
        before = request.before_data if isinstance(request.before_data, dict) else {}
        try:
            restored = ListingStatus(before.get("status"))
        except ValueError:
            restored = ListingStatus.DRAFT
        if restored == ListingStatus.PENDING:
            restored = ListingStatus.DRAFT
        return self.catalog.set_status(request.object_type, request.object_id, restored, request.approver)

    def _reject_supplier(self, request: ApprovalRequest) -> LedgerResult:
        # 结算价只在通过时写入，驳回无需补偿
        return LedgerResult.success()
