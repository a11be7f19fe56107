import enum
from datetime import datetime
from typing import Any, Optional

from pydantic import Field

from ota_ledger.models.base import LedgerModel, new_id, utcnow


# 可审批对象类型，新增类型时必须同时在审批分发表中登记
class ObjectType(str, enum.Enum):
    PRICE = "price"
    PRODUCT = "product"
    SKU = "sku"
    SUPPLIER = "supplier"


class ApprovalStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ApprovalRequest(LedgerModel):
    id: str = Field(default_factory=new_id)
    object_type: ObjectType
    object_id: str = Field(..., min_length=1)
    action_type: str
    before_data: Any = None
    after_data: Any = None
    status: ApprovalStatus = ApprovalStatus.PENDING
    applicant: str
    approver: Optional[str] = None
    applied_at: datetime = Field(default_factory=utcnow)
    decided_at: Optional[datetime] = None
    comment: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status != ApprovalStatus.PENDING
