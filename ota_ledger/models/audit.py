import enum
from datetime import datetime
from typing import Any, Optional

from pydantic import Field

from ota_ledger.models.base import LogModel, new_id, utcnow


class AuditOperation(str, enum.Enum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    STATUS_CHANGE = "STATUS_CHANGE"
    APPROVAL_PASS = "APPROVAL_PASS"
    APPROVAL_REJECT = "APPROVAL_REJECT"
    COMPENSATE = "COMPENSATE"      # 跨账本补偿


class AuditEntry(LogModel):
    id: str = Field(default_factory=new_id)
    table_name: str
    record_id: str
    operation: AuditOperation
    diff_data: Any = None
    operator: Optional[str] = None
    operated_at: datetime = Field(default_factory=utcnow)
    source: Optional[str] = None
