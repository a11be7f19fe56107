import enum
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional

from pydantic import Field

from ota_ledger.models.base import LedgerModel, LogModel, new_id, utcnow


# 价格状态
class PriceStatus(str, enum.Enum):
    DRAFT = "draft"
    PENDING = "pending"          # 待审批
    ACTIVE = "active"            # 生效
    SUPERSEDED = "superseded"    # 已失效（被新价格替代）


# 参与时间冲突判断的状态
LIVE_PRICE_STATUSES = (PriceStatus.DRAFT, PriceStatus.PENDING, PriceStatus.ACTIVE)


class PriceRecord(LedgerModel):
    id: str = Field(default_factory=new_id)
    sku_id: str = Field(..., min_length=1)
    channel_id: str = Field(..., min_length=1)
    sale_price: Decimal = Field(..., ge=0)
    cost_price: Optional[Decimal] = Field(None, ge=0)
    start_at: date
    end_at: date    # 闭区间
    status: PriceStatus = PriceStatus.DRAFT
    created_by: Optional[str] = None

    @property
    def pair(self) -> tuple:
        return (self.sku_id, self.channel_id)

    def overlaps(self, start: date, end: date) -> bool:
        return self.start_at <= end and start <= self.end_at

    def covers(self, day: date) -> bool:
        return self.start_at <= day <= self.end_at


class PriceHistoryEntry(LogModel):
    id: str = Field(default_factory=new_id)
    price_id: str
    before_data: Any = None
    after_data: Any = None
    operator: Optional[str] = None
    operated_at: datetime = Field(default_factory=utcnow)
    approval_id: Optional[str] = None
