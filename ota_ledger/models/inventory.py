import enum
from datetime import date, datetime
from typing import Optional

from pydantic import Field, model_validator

from ota_ledger.models.base import LedgerModel, LogModel, new_id, utcnow


# 库存变更类型
class InventoryChangeType(str, enum.Enum):
    INITIALIZE = "initialize"          # 首次初始化
    ADJUST = "adjust"                  # 批量初始化覆盖已有总量
    FREEZE = "freeze"                  # 支付冻结
    VERIFY = "verify"                  # 核销扣减
    RELEASE = "release"                # 退款解冻
    MANUAL_ADJUST = "manual_adjust"    # 人工调整


class QtySnapshot(LogModel):
    total: int
    frozen: int
    sold: int


class InventoryRecord(LedgerModel):
    """(sku_id, inventory_date) 维度的库存记录

    不变式: frozen_qty + sold_qty <= total_qty
    """
    id: str = Field(default_factory=new_id)
    sku_id: str = Field(..., min_length=1)
    inventory_date: date
    total_qty: int = Field(0, ge=0)
    frozen_qty: int = Field(0, ge=0)
    sold_qty: int = Field(0, ge=0)
    status: str = "normal"

    @model_validator(mode="after")
    def _check_capacity(self):
        if self.frozen_qty + self.sold_qty > self.total_qty:
            raise ValueError("frozen_qty + sold_qty 不能超过 total_qty")
        return self

    @property
    def key(self) -> tuple:
        return (self.sku_id, self.inventory_date)

    @property
    def available_qty(self) -> int:
        return self.total_qty - self.frozen_qty - self.sold_qty

    def snapshot(self) -> QtySnapshot:
        return QtySnapshot(total=self.total_qty, frozen=self.frozen_qty, sold=self.sold_qty)


class InventoryLogEntry(LogModel):
    id: str = Field(default_factory=new_id)
    sku_id: str
    inventory_date: date
    change_type: InventoryChangeType
    before_qty: QtySnapshot
    after_qty: QtySnapshot
    operator: Optional[str] = None
    operated_at: datetime = Field(default_factory=utcnow)
    related_order_id: Optional[str] = None
    remark: Optional[str] = None
