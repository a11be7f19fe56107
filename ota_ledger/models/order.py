import enum
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import Field, model_validator

from ota_ledger.models.base import LedgerModel, LogModel, new_id, utcnow


# 订单状态
class OrderStatus(str, enum.Enum):
    CREATED = "created"      # 仅出现在状态历史中
    PAID = "paid"
    VERIFIED = "verified"
    REFUNDED = "refunded"


def calc_amounts(sale_price: Decimal, cost_price: Optional[Decimal], quantity: int) -> dict:
    """计算销售额、成本额与利润；成本缺失时后两者为空"""
    sale_amount = sale_price * quantity
    cost_amount = cost_price * quantity if cost_price is not None else None
    profit_amount = sale_amount - cost_amount if cost_amount is not None else None
    return {
        "sale_amount": sale_amount,
        "cost_amount": cost_amount,
        "profit_amount": profit_amount,
    }


class Order(LedgerModel):
    id: str = Field(default_factory=new_id)
    order_no: str = Field(..., min_length=1)
    channel_id: str = Field(..., min_length=1)
    sku_id: str = Field(..., min_length=1)
    product_id: str = ""
    travel_date: date
    quantity: int = Field(..., gt=0)
    sale_price: Decimal = Field(..., ge=0)
    cost_price: Optional[Decimal] = None
    sale_amount: Optional[Decimal] = None
    cost_amount: Optional[Decimal] = None
    profit_amount: Optional[Decimal] = None
    status: OrderStatus = OrderStatus.PAID
    created_by: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    verified_at: Optional[datetime] = None
    refunded_at: Optional[datetime] = None
    remark: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _fill_amounts(cls, data):
        # 导入数据可能缺少派生金额，按单价与数量补齐
        if isinstance(data, dict) and data.get("sale_amount") is None:
            try:
                sale_price = Decimal(str(data["sale_price"]))
                quantity = int(data["quantity"])
                cost = data.get("cost_price")
                cost_price = Decimal(str(cost)) if cost is not None else None
            except (KeyError, TypeError, ValueError, ArithmeticError):
                # 交给字段校验报告具体错误
                return data
            data = {**data, **calc_amounts(sale_price, cost_price, quantity)}
        return data

    @property
    def import_key(self) -> tuple:
        return (self.order_no, self.channel_id)


class OrderStatusHistoryEntry(LogModel):
    id: str = Field(default_factory=new_id)
    order_id: str
    before_status: OrderStatus
    after_status: OrderStatus
    operator: Optional[str] = None
    operated_at: datetime = Field(default_factory=utcnow)
    reason: Optional[str] = None
