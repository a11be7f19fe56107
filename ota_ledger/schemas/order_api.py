from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from ota_ledger.schemas.base import BaseResponse


# 创建订单请求
class PlaceOrderRequest(BaseModel):
    sku_id: str = Field(..., min_length=1)
    channel_id: str = Field(..., min_length=1)
    travel_date: date = Field(..., description="出行日期")
    quantity: int = Field(..., gt=0)
    sale_price: Optional[Decimal] = Field(None, ge=0, description="不传则取出行日生效价格")
    cost_price: Optional[Decimal] = Field(None, ge=0)
    order_no: Optional[str] = Field(None, max_length=64)
    operator: str = Field(..., min_length=1)
    remark: Optional[str] = None


class OrderActionRequest(BaseModel):
    operator: str = Field(..., min_length=1, description="操作人")


class ImportOrdersRequest(BaseModel):
    rows: List[Dict[str, Any]] = Field(..., description="已解析的订单行")


class ImportOrdersResponse(BaseResponse):
    added: int = Field(..., ge=0)
    skipped: int = Field(..., ge=0)
