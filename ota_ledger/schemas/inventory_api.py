"""库存API专用的Pydantic模型"""

from datetime import date
from typing import List, Optional

from pydantic import BaseModel, Field

from ota_ledger.schemas.base import BaseResponse


# ==================== 请求模型 ====================

class InitInventoryRequest(BaseModel):
    """批量初始化库存请求"""
    sku_id: str = Field(
        ...,
        min_length=1,
        description="SKU ID",
        examples=["S1"]
    )
    dates: List[date] = Field(
        ...,
        min_length=1,
        max_length=366,
        description="库存日期列表",
        examples=[["2024-06-01", "2024-06-02"]]
    )
    total_qty: int = Field(
        ...,
        ge=0,
        description="每日库存总量",
        examples=[10]
    )
    operator: str = Field(..., min_length=1, description="操作人")
    reason: Optional[str] = Field(None, description="初始化原因")


class InventoryMoveRequest(BaseModel):
    """冻结 / 核销 / 解冻请求"""
    sku_id: str = Field(..., min_length=1, description="SKU ID", examples=["S1"])
    inventory_date: date = Field(..., description="库存日期", examples=["2024-06-01"])
    quantity: int = Field(..., gt=0, description="数量", examples=[2])
    order_id: str = Field(
        ...,
        min_length=1,
        max_length=64,
        description="关联订单ID",
        examples=["ORD202406010001"]
    )
    operator: str = Field(..., min_length=1, description="操作人")


class AdjustInventoryRequest(BaseModel):
    """人工调整请求"""
    sku_id: str = Field(..., min_length=1, description="SKU ID")
    inventory_date: date = Field(..., description="库存日期")
    total_qty: int = Field(..., ge=0, description="调整后的总量")
    operator: str = Field(..., min_length=1, description="操作人")
    remark: Optional[str] = Field(None, description="备注")


# ==================== 响应模型 ====================

class FutureStockResponse(BaseResponse):
    """未来库存检查响应"""
    sku_id: str = Field(..., description="SKU ID")
    horizon_days: int = Field(..., description="检查天数")
    has_stock: bool = Field(..., description="是否有可售库存")


class AvailableStockResponse(BaseResponse):
    """单日可用库存响应"""
    sku_id: str
    inventory_date: date
    available_qty: int = Field(..., ge=0, description="可用库存数量")
