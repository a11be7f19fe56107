"""定价API模型"""

from datetime import date
from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, Field


class ConflictQueryRequest(BaseModel):
    """时间冲突检查"""
    sku_id: str = Field(..., min_length=1)
    channel_id: str = Field(..., min_length=1)
    start_at: date
    end_at: date
    exclude_id: Optional[str] = Field(None, description="排除的价格ID（编辑自身时使用）")


class ProposePriceRequest(BaseModel):
    """调价请求：写入待审批价格并生成审批单"""
    id: Optional[str] = Field(None, description="编辑已有价格时传入")
    sku_id: str = Field(..., min_length=1)
    channel_id: str = Field(..., min_length=1)
    sale_price: Decimal = Field(..., ge=0, description="售价")
    cost_price: Optional[Decimal] = Field(None, ge=0, description="成本价")
    start_at: date
    end_at: date
    applicant: str = Field(..., min_length=1, description="申请人")
    approver: Optional[str] = Field(None, description="审批人")
    override: bool = Field(False, description="存在时间冲突时仍然提交")


class CloneDraftRequest(BaseModel):
    sku_id: str = Field(..., min_length=1)
    channel_id: str = Field(..., min_length=1)


class PriceHistoryRequest(BaseModel):
    price_id: str = Field(..., min_length=1)
    before_data: Any = None
    after_data: Any = None
    operator: Optional[str] = None
    approval_id: Optional[str] = None
