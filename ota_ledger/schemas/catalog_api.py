from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from ota_ledger.schemas.base import BaseResponse


class ResourceLine(BaseModel):
    resource_id: str = Field(..., min_length=1)
    quantity: int = Field(..., gt=0)
    required_flag: bool = True
    remark: Optional[str] = None


class FingerprintRequest(BaseModel):
    lines: List[ResourceLine] = Field(..., min_length=1)


class FingerprintResponse(BaseResponse):
    structure_hash: str
    duplicate_product_id: Optional[str] = Field(None, description="命中的已有产品")


class SaveProductRequest(BaseModel):
    id: Optional[str] = Field(None, description="编辑已有产品时传入")
    product_name: str = Field(..., min_length=1)
    description: Optional[str] = None
    lines: List[ResourceLine] = Field(..., min_length=1)
    operator: str = Field(..., min_length=1)
    override: bool = Field(False, description="结构指纹重复时仍然保存")
    has_orders: bool = Field(False, description="产品是否已有订单")


class ListingRequest(BaseModel):
    applicant: str = Field(..., min_length=1)
    approver: Optional[str] = None


class SettlementChangeRequest(BaseModel):
    settlement_price: Decimal = Field(..., ge=0)
    reason: Optional[str] = None
    applicant: str = Field(..., min_length=1)
    approver: Optional[str] = None


class ShelfGateResponse(BaseResponse):
    sku_id: str
    missing: List[str] = Field(default_factory=list, description="缺失的上架条件")
