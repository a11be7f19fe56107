import enum
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import Field

from ota_ledger.models.base import LedgerModel, LogModel, new_id, utcnow


# 上下架状态
class ListingStatus(str, enum.Enum):
    DRAFT = "draft"
    PENDING = "pending"
    LISTED = "listed"
    DELISTED = "delisted"


class Product(LedgerModel):
    id: str = Field(default_factory=new_id)
    product_name: str = Field(..., min_length=1)
    description: Optional[str] = None
    status: ListingStatus = ListingStatus.DRAFT
    structure_hash: str = ""
    created_by: Optional[str] = None


class ProductResource(LedgerModel):
    id: str = Field(default_factory=new_id)
    product_id: str = ""
    resource_id: str = Field(..., min_length=1)
    quantity: int = Field(..., gt=0)
    required_flag: bool = True
    remark: Optional[str] = None


class Sku(LedgerModel):
    id: str = Field(default_factory=new_id)
    product_id: str
    sku_name: str
    sku_type: Optional[str] = None
    sale_start: Optional[date] = None
    sale_end: Optional[date] = None
    travel_start: Optional[date] = None
    travel_end: Optional[date] = None
    status: ListingStatus = ListingStatus.DRAFT
    created_by: Optional[str] = None


class SkuChannel(LedgerModel):
    id: str = Field(default_factory=new_id)
    sku_id: str
    channel_id: str
    channel_sku_code: Optional[str] = None
    status: ListingStatus = ListingStatus.LISTED


class SupplierResource(LedgerModel):
    id: str = Field(default_factory=new_id)
    supplier_id: str
    resource_id: str
    supply_status: str = "active"
    settlement_price: Optional[Decimal] = None
    currency: Optional[str] = "CNY"
    priority: Optional[int] = None


class SupplierPriceHistoryEntry(LogModel):
    id: str = Field(default_factory=new_id)
    supplier_resource_id: str
    before_price: Optional[Decimal] = None
    after_price: Optional[Decimal] = None
    reason: Optional[str] = None
    operator: Optional[str] = None
    operated_at: datetime = Field(default_factory=utcnow)
    approval_id: Optional[str] = None
