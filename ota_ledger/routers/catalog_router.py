"""产品结构与上架 API 路由"""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Path, Query

from ota_ledger.core.config import settings
from ota_ledger.core.dependencies import ContainerDep
from ota_ledger.core.errors import ErrorKind, LedgerResult, LockConflictError
from ota_ledger.models.approval import ObjectType
from ota_ledger.models.catalog import ListingStatus, Product, ProductResource
from ota_ledger.routers.common import ensure_ok, operation_response
from ota_ledger.schemas.base import OperationResponse
from ota_ledger.schemas.catalog_api import (
    FingerprintRequest,
    FingerprintResponse,
    ListingRequest,
    SaveProductRequest,
    SettlementChangeRequest,
    ShelfGateResponse,
)
from ota_ledger.services.container import LedgerContainer
from ota_ledger.services.structure_fingerprint import build_hash

logger = logging.getLogger(__name__)
router = APIRouter(
    prefix="/catalog",
    tags=["产品结构"],
    responses={
        404: {"description": "对象不存在"},
        409: {"description": "结构指纹重复"},
        422: {"description": "请求验证失败"},
    }
)

LISTING_TYPES = {"products": ObjectType.PRODUCT, "skus": ObjectType.SKU}


@router.post("/fingerprint", response_model=FingerprintResponse, summary="计算结构指纹")
async def fingerprint(request: FingerprintRequest, container: LedgerContainer = ContainerDep):
    structure_hash = build_hash(request.lines)
    duplicate = container.catalog.find_by_hash(structure_hash)
    return {
        "success": True,
        "message": "结构指纹命中已有产品" if duplicate else "未发现重复结构",
        "structure_hash": structure_hash,
        "duplicate_product_id": duplicate.id if duplicate else None,
    }


@router.post(
    "/products",
    response_model=OperationResponse,
    summary="保存产品结构",
    description="""按资源行计算结构指纹并保存。

    指纹与其他产品重复时返回 409，data 为已有产品 ID，可带 override=true 仍然保存。
    """,
)
async def save_product(request: SaveProductRequest, container: LedgerContainer = ContainerDep):
    try:
        fields = request.model_dump(include={"id", "product_name", "description"}, exclude_none=True)
        product = Product(**fields, created_by=request.operator)
        lines = [ProductResource(**line.model_dump()) for line in request.lines]
        result = container.catalog.save_product(
            product, lines, request.operator, override=request.override, has_orders=request.has_orders
        )
        return operation_response(result, "产品已保存")
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"保存产品失败: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/skus/{sku_id}/shelf-gates", response_model=ShelfGateResponse, summary="上架前置检查")
async def shelf_gates(
    sku_id: str = Path(..., description="SKU ID"),
    horizon_days: Optional[int] = Query(None, ge=1, le=365, description="库存检查天数"),
    container: LedgerContainer = ContainerDep,
):
    missing = container.catalog.shelf_gates(
        sku_id,
        container.prices.list_records(sku_id),
        container.inventory.list_records(sku_id),
        horizon_days or settings.FUTURE_STOCK_HORIZON_DAYS,
    )
    return {
        "success": not missing,
        "message": "可以上架" if not missing else "、".join(missing),
        "sku_id": sku_id,
        "missing": missing,
    }


@router.post(
    "/{kind}/{object_id}/listing",
    response_model=OperationResponse,
    summary="提交上架审批",
    description="""产品或 SKU 置为待审批并生成上架审批单，SKU 需先通过上架前置检查。""",
)
async def request_listing(
    request: ListingRequest,
    kind: str = Path(..., pattern="^(products|skus)$", description="products 或 skus"),
    object_id: str = Path(..., description="对象ID"),
    container: LedgerContainer = ContainerDep,
):
    try:
        object_type = LISTING_TYPES[kind]
        table = container.catalog.products if object_type == ObjectType.PRODUCT else container.catalog.skus
        target = table.get(object_id)
        if target is None:
            ensure_ok(LedgerResult.failure(ErrorKind.RECORD_NOT_FOUND, f"未找到 {object_type.value} {object_id}"))
        if target.status in (ListingStatus.PENDING, ListingStatus.LISTED):
            ensure_ok(
                LedgerResult.failure(ErrorKind.INVALID_STATE, f"当前状态 {target.status.value} 不能提交上架")
            )

        if object_type == ObjectType.SKU:
            missing = container.catalog.shelf_gates(
                object_id,
                container.prices.list_records(object_id),
                container.inventory.list_records(object_id),
                settings.FUTURE_STOCK_HORIZON_DAYS,
            )
            if missing:
                ensure_ok(LedgerResult.failure(ErrorKind.VALIDATION_ERROR, "、".join(missing), data=missing))

        before = {"status": target.status.value}
        ensure_ok(
            container.catalog.set_status(object_type, object_id, ListingStatus.PENDING, request.applicant)
        )
        approval = container.approvals.submit(
            object_type,
            object_id,
            "上架",
            before,
            {"status": ListingStatus.LISTED.value},
            request.applicant,
            request.approver,
        )
        return {"success": True, "message": f"已提交上架审批 {approval.id}", "data": approval}
    except (HTTPException, LockConflictError):
        raise
    except Exception as e:
        logger.error(f"提交上架失败: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))


@router.post(
    "/supplier-resources/{supplier_resource_id}/settlement",
    response_model=OperationResponse,
    summary="提交结算价变更审批",
)
async def request_settlement_change(
    request: SettlementChangeRequest,
    supplier_resource_id: str = Path(..., description="供给关系ID"),
    container: LedgerContainer = ContainerDep,
):
    target = container.catalog.supplier_resources.get(supplier_resource_id)
    if target is None:
        ensure_ok(LedgerResult.failure(ErrorKind.RECORD_NOT_FOUND, "未找到供给关系"))
    approval = container.approvals.submit(
        ObjectType.SUPPLIER,
        supplier_resource_id,
        "结算价变更",
        {"settlement_price": str(target.settlement_price) if target.settlement_price is not None else None},
        {"settlement_price": str(request.settlement_price), "reason": request.reason},
        request.applicant,
        request.approver,
    )
    return {"success": True, "message": f"已提交结算价审批 {approval.id}", "data": approval}
