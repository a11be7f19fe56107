"""定价 API 路由"""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Path

from ota_ledger.core.dependencies import ApprovalGateDep, PriceStoreDep
from ota_ledger.core.errors import LedgerResult, LockConflictError
from ota_ledger.models.approval import ObjectType
from ota_ledger.models.price import PriceHistoryEntry, PriceRecord
from ota_ledger.routers.common import ensure_ok, operation_response
from ota_ledger.schemas.base import OperationResponse
from ota_ledger.schemas.price_api import (
    CloneDraftRequest,
    ConflictQueryRequest,
    PriceHistoryRequest,
    ProposePriceRequest,
)
from ota_ledger.services.approval_gate import ApprovalGate
from ota_ledger.services.price_store import PriceVersionStore

logger = logging.getLogger(__name__)
router = APIRouter(
    prefix="/prices",
    tags=["定价"],
    responses={
        404: {"description": "价格不存在"},
        409: {"description": "时间冲突"},
        422: {"description": "请求验证失败"},
        429: {"description": "请求过于频繁"},
    }
)


@router.get("", summary="价格列表")
async def list_prices(
    sku_id: Optional[str] = None,
    channel_id: Optional[str] = None,
    store: PriceVersionStore = PriceStoreDep,
):
    return {"success": True, "data": store.list_records(sku_id, channel_id)}


@router.post("/conflicts", summary="时间冲突检查")
async def check_conflict(request: ConflictQueryRequest, store: PriceVersionStore = PriceStoreDep):
    conflicts = store.check_conflict(
        request.sku_id, request.channel_id, request.start_at, request.end_at, request.exclude_id
    )
    return {"success": True, "data": conflicts}


@router.put("", response_model=OperationResponse, summary="新增或整条替换价格")
async def upsert_price(record: PriceRecord, store: PriceVersionStore = PriceStoreDep):
    try:
        saved = store.upsert(record)
        return operation_response(LedgerResult.success(saved), "已保存")
    except (HTTPException, LockConflictError):
        raise
    except Exception as e:
        logger.error(f"保存价格失败: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))


@router.post(
    "/propose",
    response_model=OperationResponse,
    summary="调价并提交审批",
    description="""冲突检测通过后写入待审批价格，并生成 object_type=price 的审批单。

    存在时间冲突时返回 409，可带 override=true 重新提交。
    """,
)
async def propose_price(
    request: ProposePriceRequest,
    store: PriceVersionStore = PriceStoreDep,
    gate: ApprovalGate = ApprovalGateDep,
):
    try:
        fields = request.model_dump(exclude={"applicant", "approver", "override"}, exclude_none=True)
        record = PriceRecord(**fields, created_by=request.applicant)
        before = store.get(record.id)
        result = store.propose(record, request.applicant, override=request.override)
        ensure_ok(result)

        approval = gate.submit(
            ObjectType.PRICE,
            record.id,
            "调价",
            before.model_dump(mode="json") if before else None,
            result.data.model_dump(mode="json"),
            request.applicant,
            request.approver,
        )
        return {
            "success": True,
            "message": f"已生成调价草稿，审批单 {approval.id}",
            "data": {"price": result.data, "approval_id": approval.id},
        }
    except (HTTPException, LockConflictError):
        raise
    except Exception as e:
        logger.error(f"调价失败: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/clone-draft", response_model=OperationResponse, summary="复制生效价格为草稿")
async def clone_active_to_draft(request: CloneDraftRequest, store: PriceVersionStore = PriceStoreDep):
    draft = store.clone_active_to_draft(request.sku_id, request.channel_id)
    return {
        "success": True,
        "message": "已复制生效价格" if draft else "当前无生效价格",
        "data": draft,
    }


@router.post("/{price_id}/activate", response_model=OperationResponse, summary="直接生效价格")
async def activate_price(
    price_id: str = Path(..., description="价格ID"),
    store: PriceVersionStore = PriceStoreDep,
):
    try:
        return operation_response(store.activate_price(price_id), "价格已生效")
    except (HTTPException, LockConflictError):
        raise
    except Exception as e:
        logger.error(f"生效价格失败: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/history", summary="价格变更历史")
async def price_history(price_id: Optional[str] = None, store: PriceVersionStore = PriceStoreDep):
    return {"success": True, "data": store.history(price_id)}


@router.post("/history", response_model=OperationResponse, summary="追加价格历史")
async def add_history(request: PriceHistoryRequest, store: PriceVersionStore = PriceStoreDep):
    entry = store.add_history(PriceHistoryEntry(**request.model_dump()))
    return operation_response(LedgerResult.success(entry), "已记录")
