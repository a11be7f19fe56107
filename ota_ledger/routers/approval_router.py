"""审批 API 路由"""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Path

from ota_ledger.core.dependencies import ApprovalGateDep
from ota_ledger.core.errors import LedgerResult, LockConflictError
from ota_ledger.models.approval import ApprovalStatus
from ota_ledger.routers.common import operation_response
from ota_ledger.schemas.approval_api import DecideApprovalRequest, SubmitApprovalRequest
from ota_ledger.schemas.base import OperationResponse
from ota_ledger.services.approval_gate import ApprovalGate

logger = logging.getLogger(__name__)
router = APIRouter(
    prefix="/approvals",
    tags=["审批"],
    responses={
        404: {"description": "审批单不存在"},
        422: {"description": "请求验证失败"},
    }
)


@router.get("", summary="审批单列表")
async def list_approvals(status: Optional[ApprovalStatus] = None, gate: ApprovalGate = ApprovalGateDep):
    return {"success": True, "data": gate.list_requests(status)}


@router.post("", response_model=OperationResponse, summary="提交审批")
async def submit_approval(request: SubmitApprovalRequest, gate: ApprovalGate = ApprovalGateDep):
    try:
        approval = gate.submit(
            request.object_type,
            request.object_id,
            request.action_type,
            request.before_data,
            request.after_data,
            request.applicant,
            request.approver,
        )
        return operation_response(LedgerResult.success(approval), "已提交审批")
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"提交审批失败: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))


@router.post(
    "/{approval_id}/decide",
    response_model=OperationResponse,
    summary="审批决定",
    description="""通过后由对应账本生效：价格切换生效版本、产品/SKU 上架、供应商结算价变更。

    驳回时撤回待审批状态。审批单进入终态后不能再次处理。
    """,
)
async def decide_approval(
    request: DecideApprovalRequest,
    approval_id: str = Path(..., description="审批单ID"),
    gate: ApprovalGate = ApprovalGateDep,
):
    try:
        result = gate.decide(approval_id, request.status, request.comment, request.operator)
        return operation_response(result)
    except (HTTPException, LockConflictError):
        raise
    except Exception as e:
        logger.error(f"审批处理失败: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))
