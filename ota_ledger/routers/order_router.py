"""订单 API 路由"""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Path

from ota_ledger.core.dependencies import CoordinatorDep, OrderLedgerDep
from ota_ledger.core.errors import LockConflictError
from ota_ledger.models.order import OrderStatus
from ota_ledger.routers.common import ensure_ok, operation_response
from ota_ledger.schemas.base import OperationResponse
from ota_ledger.schemas.order_api import (
    ImportOrdersRequest,
    ImportOrdersResponse,
    OrderActionRequest,
    PlaceOrderRequest,
)
from ota_ledger.services.order_coordinator import OrderCoordinator
from ota_ledger.services.order_ledger import OrderLedger

logger = logging.getLogger(__name__)
router = APIRouter(
    prefix="/orders",
    tags=["订单"],
    responses={
        400: {"description": "库存不足或状态不允许"},
        404: {"description": "订单不存在"},
        409: {"description": "订单号重复"},
        429: {"description": "请求过于频繁"},
    }
)


@router.get("", summary="订单列表")
async def list_orders(status: Optional[OrderStatus] = None, orders: OrderLedger = OrderLedgerDep):
    return {"success": True, "data": orders.list_orders(status)}


@router.get("/history", summary="订单状态历史")
async def order_history(order_id: Optional[str] = None, orders: OrderLedger = OrderLedgerDep):
    return {"success": True, "data": orders.history(order_id)}


@router.post(
    "",
    response_model=OperationResponse,
    summary="下单",
    description="""先冻结出行日库存再创建订单，订单创建失败时自动解冻。""",
)
async def place_order(request: PlaceOrderRequest, coordinator: OrderCoordinator = CoordinatorDep):
    try:
        result = coordinator.place_order(
            sku_id=request.sku_id,
            channel_id=request.channel_id,
            travel_date=request.travel_date,
            quantity=request.quantity,
            operator=request.operator,
            sale_price=request.sale_price,
            cost_price=request.cost_price,
            order_no=request.order_no,
            remark=request.remark,
        )
        return operation_response(result)
    except (HTTPException, LockConflictError):
        raise
    except Exception as e:
        logger.error(f"下单失败: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/import", response_model=ImportOrdersResponse, summary="批量导入订单")
async def import_orders(request: ImportOrdersRequest, orders: OrderLedger = OrderLedgerDep):
    summary = ensure_ok(orders.import_orders(request.rows)).data
    return {
        "success": True,
        "message": f"导入 {summary.added} 条，跳过 {summary.skipped} 条",
        "added": summary.added,
        "skipped": summary.skipped,
    }


@router.post("/{order_id}/verify", response_model=OperationResponse, summary="核销订单")
async def verify_order(
    request: OrderActionRequest,
    order_id: str = Path(..., description="订单ID"),
    coordinator: OrderCoordinator = CoordinatorDep,
):
    try:
        return operation_response(coordinator.verify(order_id, request.operator))
    except (HTTPException, LockConflictError):
        raise
    except Exception as e:
        logger.error(f"核销订单失败: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/{order_id}/refund", response_model=OperationResponse, summary="订单退款")
async def refund_order(
    request: OrderActionRequest,
    order_id: str = Path(..., description="订单ID"),
    coordinator: OrderCoordinator = CoordinatorDep,
):
    try:
        return operation_response(coordinator.refund(order_id, request.operator))
    except (HTTPException, LockConflictError):
        raise
    except Exception as e:
        logger.error(f"订单退款失败: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))
