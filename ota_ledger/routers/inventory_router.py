"""库存管理 API 路由"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, HTTPException, Path, Query
import logging

from ota_ledger.core.config import settings
from ota_ledger.core.errors import LockConflictError
from ota_ledger.core.dependencies import InventoryDep
from ota_ledger.routers.common import operation_response
from ota_ledger.schemas.base import OperationResponse
from ota_ledger.schemas.inventory_api import (
    AdjustInventoryRequest,
    AvailableStockResponse,
    FutureStockResponse,
    InitInventoryRequest,
    InventoryMoveRequest,
)
from ota_ledger.services.inventory_ledger import InventoryLedger

logger = logging.getLogger(__name__)
router = APIRouter(
    prefix="/inventory",
    tags=["库存管理"],
    responses={
        400: {"description": "请求参数错误或库存不足"},
        404: {"description": "库存记录不存在"},
        422: {"description": "请求验证失败"},
        429: {"description": "请求过于频繁"},
        500: {"description": "服务器内部错误"}
    }
)


@router.post(
    "/init",
    response_model=OperationResponse,
    summary="批量初始化库存",
    description="""按日期批量初始化库存。

    - 日期不存在：新建记录，冻结与已售为 0
    - 日期已存在：只覆盖总量，冻结与已售保持不变
    - 总量低于已冻结+已售时整批拒绝
    """,
)
async def init_inventory(request: InitInventoryRequest, ledger: InventoryLedger = InventoryDep):
    try:
        result = ledger.init_inventory(
            request.sku_id, request.dates, request.total_qty, request.operator, request.reason
        )
        return operation_response(result, "已批量初始化/调整库存")
    except (HTTPException, LockConflictError):
        # 透传 HTTPException
        raise
    except Exception as e:
        logger.error(f"初始化库存失败: {str(e)}")
        # 未知异常统一抛 500
        raise HTTPException(status_code=500, detail=str(e))


@router.post(
    "/freeze",
    response_model=OperationResponse,
    summary="冻结库存",
    description="""支付时冻结库存，可用 = 总量 - 冻结 - 已售 必须不小于冻结数量。""",
    responses={
        400: {
            "description": "库存不足",
            "content": {
                "application/json": {
                    "example": {
                        "success": False,
                        "message": "库存不足，无法冻结",
                        "error": "InsufficientStock"
                    }
                }
            }
        }
    }
)
async def freeze_stock(request: InventoryMoveRequest, ledger: InventoryLedger = InventoryDep):
    try:
        result = ledger.freeze(
            request.sku_id, request.inventory_date, request.quantity, request.order_id, request.operator
        )
        return operation_response(result, "冻结成功")
    except (HTTPException, LockConflictError):
        raise
    except Exception as e:
        logger.error(f"冻结库存失败: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))


@router.post(
    "/consume",
    response_model=OperationResponse,
    summary="核销库存",
    description="""核销时冻结转已售，冻结数量不足时拒绝且不写日志。""",
)
async def consume_stock(request: InventoryMoveRequest, ledger: InventoryLedger = InventoryDep):
    try:
        result = ledger.consume(
            request.sku_id, request.inventory_date, request.quantity, request.order_id, request.operator
        )
        return operation_response(result, "核销成功")
    except (HTTPException, LockConflictError):
        raise
    except Exception as e:
        logger.error(f"核销库存失败: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))


@router.post(
    "/release",
    response_model=OperationResponse,
    summary="解冻库存",
    description="""退款时归还冻结库存，已售数量不变。""",
)
async def release_stock(request: InventoryMoveRequest, ledger: InventoryLedger = InventoryDep):
    try:
        result = ledger.release(
            request.sku_id, request.inventory_date, request.quantity, request.order_id, request.operator
        )
        return operation_response(result, "解冻成功")
    except (HTTPException, LockConflictError):
        raise
    except Exception as e:
        logger.error(f"解冻库存失败: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))


@router.post(
    "/adjust",
    response_model=OperationResponse,
    summary="人工调整库存总量",
)
async def adjust_stock(request: AdjustInventoryRequest, ledger: InventoryLedger = InventoryDep):
    try:
        result = ledger.adjust(
            request.sku_id, request.inventory_date, request.total_qty, request.operator, request.remark
        )
        return operation_response(result, "已人工调整库存，写入日志")
    except (HTTPException, LockConflictError):
        raise
    except Exception as e:
        logger.error(f"人工调整库存失败: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))


@router.get(
    "/future-stock/{sku_id}",
    response_model=FutureStockResponse,
    summary="未来库存检查",
)
async def future_stock(
    sku_id: str = Path(..., description="SKU ID"),
    horizon_days: Optional[int] = Query(None, ge=1, le=365, description="检查天数"),
    ledger: InventoryLedger = InventoryDep,
):
    days = horizon_days or settings.FUTURE_STOCK_HORIZON_DAYS
    return {
        "success": True,
        "sku_id": sku_id,
        "horizon_days": days,
        "has_stock": ledger.has_future_stock(sku_id, days),
    }


@router.get(
    "/stock/{sku_id}/{inventory_date}",
    response_model=AvailableStockResponse,
    summary="查询单日可用库存",
    description="""优先读取 Redis 缓存，未命中再读账本，结果缓存 5 分钟。""",
)
async def get_available(
    sku_id: str = Path(..., description="SKU ID"),
    inventory_date: date = Path(..., description="库存日期"),
    ledger: InventoryLedger = InventoryDep,
):
    try:
        return {
            "success": True,
            "sku_id": sku_id,
            "inventory_date": inventory_date,
            "available_qty": ledger.available(sku_id, inventory_date),
        }
    except Exception as e:
        logger.error(f"查询库存失败: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/records", summary="库存记录列表")
async def list_records(sku_id: Optional[str] = None, ledger: InventoryLedger = InventoryDep):
    return {"success": True, "data": ledger.list_records(sku_id)}


@router.get("/logs", summary="库存变更日志")
async def list_logs(
    sku_id: Optional[str] = None,
    inventory_date: Optional[date] = None,
    ledger: InventoryLedger = InventoryDep,
):
    return {"success": True, "data": ledger.logs(sku_id, inventory_date)}
