from contextlib import asynccontextmanager
import logging
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException
from starlette.requests import Request
from starlette.responses import JSONResponse

from ota_ledger.core.config import settings
from ota_ledger.core.dependencies import container
from ota_ledger.core.errors import LockConflictError
from ota_ledger.core.redis import redis_client
from ota_ledger.routers import (
    approval_router,
    audit_router,
    catalog_router,
    inventory_router,
    order_router,
    price_router,
)
from ota_ledger.schemas.base import HealthCheckResponse
from ota_ledger.services.snapshot_loader import load_snapshot

import uvicorn

# 配置日志
logging.basicConfig(
    level=settings.LOG_LEVEL,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    # 应用启动时的初始化
    logger.info("Starting application...")

    # 加载快照
    if settings.SNAPSHOT_DIR:
        report = load_snapshot(settings.SNAPSHOT_DIR, container)
        logger.info(f"✅ Snapshot loaded from {settings.SNAPSHOT_DIR}: {report.counts}")
    else:
        logger.info("未配置 SNAPSHOT_DIR，以空账本启动")

    # Redis 连接检查
    if redis_client is not None:
        try:
            redis_client.ping()
            logger.info("✅ Redis connected successfully")
        except Exception as e:
            logger.warning(f"⚠️  Redis connection failed: {e}")
            logger.warning("⚠️  Application will run without Redis caching")

    yield

    # 应用关闭时的清理
    logger.info("Shutting down application...")

# 创建 FastAPI 应用
app = FastAPI(
    title="OTA 业务状态账本 API",
    description="库存、价格版本、审批、订单与审计的一致性账本",
    version="1.0.0",
    lifespan=lifespan
)

# 添加 CORS 中间件
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # 生产环境中应该指定具体域名
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# 注册路由
for module in (inventory_router, price_router, approval_router, order_router, catalog_router, audit_router):
    app.include_router(module.router, prefix="/api/v1")

# 全局异常处理
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.error(f"Validation error: {exc}")
    return JSONResponse(
        status_code=422,
        content={
            "success": False,
            "message": "请求参数验证失败",
            "details": jsonable_encoder(exc.errors())
        }
    )

@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    logger.error(f"HTTP error: {exc.status_code} - {exc.detail}")
    content = {
        "success": False,
        "message": exc.detail
    }
    # 账本业务错误附带错误类型
    if getattr(exc, "error", None):
        content["error"] = exc.error
        content["data"] = getattr(exc, "data", None)
    return JSONResponse(status_code=exc.status_code, content=content)

@app.exception_handler(LockConflictError)
async def lock_conflict_handler(request: Request, exc: LockConflictError):
    logger.warning(f"Lock conflict: {exc.key}")
    return JSONResponse(
        status_code=429,
        content={
            "success": False,
            "message": str(exc)
        }
    )

@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unexpected error: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "message": "服务器内部错误"
        }
    )


# 健康检查端点
@app.get("/health", response_model=HealthCheckResponse)
async def health_check():
    """健康检查接口"""
    return {
        "status": "healthy",
        "service": "ota-ledger",
        "version": "1.0.0"
    }

@app.get("/")
async def read_root():
    """API 根路径"""
    return {
        "message": "欢迎使用 OTA 业务状态账本",
        "docs": "/docs",
        "health": "/health"
    }


if __name__ == "__main__":
    uvicorn.run(
        "ota_ledger.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True
    )
