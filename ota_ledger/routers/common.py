"""路由公共工具：把账本结果转换为 HTTP 响应"""

from fastapi import HTTPException
from fastapi.encoders import jsonable_encoder

from ota_ledger.core.errors import ErrorKind, LedgerResult

ERROR_STATUS = {
    ErrorKind.NOT_INITIALIZED: 404,
    ErrorKind.RECORD_NOT_FOUND: 404,
    ErrorKind.TIME_CONFLICT: 409,
    ErrorKind.DUPLICATE_KEY: 409,
    ErrorKind.STRUCTURE_DUPLICATE: 409,
}


class LedgerHTTPException(HTTPException):
    """携带账本错误类型的 HTTPException"""

    def __init__(self, result: LedgerResult):
        super().__init__(status_code=ERROR_STATUS.get(result.error, 400), detail=result.message)
        self.error = result.error.value if result.error else None
        self.data = jsonable_encoder(result.data) if result.data is not None else None


def ensure_ok(result: LedgerResult) -> LedgerResult:
    if not result.ok:
        raise LedgerHTTPException(result)
    return result


def operation_response(result: LedgerResult, message: str = None) -> dict:
    """成功结果转为 OperationResponse，失败结果抛出 LedgerHTTPException"""
    ensure_ok(result)
    return {
        "success": True,
        "message": message or result.message or "操作成功",
        "data": jsonable_encoder(result.data),
    }
