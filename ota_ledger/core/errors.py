"""账本错误类型与操作结果"""

import enum
from dataclasses import dataclass, field
from typing import Any, Optional


class ErrorKind(str, enum.Enum):
    VALIDATION_ERROR = "ValidationError"        # 缺少或非法的必填字段
    NOT_INITIALIZED = "NotInitialized"          # 该日期未初始化库存
    RECORD_NOT_FOUND = "RecordNotFound"
    INSUFFICIENT_STOCK = "InsufficientStock"
    INSUFFICIENT_FROZEN = "InsufficientFrozen"
    TIME_CONFLICT = "TimeConflict"              # 价格区间与在用记录重叠
    DUPLICATE_KEY = "DuplicateKey"              # 订单导入主键冲突
    STRUCTURE_DUPLICATE = "StructureDuplicate"  # 非致命，可显式覆盖
    INVALID_STATE = "InvalidState"              # 非法的状态流转


@dataclass(frozen=True)
class LedgerResult:
    """账本操作结果

    业务失败以结果返回而不是抛异常，调用方据此决定提示覆盖或阻止提交。
    """
    ok: bool
    message: Optional[str] = None
    error: Optional[ErrorKind] = None
    data: Any = field(default=None, compare=False)

    @classmethod
    def success(cls, data: Any = None, message: Optional[str] = None) -> "LedgerResult":
        return cls(ok=True, message=message, data=data)

    @classmethod
    def failure(cls, error: ErrorKind, message: str, data: Any = None) -> "LedgerResult":
        return cls(ok=False, message=message, error=error, data=data)


class LockConflictError(Exception):
    """未能获取分布式锁（基础设施故障，不属于业务错误）"""

    def __init__(self, key: str):
        super().__init__(f"库存操作冲突，请稍后重试: {key}")
        self.key = key


class DuplicateOrderError(Exception):
    """同渠道订单号已存在"""

    def __init__(self, order_no: str, channel_id: str):
        super().__init__(f"订单号 {order_no} 在渠道 {channel_id} 已存在")
        self.order_no = order_no
        self.channel_id = channel_id
