import uuid
from datetime import date, datetime, timezone
from typing import Union

from pydantic import BaseModel, ConfigDict


def as_date(value: Union[date, str]) -> date:
    """接受 date 或 YYYY-MM-DD 字符串"""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(value)


def new_id() -> str:
    """生成短 ID"""
    return uuid.uuid4().hex[:12]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LedgerModel(BaseModel):
    """账本记录基类（可变，由所属账本独占修改）"""
    model_config = ConfigDict(validate_assignment=True, from_attributes=True)


class LogModel(BaseModel):
    """日志类记录基类（不可变，只追加）"""
    model_config = ConfigDict(frozen=True, from_attributes=True)
