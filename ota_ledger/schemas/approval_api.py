from typing import Any, Literal, Optional

from pydantic import BaseModel, Field

from ota_ledger.models.approval import ObjectType


class SubmitApprovalRequest(BaseModel):
    object_type: ObjectType = Field(..., description="对象类型")
    object_id: str = Field(..., min_length=1, description="对象ID")
    action_type: str = Field(..., min_length=1, description="动作", examples=["调价"])
    before_data: Any = Field(None, description="变更前快照")
    after_data: Any = Field(None, description="变更后快照")
    applicant: str = Field(..., min_length=1, description="申请人")
    approver: Optional[str] = Field(None, description="审批人")


class DecideApprovalRequest(BaseModel):
    status: Literal["approved", "rejected"] = Field(..., description="审批结果")
    comment: Optional[str] = Field(None, description="审批意见")
    operator: Optional[str] = Field(None, description="实际审批人")
