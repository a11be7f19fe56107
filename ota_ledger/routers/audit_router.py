"""审计日志 API 路由"""

from typing import Optional

from fastapi import APIRouter

from ota_ledger.core.dependencies import AuditDep
from ota_ledger.services.audit_trail import AuditTrail

router = APIRouter(prefix="/audit", tags=["审计"])


@router.get("", summary="审计日志")
async def list_audit(
    table_name: Optional[str] = None,
    record_id: Optional[str] = None,
    audit: AuditTrail = AuditDep,
):
    return {"success": True, "data": audit.entries(table_name, record_id)}
