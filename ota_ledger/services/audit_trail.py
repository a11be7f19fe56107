"""审计日志（只追加）"""

import logging
import threading
from typing import Any, Iterable, List, Optional

from ota_ledger.models.audit import AuditEntry, AuditOperation

logger = logging.getLogger(__name__)


class AuditTrail:
    """所有账本变更的审计记录，只允许追加"""

    def __init__(self):
        self._entries: List[AuditEntry] = []
        self._lock = threading.Lock()

    def record(
        self,
        table_name: str,
        record_id: str,
        operation: AuditOperation,
        diff_data: Any = None,
        operator: Optional[str] = None,
        source: Optional[str] = None,
    ) -> AuditEntry:
        entry = AuditEntry(
            table_name=table_name,
            record_id=record_id,
            operation=operation,
            diff_data=diff_data,
            operator=operator,
            source=source,
        )
        with self._lock:
            self._entries.append(entry)
        logger.debug(f"审计记录: {table_name}/{record_id} {operation.value}")
        return entry

    def hydrate(self, entries: Iterable[AuditEntry]) -> None:
        with self._lock:
            self._entries = list(entries)

    def entries(self, table_name: Optional[str] = None, record_id: Optional[str] = None) -> List[AuditEntry]:
        with self._lock:
            items = list(self._entries)
        if table_name is not None:
            items = [e for e in items if e.table_name == table_name]
        if record_id is not None:
            items = [e for e in items if e.record_id == record_id]
        return items

    def __len__(self) -> int:
        return len(self._entries)
