"""库存账本单元测试"""
from datetime import date, timedelta

import pytest

from ota_ledger.core.errors import ErrorKind, LockConflictError
from ota_ledger.models.inventory import InventoryChangeType
from ota_ledger.services.audit_trail import AuditTrail
from ota_ledger.services.inventory_ledger import InventoryLedger

DAY = date(2024, 6, 1)


def _qty(ledger, sku="S1", day=DAY):
    record = ledger.get(sku, day)
    return record.total_qty, record.frozen_qty, record.sold_qty


class TestInitInventory:
    """批量初始化测试类"""

    def test_creates_records_for_each_date(self, inventory):
        """测试不存在的日期新建记录"""
        result = inventory.init_inventory("S1", [DAY, DAY + timedelta(days=1)], 10, "ops")

        assert result.ok
        assert len(result.data) == 2
        assert _qty(inventory) == (10, 0, 0)
        assert _qty(inventory, day=DAY + timedelta(days=1)) == (10, 0, 0)
        assert [e.change_type for e in inventory.logs()] == [InventoryChangeType.INITIALIZE] * 2

    def test_accepts_iso_strings(self, inventory):
        """测试日期可以是字符串"""
        assert inventory.init_inventory("S1", ["2024-06-01"], 5, "ops").ok
        assert inventory.get("S1", "2024-06-01").total_qty == 5

    def test_existing_date_keeps_frozen_and_sold(self, inventory):
        """测试已存在日期只覆盖总量"""
        inventory.init_inventory("S1", [DAY], 10, "ops")
        inventory.freeze("S1", DAY, 3, "O1", "ops")
        inventory.consume("S1", DAY, 1, "O1", "ops")

        result = inventory.init_inventory("S1", [DAY], 20, "ops", reason="加库存")

        assert result.ok
        assert _qty(inventory) == (20, 2, 1)
        last = inventory.logs()[-1]
        assert last.change_type == InventoryChangeType.ADJUST
        assert last.remark == "加库存"

    def test_rejects_total_below_committed(self, inventory):
        """测试总量低于冻结+已售时整批拒绝"""
        inventory.init_inventory("S1", [DAY], 10, "ops")
        inventory.freeze("S1", DAY, 6, "O1", "ops")
        log_count = len(inventory.logs())

        result = inventory.init_inventory("S1", [DAY - timedelta(days=1), DAY], 5, "ops")

        assert not result.ok
        assert result.error == ErrorKind.VALIDATION_ERROR
        assert inventory.get("S1", DAY - timedelta(days=1)) is None
        assert _qty(inventory) == (10, 6, 0)
        assert len(inventory.logs()) == log_count

    @pytest.mark.parametrize("sku, dates, total", [
        ("", [DAY], 10),
        ("S1", [], 10),
        ("S1", [DAY], -1),
    ])
    def test_validation_errors(self, inventory, sku, dates, total):
        """测试缺少必填字段"""
        result = inventory.init_inventory(sku, dates, total, "ops")
        assert not result.ok
        assert result.error == ErrorKind.VALIDATION_ERROR
        assert inventory.logs() == []


class TestInventoryMoves:
    """冻结 / 核销 / 解冻测试类"""

    @pytest.fixture(autouse=True)
    def _init(self, inventory):
        inventory.init_inventory("S1", [DAY], 10, "ops")

    def test_freeze_consume_release_scenario(self, inventory):
        """测试初始化 10，冻结 4，核销 4，再解冻 1 失败"""
        assert inventory.freeze("S1", DAY, 4, "O1", "ops").ok
        assert _qty(inventory) == (10, 4, 0)

        assert inventory.consume("S1", DAY, 4, "O1", "ops").ok
        assert _qty(inventory) == (10, 0, 4)

        result = inventory.release("S1", DAY, 1, "O1", "ops")
        assert not result.ok
        assert result.error == ErrorKind.INSUFFICIENT_FROZEN
        assert _qty(inventory) == (10, 0, 4)

    def test_bool_quantity_rejected(self, inventory):
        """测试布尔值不被当作数量"""
        result = inventory.freeze("S1", DAY, True, "O1", "ops")

        assert result.error == ErrorKind.VALIDATION_ERROR
        assert _qty(inventory) == (10, 0, 0)
        assert inventory.init_inventory("S1", [DAY], True, "ops").error == ErrorKind.VALIDATION_ERROR
        assert inventory.adjust("S1", DAY, False, "ops").error == ErrorKind.VALIDATION_ERROR

    def test_freeze_then_release_restores_frozen(self, inventory):
        """测试冻结后解冻回到原值"""
        inventory.freeze("S1", DAY, 2, "O1", "ops")
        inventory.freeze("S1", DAY, 3, "O2", "ops")

        assert inventory.release("S1", DAY, 3, "O2", "ops").ok
        assert _qty(inventory) == (10, 2, 0)

    def test_freeze_not_initialized(self, inventory):
        """测试未初始化日期不能冻结"""
        result = inventory.freeze("S1", DAY + timedelta(days=9), 1, "O1", "ops")
        assert result.error == ErrorKind.NOT_INITIALIZED
        assert result.message == "该日期未初始化库存"

    def test_freeze_insufficient_stock(self, inventory):
        """测试可用库存不足"""
        inventory.freeze("S1", DAY, 8, "O1", "ops")
        log_count = len(inventory.logs())

        result = inventory.freeze("S1", DAY, 3, "O2", "ops")

        assert result.error == ErrorKind.INSUFFICIENT_STOCK
        assert _qty(inventory) == (10, 8, 0)
        assert len(inventory.logs()) == log_count

    def test_consume_more_than_frozen_leaves_no_trace(self, inventory):
        """测试核销超过冻结数量不修改状态也不写日志"""
        inventory.freeze("S1", DAY, 2, "O1", "ops")
        log_count = len(inventory.logs())
        audit_count = len(inventory.audit)

        result = inventory.consume("S1", DAY, 3, "O1", "ops")

        assert result.error == ErrorKind.INSUFFICIENT_FROZEN
        assert _qty(inventory) == (10, 2, 0)
        assert len(inventory.logs()) == log_count
        assert len(inventory.audit) == audit_count

    def test_consume_missing_record(self, inventory):
        """测试核销不存在的记录"""
        assert inventory.consume("S9", DAY, 1, "O1", "ops").error == ErrorKind.RECORD_NOT_FOUND

    @pytest.mark.parametrize("quantity", [0, -1, 1.5])
    def test_quantity_must_be_positive_int(self, inventory, quantity):
        """测试数量必须为正整数"""
        assert inventory.freeze("S1", DAY, quantity, "O1", "ops").error == ErrorKind.VALIDATION_ERROR

    def test_log_captures_before_after_and_order(self, inventory):
        """测试日志记录前后快照与关联订单"""
        result = inventory.freeze("S1", DAY, 4, "O1", "alice")

        entry = result.data
        assert entry.change_type == InventoryChangeType.FREEZE
        assert entry.before_qty.frozen == 0
        assert entry.after_qty.frozen == 4
        assert entry.related_order_id == "O1"
        assert entry.operator == "alice"

    def test_each_mutation_writes_audit(self, inventory):
        """测试每次成功变更都写审计"""
        inventory.freeze("S1", DAY, 1, "O1", "ops")
        entries = inventory.audit.entries(table_name="inventory", record_id="S1-2024-06-01")
        assert [e.source for e in entries] == ["initialize", "freeze"]

    def test_invariant_holds_across_sequence(self, inventory):
        """测试任意操作序列后 冻结+已售<=总量"""
        steps = [
            ("freeze", 5), ("consume", 2), ("freeze", 6), ("release", 3),
            ("freeze", 9), ("consume", 4), ("release", 10), ("freeze", 2),
        ]
        for op, qty in steps:
            getattr(inventory, op)("S1", DAY, qty, "O1", "ops")
            total, frozen, sold = _qty(inventory)
            assert frozen >= 0 and sold >= 0
            assert frozen + sold <= total


class TestAdjust:
    """人工调整测试类"""

    def test_adjust_sets_total_and_logs(self, inventory):
        """测试调整总量写 manual_adjust 日志"""
        inventory.init_inventory("S1", [DAY], 10, "ops")
        result = inventory.adjust("S1", DAY, 15, "ops", "补录")

        assert result.ok
        assert _qty(inventory) == (15, 0, 0)
        assert result.data.change_type == InventoryChangeType.MANUAL_ADJUST
        assert result.data.remark == "补录"

    def test_adjust_below_committed_rejected(self, inventory):
        """测试调整后总量低于冻结+已售时拒绝"""
        inventory.init_inventory("S1", [DAY], 10, "ops")
        inventory.freeze("S1", DAY, 4, "O1", "ops")
        inventory.consume("S1", DAY, 2, "O1", "ops")

        result = inventory.adjust("S1", DAY, 3, "ops")

        assert result.error == ErrorKind.VALIDATION_ERROR
        assert _qty(inventory) == (10, 2, 2)

    def test_adjust_missing_record(self, inventory):
        """测试调整不存在的记录"""
        assert inventory.adjust("S1", DAY, 3, "ops").error == ErrorKind.RECORD_NOT_FOUND


class TestFutureStock:
    """未来库存检查测试类"""

    def test_window_includes_yesterday(self, inventory):
        """测试窗口包含昨天"""
        today = date(2024, 6, 10)
        inventory.init_inventory("S1", [today - timedelta(days=1)], 1, "ops")
        assert inventory.has_future_stock("S1", 7, today=today)

    def test_window_excludes_horizon_end(self, inventory):
        """测试窗口不含第 horizon 天"""
        today = date(2024, 6, 10)
        inventory.init_inventory("S1", [today + timedelta(days=7), today - timedelta(days=2)], 5, "ops")
        assert not inventory.has_future_stock("S1", 7, today=today)

    def test_fully_committed_day_has_no_stock(self, inventory):
        """测试可用为 0 的日期不算有库存"""
        today = date(2024, 6, 10)
        inventory.init_inventory("S1", [today], 2, "ops")
        inventory.freeze("S1", today, 2, "O1", "ops")
        assert not inventory.has_future_stock("S1", 7, today=today)


class TestInventoryCache:
    """可用库存缓存测试类"""

    def test_cache_hit(self, mock_redis):
        """测试缓存命中直接返回"""
        mock_redis.get.return_value = "7"
        ledger = InventoryLedger(AuditTrail(), redis=mock_redis)

        assert ledger.available("S1", DAY) == 7
        mock_redis.get.assert_called_once_with("stock:available:S1:2024-06-01")
        mock_redis.setex.assert_not_called()

    def test_cache_miss_sets_cache(self, mock_redis):
        """测试缓存未命中读账本并写缓存"""
        ledger = InventoryLedger(AuditTrail(), redis=mock_redis, cache_ttl=300)
        ledger.init_inventory("S1", [DAY], 10, "ops")
        ledger.freeze("S1", DAY, 4, "O1", "ops")

        assert ledger.available("S1", DAY) == 6
        mock_redis.setex.assert_called_once_with("stock:available:S1:2024-06-01", 300, 6)

    def test_mutation_invalidates_cache(self, mock_redis):
        """测试变更后失效缓存"""
        ledger = InventoryLedger(AuditTrail(), redis=mock_redis)
        ledger.init_inventory("S1", [DAY], 10, "ops")
        mock_redis.delete.reset_mock()

        ledger.freeze("S1", DAY, 1, "O1", "ops")

        mock_redis.delete.assert_called_once_with("stock:available:S1:2024-06-01")

    def test_blocked_mutation_keeps_cache(self, mock_redis):
        """测试被拒绝的操作不失效缓存"""
        ledger = InventoryLedger(AuditTrail(), redis=mock_redis)
        ledger.init_inventory("S1", [DAY], 1, "ops")
        mock_redis.delete.reset_mock()

        ledger.freeze("S1", DAY, 5, "O1", "ops")

        mock_redis.delete.assert_not_called()


class TestInventoryDistributedLock:
    """分布式锁测试类"""

    def test_lock_acquired_and_released(self, mock_redlock):
        """测试按 (sku, 日期) 加锁并释放"""
        ledger = InventoryLedger(AuditTrail(), rlock=mock_redlock, lock_ttl=10000)
        ledger.init_inventory("S1", [DAY], 10, "ops")
        mock_redlock.lock.reset_mock()

        ledger.freeze("S1", DAY, 1, "O1", "ops")

        mock_redlock.lock.assert_called_once_with("lock:inventory:S1:2024-06-01", 10000)
        mock_redlock.unlock.assert_called()

    def test_lock_failure_raises(self, mock_redlock):
        """测试获取分布式锁失败抛出 LockConflictError 且不修改状态"""
        ledger = InventoryLedger(AuditTrail())
        ledger.init_inventory("S1", [DAY], 10, "ops")
        mock_redlock.lock.return_value = False
        ledger.locks.rlock = mock_redlock

        with pytest.raises(LockConflictError):
            ledger.freeze("S1", DAY, 1, "O1", "ops")

        assert _qty(ledger) == (10, 0, 0)
