"""价格版本存储单元测试"""
from datetime import date
from decimal import Decimal

import pytest

from ota_ledger.core.errors import ErrorKind
from ota_ledger.models.price import PriceHistoryEntry, PriceRecord, PriceStatus


def _price(id, start, end, status=PriceStatus.DRAFT, sku="S1", channel="C1", sale="99"):
    return PriceRecord(
        id=id,
        sku_id=sku,
        channel_id=channel,
        sale_price=Decimal(sale),
        start_at=start,
        end_at=end,
        status=status,
    )


class TestCheckConflict:
    """时间冲突检查测试类"""

    def test_overlap_returns_record(self, prices, active_price):
        """测试与生效价格重叠时返回该记录"""
        prices.upsert(active_price)
        conflicts = prices.check_conflict("S1", "C1", "2024-01-15", "2024-02-15")
        assert [p.id for p in conflicts] == ["P1"]

    def test_touching_endpoints_conflict(self, prices, active_price):
        """测试闭区间端点相接也算重叠"""
        prices.upsert(active_price)
        assert prices.check_conflict("S1", "C1", "2024-01-31", "2024-02-10")
        assert not prices.check_conflict("S1", "C1", "2024-02-01", "2024-02-10")

    def test_other_pair_and_superseded_ignored(self, prices):
        """测试其他渠道与已失效记录不参与冲突"""
        prices.upsert(_price("P1", date(2024, 1, 1), date(2024, 1, 31), channel="C2"))
        prices.upsert(_price("P2", date(2024, 1, 1), date(2024, 1, 31), status=PriceStatus.SUPERSEDED))
        assert prices.check_conflict("S1", "C1", "2024-01-10", "2024-01-20") == []

    def test_exclude_self(self, prices, active_price):
        """测试编辑自身时排除"""
        prices.upsert(active_price)
        assert prices.check_conflict("S1", "C1", "2024-01-10", "2024-01-20", exclude_id="P1") == []

    @pytest.mark.parametrize("stored, query", [
        ((date(2024, 1, 1), date(2024, 1, 31)), (date(2024, 1, 15), date(2024, 2, 15))),
        ((date(2024, 1, 1), date(2024, 1, 10)), (date(2024, 1, 11), date(2024, 1, 20))),
        ((date(2024, 3, 1), date(2024, 3, 31)), (date(2024, 3, 10), date(2024, 3, 12))),
    ])
    def test_symmetric(self, prices, stored, query):
        """测试交换查询区间与存储区间结果一致"""
        prices.upsert(_price("A", *stored))
        forward = bool(prices.check_conflict("S1", "C1", *query))

        prices.hydrate([_price("B", *query)])
        backward = bool(prices.check_conflict("S1", "C1", *stored))

        assert forward == backward


class TestActivatePrice:
    """价格生效测试类"""

    def test_supersedes_and_truncates(self, prices, active_price):
        """测试新价格生效后旧价格失效并截断到前一天"""
        prices.upsert(active_price)
        prices.upsert(_price("P2", date(2024, 1, 15), date(2024, 2, 15), status=PriceStatus.PENDING))

        result = prices.activate_price("P2")

        assert result.ok
        p1 = prices.get("P1")
        assert p1.status == PriceStatus.SUPERSEDED
        assert p1.end_at == date(2024, 1, 14)
        assert prices.get("P2").status == PriceStatus.ACTIVE

    def test_at_most_one_active(self, prices):
        """测试生效后每个 (sku, 渠道) 至多一个生效价格"""
        prices.hydrate([
            _price("A", date(2024, 1, 1), date(2024, 1, 31), status=PriceStatus.ACTIVE),
            _price("B", date(2024, 2, 1), date(2024, 2, 28), status=PriceStatus.ACTIVE),
            _price("C", date(2024, 3, 1), date(2024, 3, 31)),
            _price("D", date(2024, 1, 1), date(2024, 1, 31), status=PriceStatus.ACTIVE, channel="C2"),
        ])

        prices.activate_price("C")

        active = [p.id for p in prices.list_records("S1", "C1") if p.status == PriceStatus.ACTIVE]
        assert active == ["C"]
        assert prices.get("D").status == PriceStatus.ACTIVE

    def test_non_active_records_untouched(self, prices):
        """测试草稿记录不受影响"""
        prices.hydrate([
            _price("A", date(2024, 1, 1), date(2024, 1, 31)),
            _price("B", date(2024, 2, 1), date(2024, 2, 28), status=PriceStatus.PENDING),
        ])
        prices.activate_price("B")
        assert prices.get("A").status == PriceStatus.DRAFT
        assert prices.get("A").end_at == date(2024, 1, 31)

    def test_missing_price(self, prices):
        """测试价格不存在"""
        assert prices.activate_price("nope").error == ErrorKind.RECORD_NOT_FOUND

    def test_active_price_for(self, prices, active_price):
        """测试按日期查询生效价格"""
        prices.upsert(active_price)
        assert prices.active_price_for("S1", "C1", "2024-01-20").id == "P1"
        assert prices.active_price_for("S1", "C1", "2024-02-01") is None


class TestPropose:
    """调价测试类"""

    def test_propose_without_conflict(self, prices):
        """测试无冲突时写入待审批价格"""
        result = prices.propose(_price("P2", date(2024, 2, 1), date(2024, 2, 28)), "alice")

        assert result.ok
        assert result.data.status == PriceStatus.PENDING
        assert result.data.created_by == "alice"
        assert prices.get("P2").status == PriceStatus.PENDING

    def test_propose_conflict_blocked(self, prices, active_price):
        """测试时间冲突时拒绝并返回冲突记录"""
        prices.upsert(active_price)

        result = prices.propose(_price("P2", date(2024, 1, 15), date(2024, 2, 15)), "alice")

        assert result.error == ErrorKind.TIME_CONFLICT
        assert result.data == ["P1"]
        assert result.message == "时间冲突：与 2024-01-01~2024-01-31 重叠"
        assert prices.get("P2") is None

    def test_propose_conflict_override(self, prices, active_price):
        """测试显式覆盖后仍可提交"""
        prices.upsert(active_price)
        result = prices.propose(_price("P2", date(2024, 1, 15), date(2024, 2, 15)), "alice", override=True)
        assert result.ok

    def test_propose_inverted_interval(self, prices):
        """测试开始晚于结束"""
        result = prices.propose(_price("P2", date(2024, 2, 1), date(2024, 1, 1)), "alice")
        assert result.error == ErrorKind.VALIDATION_ERROR

    def test_revert_to_draft(self, prices):
        """测试待审批价格退回草稿"""
        prices.propose(_price("P2", date(2024, 2, 1), date(2024, 2, 28)), "alice")

        assert prices.revert_to_draft("P2").ok
        assert prices.get("P2").status == PriceStatus.DRAFT
        assert prices.revert_to_draft("P2").error == ErrorKind.INVALID_STATE

    def test_restore_pending_edit(self, prices, active_price):
        """测试待审批的修改恢复为提交前的生效记录"""
        prices.upsert(active_price)
        snapshot = prices.get("P1").model_copy()
        prices.propose(active_price.model_copy(update={"sale_price": Decimal("250")}), "alice")

        result = prices.restore(snapshot)

        assert result.ok
        assert prices.get("P1").status == PriceStatus.ACTIVE
        assert prices.get("P1").sale_price == Decimal("199.00")
        assert prices.restore(snapshot).error == ErrorKind.INVALID_STATE

    def test_restore_keeps_single_active(self, prices, active_price):
        """测试同渠道已有其他生效价格时以草稿恢复"""
        prices.upsert(active_price)
        snapshot = prices.get("P1").model_copy()
        prices.propose(active_price.model_copy(update={"sale_price": Decimal("250")}), "alice")
        prices.upsert(_price("P3", date(2024, 3, 1), date(2024, 3, 31), status=PriceStatus.ACTIVE))

        assert prices.restore(snapshot).data.status == PriceStatus.DRAFT
        active = [p.id for p in prices.list_records() if p.status == PriceStatus.ACTIVE]
        assert active == ["P3"]

    def test_conflict_ignores_superseded(self, prices):
        """测试已失效记录不参与冲突判断"""
        prices.upsert(_price("P1", date(2024, 1, 1), date(2024, 1, 31), status=PriceStatus.SUPERSEDED))
        assert prices.check_conflict("S1", "C1", "2024-01-10", "2024-01-20") == []


class TestCloneAndHistory:
    """复制草稿与历史测试类"""

    def test_clone_active_to_draft(self, prices, active_price):
        """测试复制生效价格为新草稿且不写入存储"""
        prices.upsert(active_price)

        draft = prices.clone_active_to_draft("S1", "C1")

        assert draft.id != "P1"
        assert draft.status == PriceStatus.DRAFT
        assert draft.sale_price == Decimal("199.00")
        assert prices.get(draft.id) is None

    def test_clone_without_active(self, prices):
        """测试没有生效价格时返回 None"""
        assert prices.clone_active_to_draft("S1", "C1") is None

    def test_add_history(self, prices):
        """测试追加历史并按价格过滤"""
        prices.add_history(PriceHistoryEntry(price_id="P1", after_data={"sale_price": "10"}))
        prices.add_history(PriceHistoryEntry(price_id="P2"))
        assert [h.price_id for h in prices.history("P1")] == ["P1"]
        assert len(prices.history()) == 2

    def test_upsert_replaces(self, prices, active_price):
        """测试 upsert 整条替换并写审计"""
        prices.upsert(active_price)
        prices.upsert(active_price.model_copy(update={"sale_price": Decimal("150")}))

        assert prices.get("P1").sale_price == Decimal("150")
        operations = [e.operation.value for e in prices.audit.entries(table_name="price")]
        assert operations == ["INSERT", "UPDATE"]
