"""商品目录单元测试"""
from datetime import date
from decimal import Decimal

import pytest

from ota_ledger.core.errors import ErrorKind
from ota_ledger.models.approval import ObjectType
from ota_ledger.models.catalog import ListingStatus, Product, ProductResource, SkuChannel, SupplierResource
from ota_ledger.models.inventory import InventoryRecord
from ota_ledger.models.price import PriceRecord, PriceStatus
from ota_ledger.services.catalog_store import CatalogStore


def _lines(*specs):
    return [ProductResource(resource_id=r, quantity=q, required_flag=f) for r, q, f in specs]


@pytest.fixture
def catalog(audit):
    return CatalogStore(audit)


class TestSaveProduct:
    """产品结构保存测试类"""

    def test_save_sets_hash_and_lines(self, catalog):
        """测试保存后写入指纹与资源行"""
        result = catalog.save_product(Product(id="PR1", product_name="西湖一日游"),
                                      _lines(("r1", 2, True), ("r2", 1, False)), "alice")

        assert result.ok
        assert result.data.structure_hash.startswith("r1:2:1|r2:1:0::")
        assert [line.product_id for line in catalog.lines_of("PR1")] == ["PR1", "PR1"]

    def test_duplicate_structure_warns(self, catalog):
        """测试结构相同的新产品返回重复警告"""
        catalog.save_product(Product(id="PR1", product_name="A"), _lines(("r1", 2, True)), "alice")

        result = catalog.save_product(Product(id="PR2", product_name="B"), _lines(("r1", 2, True)), "alice")

        assert result.error == ErrorKind.STRUCTURE_DUPLICATE
        assert result.data == "PR1"
        assert "PR2" not in catalog.products

    def test_duplicate_override(self, catalog):
        """测试显式覆盖后仍可保存"""
        catalog.save_product(Product(id="PR1", product_name="A"), _lines(("r1", 2, True)), "alice")
        result = catalog.save_product(Product(id="PR2", product_name="B"), _lines(("r1", 2, True)), "alice",
                                      override=True)
        assert result.ok

    def test_resave_same_product_is_not_duplicate(self, catalog):
        """测试编辑自身不算重复"""
        catalog.save_product(Product(id="PR1", product_name="A"), _lines(("r1", 2, True)), "alice")
        assert catalog.save_product(Product(id="PR1", product_name="A2"), _lines(("r1", 2, True)), "alice").ok
        assert len(catalog.lines_of("PR1")) == 1

    def test_requires_lines(self, catalog):
        """测试至少一个资源"""
        assert catalog.save_product(Product(product_name="A"), [], "alice").error == ErrorKind.VALIDATION_ERROR

    def test_structure_locked_after_orders(self, catalog):
        """测试已有订单的产品禁止改结构"""
        catalog.save_product(Product(id="PR1", product_name="A"), _lines(("r1", 2, True)), "alice")
        result = catalog.save_product(Product(id="PR1", product_name="A"), _lines(("r1", 3, True)), "alice",
                                      has_orders=True)
        assert result.error == ErrorKind.INVALID_STATE


class TestShelfGates:
    """上架前置检查测试类"""

    TODAY = date(2024, 6, 10)

    def test_all_missing(self, catalog):
        """测试三项条件都缺失"""
        missing = catalog.shelf_gates("K1", [], [], 7, today=self.TODAY)
        assert missing == ["未绑定渠道", "缺生效价格", "未来 7 天无库存"]

    def test_all_satisfied(self, catalog):
        """测试条件齐全时可以上架"""
        catalog.sku_channels.append(SkuChannel(sku_id="K1", channel_id="C1"))
        prices = [PriceRecord(sku_id="K1", channel_id="C1", sale_price=Decimal("1"), start_at=self.TODAY,
                              end_at=self.TODAY, status=PriceStatus.ACTIVE)]
        inventory = [InventoryRecord(sku_id="K1", inventory_date=self.TODAY, total_qty=5)]

        assert catalog.shelf_gates("K1", prices, inventory, 7, today=self.TODAY) == []

    def test_delisted_channel_does_not_count(self, catalog):
        """测试已下架的渠道绑定不算"""
        catalog.sku_channels.append(SkuChannel(sku_id="K1", channel_id="C1", status=ListingStatus.DELISTED))
        assert "未绑定渠道" in catalog.shelf_gates("K1", [], [], 7, today=self.TODAY)


class TestStatusAndSettlement:
    """状态与结算价测试类"""

    def test_set_status(self, catalog):
        """测试修改产品状态并写审计"""
        catalog.products["PR1"] = Product(id="PR1", product_name="A")

        assert catalog.set_status(ObjectType.PRODUCT, "PR1", ListingStatus.PENDING, "alice").ok
        assert catalog.products["PR1"].status == ListingStatus.PENDING
        assert catalog.audit.entries(record_id="PR1")[-1].diff_data == {"before": "draft", "after": "pending"}

    def test_set_status_rejects_supplier(self, catalog):
        """测试供应商没有上下架状态"""
        result = catalog.set_status(ObjectType.SUPPLIER, "SR1", ListingStatus.LISTED)
        assert result.error == ErrorKind.VALIDATION_ERROR

    def test_set_status_missing(self, catalog):
        """测试对象不存在"""
        assert catalog.set_status(ObjectType.SKU, "K9", ListingStatus.LISTED).error == ErrorKind.RECORD_NOT_FOUND

    def test_apply_settlement_price(self, catalog):
        """测试写入结算价并记录审计差异"""
        catalog.supplier_resources["SR1"] = SupplierResource(id="SR1", supplier_id="V1", resource_id="R1")

        result = catalog.apply_settlement_price("SR1", "30", operator="boss", reason="签约")

        assert result.ok
        assert catalog.supplier_resources["SR1"].settlement_price == Decimal("30")
        diff = catalog.audit.entries(table_name="supplier")[-1].diff_data
        assert diff == {"before_price": None, "after_price": "30"}
