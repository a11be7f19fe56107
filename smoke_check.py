#!/usr/bin/env python3
"""
账本服务冒烟检查脚本
对运行中的服务依次走一遍库存、调价审批、下单核销与订单导入流程
"""

import sys
import time
import uuid
from datetime import date, timedelta
from typing import Any, Dict

import requests

BASE_URL = "http://localhost:8000"
API_PREFIX = "/api/v1"


class SmokeChecker:
    """冒烟检查器"""

    def __init__(self, base_url: str = BASE_URL):
        self.base_url = base_url
        self.api = f"{base_url}{API_PREFIX}"
        self.session = requests.Session()
        self.results = []
        # 每次运行使用独立的 SKU，避免与已有数据冲突
        self.sku_id = f"SMOKE-{uuid.uuid4().hex[:6]}"
        self.channel_id = "SMOKE-CH"
        self.day = (date.today() + timedelta(days=3)).isoformat()

    def log_result(self, check_name: str, success: bool, message: str = ""):
        """记录检查结果"""
        status = "✅ PASS" if success else "❌ FAIL"
        result = f"{status} {check_name}"
        if message:
            result += f" - {message}"
        print(result)
        self.results.append({
            "check": check_name,
            "success": success,
            "message": message
        })

    def wait_for_service(self, max_wait: int = 30) -> bool:
        """等待服务启动"""
        print(f"⏳ 等待服务启动 (最多等待 {max_wait} 秒)...")
        start_time = time.time()

        while time.time() - start_time < max_wait:
            try:
                response = self.session.get(f"{self.base_url}/health", timeout=1)
                if response.status_code == 200:
                    print("✅ 服务已启动")
                    return True
            except requests.RequestException:
                pass

            print(".", end="", flush=True)
            time.sleep(1)

        print("\n❌ 服务启动超时")
        return False

    def _post(self, path: str, payload: Dict[str, Any] = None) -> requests.Response:
        return self.session.post(f"{self.api}{path}", json=payload or {})

    def check_inventory_flow(self) -> bool:
        """初始化 10，冻结 4，核销 4，再解冻 1 应被拒绝"""
        print("\n🔍 检查库存记账...")
        move = {"sku_id": self.sku_id, "inventory_date": self.day, "order_id": "SMOKE-O1", "operator": "smoke"}
        steps = [
            ("/inventory/init", {"sku_id": self.sku_id, "dates": [self.day], "total_qty": 10, "operator": "smoke"}, 200),
            ("/inventory/freeze", {**move, "quantity": 4}, 200),
            ("/inventory/consume", {**move, "quantity": 4}, 200),
            ("/inventory/release", {**move, "quantity": 1}, 400),
        ]
        for path, payload, expected in steps:
            response = self._post(path, payload)
            if response.status_code != expected:
                self.log_result("库存记账", False, f"{path} 状态码 {response.status_code}，期望 {expected}")
                return False
        available = self.session.get(f"{self.api}/inventory/stock/{self.sku_id}/{self.day}").json()
        self.log_result("库存记账", available.get("available_qty") == 6, f"可用 {available.get('available_qty')}")
        return available.get("available_qty") == 6

    def check_price_approval(self) -> bool:
        """调价提交审批，通过后生效"""
        print("\n🔍 检查调价审批...")
        response = self._post("/prices/propose", {
            "sku_id": self.sku_id,
            "channel_id": self.channel_id,
            "sale_price": "100",
            "cost_price": "60",
            "start_at": date.today().isoformat(),
            "end_at": (date.today() + timedelta(days=30)).isoformat(),
            "applicant": "smoke",
        })
        if response.status_code != 200:
            self.log_result("调价审批", False, f"状态码: {response.status_code}")
            return False
        approval_id = response.json()["data"]["approval_id"]
        decided = self._post(f"/approvals/{approval_id}/decide", {"status": "approved", "operator": "smoke"})
        ok = decided.status_code == 200
        self.log_result("调价审批", ok, decided.json().get("message", ""))
        return ok

    def check_order_flow(self) -> bool:
        """按生效价格下单并退款"""
        print("\n🔍 检查下单与退款...")
        placed = self._post("/orders", {
            "sku_id": self.sku_id,
            "channel_id": self.channel_id,
            "travel_date": self.day,
            "quantity": 2,
            "operator": "smoke",
        })
        if placed.status_code != 200:
            self.log_result("下单退款", False, f"下单状态码: {placed.status_code}")
            return False
        order = placed.json()["data"]
        refunded = self._post(f"/orders/{order['id']}/refund", {"operator": "smoke"})
        ok = refunded.status_code == 200 and refunded.json()["data"]["status"] == "refunded"
        self.log_result("下单退款", ok, f"订单 {order['order_no']} 金额 {order['sale_amount']}")
        return ok

    def check_import_idempotent(self) -> bool:
        """同一批订单导入两次，第二次全部跳过"""
        print("\n🔍 检查订单导入去重...")
        rows = [{
            "order_no": f"SMOKE-{uuid.uuid4().hex[:8]}",
            "channel_id": self.channel_id,
            "sku_id": self.sku_id,
            "travel_date": self.day,
            "quantity": 1,
            "sale_price": "100",
        }]
        first = self._post("/orders/import", {"rows": rows}).json()
        second = self._post("/orders/import", {"rows": rows}).json()
        ok = (first.get("added"), second.get("skipped")) == (1, 1)
        self.log_result("订单导入去重", ok, f"{first.get('message')} / {second.get('message')}")
        return ok

    def run_all_checks(self) -> Dict[str, Any]:
        """运行所有检查"""
        print("🚀 业务状态账本冒烟检查开始")
        print("=" * 60)

        # 等待服务启动
        if not self.wait_for_service():
            print("❌ 服务未正常启动，检查终止")
            return {
                "success": False,
                "message": "服务启动失败",
                "results": self.results
            }

        checks = [
            self.check_inventory_flow,
            self.check_price_approval,
            self.check_order_flow,
            self.check_import_idempotent,
        ]

        passed = 0
        for check in checks:
            try:
                if check():
                    passed += 1
            except requests.RequestException as e:
                self.log_result(check.__name__, False, f"异常: {str(e)}")

        total = len(checks)
        print("\n" + "=" * 60)
        print(f"📊 检查结果汇总: {passed}/{total} 通过")

        print("\n📋 详细结果:")
        for result in self.results:
            icon = "✅" if result["success"] else "❌"
            print(f"  {icon} {result['check']}")
            if result["message"]:
                print(f"     {result['message']}")

        return {
            "success": passed == total,
            "passed": passed,
            "total": total,
            "results": self.results
        }


def main():
    """主函数"""
    # 支持自定义基础URL
    base_url = sys.argv[1] if len(sys.argv) > 1 else BASE_URL

    checker = SmokeChecker(base_url)
    report = checker.run_all_checks()

    # 设置退出码
    sys.exit(0 if report["success"] else 1)


if __name__ == "__main__":
    main()
