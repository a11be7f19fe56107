"""快照一致性检查本地执行脚本"""

import argparse
import logging
from collections import Counter
from typing import List

from ota_ledger.models.price import PriceStatus
from ota_ledger.services.container import LedgerContainer
from ota_ledger.services.snapshot_loader import SnapshotError, dump_snapshot, load_snapshot

# 配置日志
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def find_active_price_clashes(container: LedgerContainer) -> List[str]:
    """同一 SKU+渠道存在多条生效价格时返回提示"""
    counter = Counter(p.pair for p in container.prices.list_records() if p.status == PriceStatus.ACTIVE)
    return [f"{sku}/{channel} 有 {n} 条生效价格" for (sku, channel), n in counter.items() if n > 1]


def run_check(snapshot_dir: str, dump_dir: str = None) -> int:
    """载入快照并检查账本不变量

    Args:
        snapshot_dir: 快照目录
        dump_dir: 检查通过后重新导出的目录（可选）

    Returns:
        发现的问题数量
    """
    container = LedgerContainer()
    report = load_snapshot(snapshot_dir, container, strict=False)
    for issue in report.issues:
        # 库存记录违反 冻结+已售<=总量 时在校验阶段即被拒绝
        logger.warning(f"{issue.entity}[{issue.index}] 不合法: {issue.message}")

    clashes = find_active_price_clashes(container)
    for message in clashes:
        logger.warning(message)

    problems = len(report.issues) + len(clashes)
    if problems == 0 and dump_dir:
        counts = dump_snapshot(dump_dir, container)
        logger.info(f"已重新导出到 {dump_dir}: {counts}")
    logger.info(f"检查完成：载入 {report.counts}，发现 {problems} 个问题")
    return problems


def main():
    """主函数"""
    parser = argparse.ArgumentParser(description='账本快照一致性检查工具')
    parser.add_argument(
        'snapshot_dir',
        help='快照目录（每种实体一个 JSON 数组文件）'
    )
    parser.add_argument(
        '--dump',
        metavar='DIR',
        default=None,
        help='检查通过后把规范化的快照导出到指定目录'
    )
    parser.add_argument(
        '--verbose',
        action='store_true',
        help='详细输出模式'
    )

    args = parser.parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    try:
        problems = run_check(args.snapshot_dir, args.dump)
    except SnapshotError as e:
        print(f"❌ 执行失败: {str(e)}")
        return 1

    if problems:
        print(f"⚠️  发现 {problems} 个问题")
        return 1
    print("✅ 快照检查通过")
    return 0


if __name__ == "__main__":
    exit(main())
