"""产品结构指纹"""

from typing import Any, Iterable, Mapping, Tuple

SEPARATOR = "|"


def _line_fields(line: Any) -> Tuple[str, int, bool]:
    if isinstance(line, Mapping):
        return str(line["resource_id"]), int(line["quantity"]), bool(line["required_flag"])
    return str(line.resource_id), int(line.quantity), bool(line.required_flag)


def _sort_key(fields: Tuple[str, int, bool]) -> tuple:
    # 字典序：先忽略大小写比较，同字母时小写在前
    resource_id, quantity, required = fields
    return resource_id.casefold(), resource_id.swapcase(), quantity, required


def rolling_hash(text: str) -> int:
    """32 位有符号滚动哈希 h = h*31 + code，按 UTF-16 码元计算"""
    h = 0
    data = text.encode("utf-16-le")
    for i in range(0, len(data), 2):
        code = data[i] | (data[i + 1] << 8)
        h = (h * 31 + code) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return h


def build_hash(lines: Iterable[Any]) -> str:
    """计算与录入顺序无关的结构指纹

    每行渲染为 resource_id:quantity:0|1，排序后拼接，再附上哈希的十六进制。
    """
    fields = sorted((_line_fields(line) for line in lines), key=_sort_key)
    base = SEPARATOR.join(
        f"{resource_id}:{quantity}:{1 if required else 0}" for resource_id, quantity, required in fields
    )
    return f"{base}::{abs(rolling_hash(base)):x}"
