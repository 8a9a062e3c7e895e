# plugins/core_pack/classifier.py

from .models import BINARY_EXTENSIONS


def is_binary_path(path: str) -> bool:
    """
    仅根据扩展名判断条目是否按二进制处理。

    这是启发式规则而不是内容嗅探：扩展名命中列表的文本文件也会被当作二进制，反之亦然。
    """
    filename = path.rsplit("/", 1)[-1]
    if "." not in filename:
        return False
    extension = filename.rsplit(".", 1)[-1].lower()
    return extension in BINARY_EXTENSIONS
