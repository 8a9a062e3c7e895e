# plugins/core_pack/versioning.py

import re

from .contracts import VersionTriple
from .models import DEFAULT_VERSION

_COMPONENT_RE = re.compile(r"\d+")


def parse_version_string(display: str) -> VersionTriple:
    """
    把 "1.2.3" 解析成 (1, 2, 3)。

    这是一个宽松的操作：分量个数不是 3、或任何分量不是非负整数时，
    返回 (1, 0, 0) 而不是抛出异常。
    """
    parts = [p.strip() for p in display.split(".")]
    if len(parts) != 3 or not all(_COMPONENT_RE.fullmatch(p) for p in parts):
        return DEFAULT_VERSION
    return int(parts[0]), int(parts[1]), int(parts[2])


def format_version(version: VersionTriple) -> str:
    return ".".join(str(component) for component in version)
