"""统一加载 .env 的小工具，并提供环境变量清洗函数。"""

from __future__ import annotations

import re
from functools import lru_cache
from pathlib import Path
from typing import Iterable, Optional

from dotenv import load_dotenv


REPO_ROOT = Path(__file__).resolve().parents[2]

# 直引号与中文弯引号都可能被误粘进配置值
_QUOTE_EDGES = re.compile(r"^[\"'“]+|[\"'”]+$")


@lru_cache(maxsize=1)
def load_env(paths: Iterable[str | Path] | None = None) -> bool:
    """
    依次尝试加载 .env，默认会找当前工作目录和仓库根目录。
    返回是否至少成功加载一次，已经加载过会缓存避免重复。
    """

    candidates = list(paths) if paths is not None else [Path.cwd() / ".env", REPO_ROOT / ".env"]
    loaded = False
    for path in candidates:
        p = Path(path)
        if not p.exists():
            continue
        load_dotenv(p, override=False)
        loaded = True
    return loaded


def clean_env(value: Optional[str]) -> Optional[str]:
    """去掉首尾空白与误加的引号；清洗后为空返回 None。"""

    if not value:
        return None
    cleaned = _QUOTE_EDGES.sub("", value.strip())
    return cleaned or None
