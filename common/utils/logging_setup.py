"""日志初始化：默认输出到 stdout，可选滚动文件。"""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from typing import Optional

_FORMAT = "%(asctime)s [%(levelname)s] %(name)s %(message)s"
_DATEFMT = "%Y-%m-%d %H:%M:%S"


def setup_logging(level: str = "INFO", log_file: Optional[str] = None) -> None:
    """配置 root logger，重复调用不会叠加 handler。"""

    root_logger = logging.getLogger()
    if not root_logger.handlers:
        stream_handler = logging.StreamHandler()
        stream_handler.setFormatter(logging.Formatter(_FORMAT, datefmt=_DATEFMT))
        root_logger.addHandler(stream_handler)
    if log_file and not any(isinstance(h, RotatingFileHandler) for h in root_logger.handlers):
        handler = RotatingFileHandler(log_file, maxBytes=5 * 1024 * 1024, backupCount=2, encoding="utf-8")
        handler.setFormatter(logging.Formatter(_FORMAT, datefmt=_DATEFMT))
        root_logger.addHandler(handler)
    root_logger.setLevel(level.upper())
