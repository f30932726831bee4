"""路由模块聚合，方便 FastAPI 入口按需导入。"""

from . import ai_gateway

__all__ = ["ai_gateway"]
