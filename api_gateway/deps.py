"""FastAPI 依赖：进程内共享的 Invoker 及其上层流程。"""

from __future__ import annotations

from typing import Optional

from fastapi import Depends

from common.ai.fanout import FanoutCoordinator
from common.ai.invoker import Invoker
from common.ai.roaming import RoamingWorkflow
from common.utils.config import Settings, get_settings


_invoker: Optional[Invoker] = None


def get_invoker() -> Invoker:
    global _invoker  # pylint: disable=global-statement
    if _invoker is None:
        _invoker = Invoker(get_settings())
    return _invoker


async def close_invoker() -> None:
    global _invoker  # pylint: disable=global-statement
    if _invoker is not None:
        await _invoker.aclose()
        _invoker = None


def get_app_settings() -> Settings:
    return get_settings()


def get_fanout(invoker: Invoker = Depends(get_invoker)) -> FanoutCoordinator:
    return FanoutCoordinator(invoker)


def get_roaming(invoker: Invoker = Depends(get_invoker)) -> RoamingWorkflow:
    return RoamingWorkflow(invoker)
