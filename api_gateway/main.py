"""API Gateway FastAPI entrypoint."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from common.utils.env import load_env

# ensure .env is loaded for uvicorn direct run
load_env()

from api_gateway.deps import close_invoker
from api_gateway.routers import ai_gateway
from api_gateway.schemas import Envelope, ErrorData
from common.ai.errors import ErrorKind, GatewayError, MalformedResponse
from common.utils.config import Settings, get_settings
from common.utils.logging_setup import setup_logging

logger = logging.getLogger(__name__)

_CLIENT_SIDE_KINDS = {ErrorKind.PROVIDER_MISCONFIGURED, ErrorKind.SECURE_ORIGIN_BLOCKED}


def _load_allowed_origins(settings: Settings) -> tuple[list[str], bool, str | None]:
    """Read allowed origins for the note frontend; default to open."""

    origins = settings.allowed_origins
    if not origins:
        return ["*"], False, ".*"
    return origins, True, None


@asynccontextmanager
async def lifespan(_: FastAPI):
    yield
    await close_invoker()


async def gateway_error_handler(_: Request, exc: GatewayError) -> JSONResponse:
    status_code = 400 if exc.kind in _CLIENT_SIDE_KINDS else 502
    raw = exc.raw_response if isinstance(exc, MalformedResponse) else None
    body = Envelope[ErrorData](
        code=status_code,
        msg=exc.message,
        data=ErrorData(kind=exc.kind.value, endpoint=exc.endpoint, raw_response=raw),
    )
    logger.warning("请求失败 kind=%s endpoint=%s: %s", exc.kind.value, exc.endpoint, exc.message)
    return JSONResponse(status_code=status_code, content=body.model_dump(by_alias=True))


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    setup_logging(settings.log_level, settings.log_file_path)

    application = FastAPI(title="Note AI Gateway", version="0.1.0", lifespan=lifespan)
    allow_origins, allow_credentials, allow_origin_regex = _load_allowed_origins(settings)
    application.add_middleware(
        CORSMiddleware,
        allow_origins=allow_origins,
        allow_credentials=allow_credentials,
        allow_methods=["*"],
        allow_headers=["*"],
        allow_origin_regex=allow_origin_regex,
    )
    application.add_exception_handler(GatewayError, gateway_error_handler)
    application.include_router(ai_gateway.router, prefix="/v1/ai", tags=["ai-gateway"])

    @application.get("/healthz")
    async def health_check() -> dict:
        """Liveness check."""

        return {"code": 0, "msg": "success", "data": {"status": "ok"}}

    return application


app = create_app()
