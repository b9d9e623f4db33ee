from __future__ import annotations

import logging
import os

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse

from dashboard_copilot import __version__
from dashboard_copilot.api.endpoints import dashboards, health, semantic_model, specs
from dashboard_copilot.api.endpoints import metrics as metrics_ep
from dashboard_copilot.api.middleware.error_shaping import SafeErrorMiddleware
from dashboard_copilot.api.middleware.request_context import RequestContextMiddleware
from dashboard_copilot.core.errors import CopilotError

log = logging.getLogger("copilot.errors")

app = FastAPI(
    title="Dashboard Copilot API",
    version=__version__,
)

# ------------------------------------------------------------
# Middleware stack (ORDER MATTERS)
# Starlette reverses add_middleware order: the LAST call = OUTERMOST wrapper.
# Runtime order (outermost → innermost):
#   SafeErrorMiddleware → CORSMiddleware → RequestContext → handler
# ------------------------------------------------------------
app.add_middleware(RequestContextMiddleware)

_cors_origins_raw = os.getenv("COPILOT_CORS_ORIGINS", "").strip()
_cors_origins = [o.strip() for o in _cors_origins_raw.split(",") if o.strip()] if _cors_origins_raw else ["*"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(SafeErrorMiddleware)


# ------------------------------------------------------------
# Error envelope
# ------------------------------------------------------------
@app.exception_handler(CopilotError)
async def copilot_error_handler(request: Request, exc: CopilotError):
    log.info("request failed code=%s path=%s message=%s", exc.code, request.url.path, exc.message)
    return JSONResponse(status_code=exc.http_status, content=jsonable_encoder(exc.to_envelope()))


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=422,
        content={
            "ok": False,
            "error": {
                "code": "VALIDATION_ERROR",
                "message": "Request body failed validation",
                "details": jsonable_encoder(exc.errors()),
            },
        },
    )


# ------------------------------------------------------------
# Routers
# ------------------------------------------------------------
app.include_router(health.router)
app.include_router(metrics_ep.router)

app.include_router(semantic_model.router, prefix="/api/v1")
app.include_router(specs.router, prefix="/api/v1")
app.include_router(dashboards.router, prefix="/api/v1")
