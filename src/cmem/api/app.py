from __future__ import annotations

import json
import logging
import time
from datetime import datetime, timezone
from typing import Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from cmem.api.tools import (
    INTERNAL_ERROR,
    INVALID_REQUEST,
    PARSE_ERROR,
    SERVER_VERSION,
    handle_request,
    jsonrpc_error,
)
from cmem.config import Settings
from cmem.components import build_components
from cmem.core.service import MemoryService
from cmem.metrics import LAT, mark

logger = logging.getLogger(__name__)

VERSION = f"{SERVER_VERSION}-http"


def _bearer_checker(expected: Optional[str]):
    def require_bearer(authorization: Optional[str] = Header(default=None)) -> None:
        if expected is None:
            return
        if not authorization or not authorization.startswith("Bearer "):
            raise HTTPException(status_code=401, detail="Missing or invalid Authorization header")
        if authorization[len("Bearer "):] != expected:
            raise HTTPException(status_code=401, detail="Invalid bearer token")

    return require_bearer


def create_app(
    settings: Optional[Settings] = None,
    service: Optional[MemoryService] = None,
) -> FastAPI:
    settings = settings or Settings.from_env()
    if service is None:
        service, _, _ = build_components(settings)

    if settings.bearer_token is None:
        logger.warning("MCP_BEARER_TOKEN is not set; /mcp accepts unauthenticated requests")

    app = FastAPI(
        title="Combined Memory",
        description="Per-user memory notes on a Redis-protocol store with in-process fallback.",
        version=SERVER_VERSION,
    )
    app.state.service = service
    require_bearer = _bearer_checker(settings.bearer_token)

    @app.get("/health")
    def health():
        ok = service.primary.ping()
        return {
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "version": VERSION,
            "dragonfly": "connected" if ok else "unavailable",
            "fallback": "not needed" if ok else "in-memory",
        }

    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    @app.post("/mcp", dependencies=[Depends(require_bearer)])
    async def mcp(request: Request):
        mark("mcp")
        t0 = time.perf_counter()
        try:
            body = await request.body()
            try:
                payload = json.loads(body)
            except ValueError:
                return JSONResponse(jsonrpc_error(None, PARSE_ERROR, "Parse error"))

            if payload == []:
                return JSONResponse(jsonrpc_error(None, INVALID_REQUEST, "Invalid Request"))

            # store calls block on the socket
            if isinstance(payload, list):
                out = [await run_in_threadpool(handle_request, service, item) for item in payload]
                out = [o for o in out if o is not None]
                return JSONResponse(out) if out else Response(status_code=202)

            res = await run_in_threadpool(handle_request, service, payload)
            if res is None:
                return Response(status_code=202)
            status = 500 if res.get("error", {}).get("code") == INTERNAL_ERROR else 200
            return JSONResponse(res, status_code=status)
        finally:
            LAT.labels(operation="mcp").observe((time.perf_counter() - t0) * 1000.0)

    return app


def app_from_env() -> FastAPI:
    """Factory for `uvicorn --factory cmem.api.app:app_from_env`."""
    settings = Settings.from_env()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    return create_app(settings)

