"""FastAPI application exposing the summary endpoints.

Endpoints:
  GET  /summary?q=...      summary JSON; 403 for bots, 429 over the per-IP limit
  POST /log-session-hit    form fields q, results_count
  GET  /health             liveness plus whether a provider key is configured

Handlers are plain ``def`` functions: the service blocks on SQLite and the
provider call, so FastAPI runs them in its worker thread pool.
"""

from __future__ import annotations

import logging
import time

from fastapi import FastAPI, Form, Query, Request
from fastapi.responses import JSONResponse

from aiss.config import AissConfig, load_config
from aiss.db.connection import Database
from aiss.db.schema import initialize
from aiss.logging_config import configure_logging
from aiss.summary.models import ClientInfo
from aiss.summary.service import SummaryService, build_service

logger = logging.getLogger(__name__)

API_VERSION = "0.1.0"


def client_ip(request: Request, trust_proxy: bool = False) -> str:
    """Socket peer address, or the first X-Forwarded-For hop behind a trusted proxy."""
    if trust_proxy:
        forwarded = request.headers.get("x-forwarded-for", "")
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return first_hop
    return request.client.host if request.client else "unknown"


def _client_info(request: Request, trust_proxy: bool) -> ClientInfo:
    return ClientInfo(ip=client_ip(request, trust_proxy), headers=dict(request.headers))


def create_app(
    service: SummaryService | None = None, config: AissConfig | None = None
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        service: Pre-built service (tests). Built from *config* when omitted.
        config: Loaded configuration. Read from the working directory when omitted.
    """
    if config is None:
        config = load_config()
    configure_logging(config.logging.level)

    if service is None:
        conn = Database(config.storage.db_path).connect()
        initialize(conn)
        service = build_service(config, conn)
        logger.info("Serving summaries from %s", config.storage.db_path)

    trust_proxy = config.site.trust_proxy

    app = FastAPI(
        title="AI Search Summary",
        version=API_VERSION,
        docs_url=None,
        redoc_url=None,
    )
    app.state.service = service

    @app.get("/summary")
    def summary(request: Request, q: str = Query("")) -> JSONResponse:
        client = _client_info(request, trust_proxy)
        response = service.summarize(q, client)

        headers: dict[str, str] = {}
        if response.rate is not None and response.rate.limit > 0:
            headers["X-RateLimit-Limit"] = str(response.rate.limit)
            headers["X-RateLimit-Remaining"] = str(response.rate.remaining)
            headers["X-RateLimit-Reset"] = str(response.rate.reset_at)
        if response.http_status == 429 and response.rate is not None:
            headers["Retry-After"] = str(response.rate.retry_after(time.time()))

        return JSONResponse(
            response.to_dict(), status_code=response.http_status, headers=headers
        )

    @app.post("/log-session-hit")
    def log_session_hit(
        request: Request,
        q: str = Form(""),
        results_count: int = Form(0),
    ) -> dict:
        client = _client_info(request, trust_proxy)
        return {"logged": service.record_session_hit(q, results_count, client)}

    @app.get("/health")
    def health() -> dict:
        return {"status": "ok", "configured": service.configured}

    return app
