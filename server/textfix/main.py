from __future__ import annotations

import time
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Dict, Optional

import httpx
from fastapi import FastAPI, Form, Request
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates
from pydantic import BaseModel

from textfix.logging_config import generate_trace_id, get_logger, setup_logging, with_trace

setup_logging()
log_server = get_logger("server")
log_http = get_logger("http")

from textfix.core.corrector import CorrectionHandler
from textfix.core.llm import CorrectionEngine
from textfix.core.providers import build_provider
from textfix.server_config import (
    ServerConfig,
    load_config,
    load_env,
    read_api_key,
    resolve_base_path,
)

TEMPLATES_DIR = Path(__file__).parent / "templates"


class CorrectionRequest(BaseModel):
    text: str = ""


class CorrectionResponse(BaseModel):
    original_text: str
    corrected_text: str


def build_engine(config: ServerConfig, client: httpx.AsyncClient) -> CorrectionHandler:
    api_key = read_api_key(config.provider)
    provider = build_provider(
        config.provider,
        api_key,
        model=config.model,
        max_tokens=config.max_tokens,
        temperature=config.temperature,
    )
    if not api_key:
        log_server.warning(
            "未配置API密钥 | API key not configured; requests will be refused | provider={provider}",
            provider=config.provider,
        )
    return CorrectionHandler(provider, client, timeout_s=config.timeout_s)


def create_app(
    config: Optional[ServerConfig] = None,
    engine: Optional[CorrectionEngine] = None,
) -> FastAPI:
    """Build the web app around one correction engine.

    Without an explicit ``engine`` the app owns an ``httpx.AsyncClient`` for
    its lifetime and builds a ``CorrectionHandler`` for the configured provider.
    """

    if config is None:
        base_path = resolve_base_path()
        load_env(base_path)
        config = load_config(base_path)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        t_start = time.perf_counter()
        log_server.info("服务器启动 | Server starting | provider={provider}", provider=config.provider)

        client: Optional[httpx.AsyncClient] = None
        try:
            if app.state.engine is None:
                client = httpx.AsyncClient()
                app.state.engine = build_engine(config, client)

            startup_ms = (time.perf_counter() - t_start) * 1000.0
            log_server.info("服务器就绪 | Server ready | startup_time_ms={ms:.0f}", ms=startup_ms)
            yield
        finally:
            if client is not None:
                await client.aclose()
                app.state.engine = None
            log_server.info("服务器关闭 | Server stopped")

    app = FastAPI(title="TextFix", version="1.0.0", lifespan=lifespan)
    app.state.config = config
    app.state.engine = engine
    templates = Jinja2Templates(directory=str(TEMPLATES_DIR))

    def render(request: Request, *, corrected: str, original_text: str) -> HTMLResponse:
        context: Dict[str, Any] = {"corrected": corrected, "original_text": original_text}
        return templates.TemplateResponse(request, "index.html", context)

    @app.get("/", response_class=HTMLResponse)
    async def index(request: Request) -> HTMLResponse:
        return render(request, corrected="", original_text="")

    @app.post("/", response_class=HTMLResponse)
    async def correct_form(request: Request, text: str = Form("")) -> HTMLResponse:
        trace_id = generate_trace_id()
        with_trace(log_http, trace_id).debug(
            "收到表单 | Form submitted | text_len={len}", len=len(text)
        )
        result = await request.app.state.engine.handle(text, trace_id=trace_id)
        return render(request, corrected=result.corrected_text, original_text=result.original_text)

    @app.post("/api/correct", response_model=CorrectionResponse)
    async def correct_json(body: CorrectionRequest, request: Request) -> CorrectionResponse:
        trace_id = generate_trace_id()
        with_trace(log_http, trace_id).debug(
            "收到API请求 | API request | text_len={len}", len=len(body.text)
        )
        result = await request.app.state.engine.handle(body.text, trace_id=trace_id)
        return CorrectionResponse(
            original_text=result.original_text,
            corrected_text=result.corrected_text,
        )

    @app.get("/health")
    def health() -> Dict[str, str]:
        return {"status": "ok", "provider": config.provider}

    return app
