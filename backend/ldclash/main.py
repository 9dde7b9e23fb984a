# ldclash/main.py
# uvicorn ldclash.main:app --host 0.0.0.0 --port 8000 --reload

import json
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from starlette.concurrency import run_in_threadpool

from ldclash.auth import basic_auth_gate, router as auth_router
from ldclash.config import Settings, load_settings, setup_logger
from ldclash.gateway import CompletionGateway, normalize_error
from ldclash.modes import get_mode_spec
from ldclash.prompts import build_prompt
from ldclash.validator import UNPARSEABLE, ChatValidationError, validate_chat_body


# ---------- Lifespan ----------
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the completion gateway once, unless one was injected.

    A missing or malformed OPENAI_API_KEY raises ConfigurationError here and
    the server refuses to start.
    """
    settings: Settings = app.state.settings
    if not settings.auth_disabled and not (settings.basic_auth_user and settings.basic_auth_pass):
        logger.warning("[STARTUP] BASIC_AUTH_USER/BASIC_AUTH_PASS not set; every gated request will be refused")
    if app.state.gateway is None:
        logger.info(f"[STARTUP] Building completion gateway (model={settings.openai_model})")
        app.state.gateway = CompletionGateway.from_settings(settings)
    logger.info(
        f"[STARTUP] LD Clash ready (strict_validation={settings.strict_validation}, "
        f"output_style={settings.output_style}, basic_auth={settings.basic_auth_enabled})"
    )
    yield
    logger.info("[STARTUP] LD Clash shutting down")


# ---------- Helpers ----------
async def _read_json_body(request: Request) -> Any:
    raw = await request.body()
    try:
        return json.loads(raw)
    except ValueError:
        return UNPARSEABLE


def _error(message: Any, status_code: int, kind: Optional[str] = None) -> JSONResponse:
    content = {"error": message}
    if kind:
        content["kind"] = kind
    return JSONResponse(status_code=status_code, content=content)


# ---------- App factory ----------
def create_app(settings: Optional[Settings] = None, gateway: Optional[CompletionGateway] = None) -> FastAPI:
    settings = settings or load_settings()
    setup_logger(settings.log_level)

    app = FastAPI(
        title="LD Clash",
        description="Lincoln-Douglas debate coaching assistant",
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.gateway = gateway

    app.middleware("http")(basic_auth_gate)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(auth_router)

    @app.post("/api/chat")
    async def chat(request: Request):
        """Validate, build the prompt, call the model once, return {text}."""
        gateway: Optional[CompletionGateway] = request.app.state.gateway
        if gateway is None:
            return _error("Chat service not initialized", status.HTTP_503_SERVICE_UNAVAILABLE)

        body = await _read_json_body(request)
        try:
            chat_request = validate_chat_body(body, strict=settings.strict_validation)
        except ChatValidationError as exc:
            logger.info(f"[CHAT] Rejected request: {exc}")
            return _error(exc.payload, exc.status_code)

        try:
            spec = get_mode_spec(chat_request.mode, settings.output_style)
            bundle = build_prompt(spec, chat_request, temperature=settings.openai_temperature)
            logger.info(f"[CHAT] mode={spec.mode.value} input_chars={len(bundle.input)}")
            result = await run_in_threadpool(gateway.complete, bundle)
        except Exception as exc:
            logger.exception(f"[CHAT] Unexpected error: {exc}")
            return _error(normalize_error(exc), status.HTTP_500_INTERNAL_SERVER_ERROR)

        if not result.ok:
            return _error(result.error, status.HTTP_500_INTERNAL_SERVER_ERROR, kind=result.kind.value)

        return {"text": result.text}

    @app.get("/api/health")
    def health():
        return {"status": "ok"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("ldclash.main:app", host="0.0.0.0", port=8000, reload=True)
