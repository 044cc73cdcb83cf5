import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, Awaitable, Dict, List, Optional, Type, TypeVar

from fastapi import APIRouter, Body, Depends, FastAPI, HTTPException, Request
from pydantic import BaseModel, ValidationError

from .chain import AllProvidersExhausted
from .config import AppSettings, load_settings
from .db import Database, PersistenceError
from .gemini import GeminiClient
from .huggingface import HuggingFaceClient
from .llm import OllamaClient
from .orchestrator import EmptySummaryError, run_suggest, run_summarize
from .providers import ProviderAdapter, ProviderDescriptor, build_descriptors
from .schemas import SuggestRequest, SummarizeRequest
from .textproc import PreambleRules


logger = logging.getLogger("uvicorn.error")

DISCONNECT_POLL_S = 0.25
T = TypeVar("T")
M = TypeVar("M", bound=BaseModel)


def build_adapters(settings: AppSettings) -> Dict[str, ProviderAdapter]:
    return {
        "ollama": OllamaClient(settings.ollama.url, settings.ollama.model),
        "gemini": GeminiClient(settings.gemini.api_key, model=settings.gemini.model, base_url=settings.gemini.base_url),
        "huggingface": HuggingFaceClient(settings.huggingface.api_token, settings.huggingface.model_url),
    }


def get_settings(request: Request) -> AppSettings:
    return request.app.state.settings


def get_db(request: Request) -> Database:
    return request.app.state.db


def get_descriptors(request: Request) -> List[ProviderDescriptor]:
    return request.app.state.descriptors


def get_rules(request: Request) -> PreambleRules:
    return request.app.state.rules


def parse_body(model: Type[M], payload: Dict[str, Any], required: str, message: str) -> M:
    value = payload.get(required)
    if not isinstance(value, str) or not value.strip():
        raise HTTPException(status_code=400, detail=message)
    try:
        return model(**payload)
    except ValidationError as exc:
        errors = exc.errors()
        field = ".".join(str(loc) for loc in errors[0]["loc"]) if errors else "body"
        raise HTTPException(status_code=400, detail=f"Invalid {field}") from exc


async def run_until_disconnect(request: Request, work: Awaitable[T], poll_s: float = DISCONNECT_POLL_S) -> T:
    """Await ``work`` but cancel it as soon as the client goes away."""
    task = asyncio.ensure_future(work)
    try:
        while True:
            done, _ = await asyncio.wait({task}, timeout=poll_s)
            if done:
                return task.result()
            if await request.is_disconnected():
                task.cancel()
                logger.info("Client disconnected; cancelled %s", request.url.path)
                raise HTTPException(status_code=499, detail="Client closed request")
    finally:
        if not task.done():
            task.cancel()


router = APIRouter()


@router.post("/api/summarize")
async def summarize(
    request: Request,
    payload: Dict[str, Any] = Body(default={}),
    settings: AppSettings = Depends(get_settings),
    db: Database = Depends(get_db),
    descriptors: List[ProviderDescriptor] = Depends(get_descriptors),
    rules: PreambleRules = Depends(get_rules),
):
    body = parse_body(SummarizeRequest, payload, "text", "Text is required")
    work = run_summarize(body, settings=settings, descriptors=descriptors, db=db, rules=rules)
    try:
        return await run_until_disconnect(request, work)
    except AllProvidersExhausted as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    except EmptySummaryError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    except PersistenceError as exc:
        logger.exception("Summary generated but not saved")
        raise HTTPException(status_code=500, detail="Summary generated but could not be saved") from exc


@router.post("/api/suggest")
async def suggest(
    request: Request,
    payload: Dict[str, Any] = Body(default={}),
    settings: AppSettings = Depends(get_settings),
    descriptors: List[ProviderDescriptor] = Depends(get_descriptors),
    rules: PreambleRules = Depends(get_rules),
):
    body = parse_body(SuggestRequest, payload, "word", "Word is required")
    work = run_suggest(body, settings=settings, descriptors=descriptors, rules=rules)
    return await run_until_disconnect(request, work)


@router.get("/api/history")
async def list_history(db: Database = Depends(get_db)):
    # Read failures degrade to an empty list so the UI keeps working.
    try:
        return await db.list_summaries()
    except PersistenceError as exc:
        logger.warning("History read failed, returning empty list: %s", exc)
        return []


@router.delete("/api/history/{summary_id}")
async def delete_history_item(summary_id: int, db: Database = Depends(get_db)):
    if not await db.delete_summary(summary_id):
        raise HTTPException(status_code=404, detail="Summary not found")
    return {"message": "OK"}


@router.delete("/api/history-clear")
async def clear_history(db: Database = Depends(get_db)):
    deleted = await db.clear_summaries()
    return {"message": "OK", "deleted": deleted}


@router.get("/api/health")
async def health(request: Request, settings: AppSettings = Depends(get_settings)):
    providers = settings.configured_providers()
    return {
        "status": "ok",
        "providers": providers,
        "hasGemini": providers["gemini"],
        "hasDb": request.app.state.db_ready,
    }


@router.get("/settings")
async def get_settings_route(settings: AppSettings = Depends(get_settings)):
    return {"settings": settings.to_safe_dict()}


def create_app(
    settings: AppSettings,
    *,
    db: Optional[Database] = None,
    adapters: Optional[Dict[str, ProviderAdapter]] = None,
) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        try:
            await app.state.db.init()
            app.state.db_ready = True
        except PersistenceError:
            # Summaries still generate; saving them fails with a 500.
            logger.exception("History database unavailable")
            app.state.db_ready = False
        try:
            yield
        finally:
            for adapter in app.state.adapters.values():
                await adapter.close()

    app = FastAPI(title="Notewise", lifespan=lifespan)
    app.state.settings = settings
    app.state.db = db or Database(settings.database_path)
    app.state.db_ready = False
    app.state.adapters = adapters if adapters is not None else build_adapters(settings)
    app.state.descriptors = build_descriptors(settings, app.state.adapters)
    app.state.rules = PreambleRules.from_config(settings.preamble)

    app.include_router(router)
    return app


app = create_app(load_settings())


if __name__ == "__main__":
    import os
    import uvicorn

    settings = app.state.settings
    reload_enabled = os.getenv("NOTEWISE_RELOAD", "").lower() in ("1", "true", "yes", "on")
    try:
        uvicorn.run(
            "notewise.main:app",
            host=settings.host,
            port=settings.port,
            reload=reload_enabled,
        )
    except KeyboardInterrupt:
        pass
