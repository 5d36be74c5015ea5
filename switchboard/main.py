"""
FastAPI application — the Switchboard HTTP entry point.

A thin caller over Dispatcher.dispatch(): every front-end (mobile, web)
posts its turns here instead of carrying its own copy of the routing.
Authentication happens upstream; the user id arrives in a trusted header.
"""

import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from switchboard.catalog import group_by_provider, visible_models
from switchboard.config import get_config
from switchboard.dispatcher import Dispatcher
from switchboard.errors import InvalidApiKey, InvalidRequest, SwitchboardError
from switchboard.prompts import personalize
from switchboard.routing import DIRECT_PROVIDERS, Provider, redact_key, validate_api_key
from switchboard.storage.sqlite_store import SQLiteStore
from switchboard.turns import USER, normalize_turns

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Globals, initialized at startup
# ---------------------------------------------------------------------------
sqlite_store: SQLiteStore | None = None
dispatcher: Dispatcher | None = None

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
_log_handlers: list[logging.Handler] = []


def _setup_logging(cfg: dict):
    """
    (Re)attach console and optional file output to the "switchboard" logger.
    Handlers from a previous call are closed first, so reloading config
    never duplicates output. Unknown level names fall back to INFO.
    """
    log_cfg = cfg.get("logging") or {}
    level = logging.getLevelName(str(log_cfg.get("level") or "INFO").upper())
    if not isinstance(level, int):
        level = logging.INFO

    package_logger = logging.getLogger("switchboard")
    for handler in _log_handlers:
        package_logger.removeHandler(handler)
        handler.close()

    _log_handlers[:] = [logging.StreamHandler()]
    if log_cfg.get("file"):
        log_path = Path(log_cfg["file"])
        log_path.parent.mkdir(parents=True, exist_ok=True)
        _log_handlers.append(logging.FileHandler(log_path, encoding="utf-8"))

    formatter = logging.Formatter(LOG_FORMAT)
    for handler in _log_handlers:
        handler.setFormatter(formatter)
        package_logger.addHandler(handler)
    package_logger.setLevel(level)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle."""
    global sqlite_store, dispatcher

    cfg = get_config()
    _setup_logging(cfg)

    sqlite_store = SQLiteStore(cfg["storage"]["sqlite_path"])
    dispatcher = Dispatcher.from_config(cfg, sqlite_store)
    logger.info(
        "Switchboard ready (timeout=%ss, serialize_per_context=%s)",
        dispatcher.timeout, dispatcher.serialize_per_context,
    )
    yield
    logger.info("Switchboard shutting down")


app = FastAPI(title="Switchboard", lifespan=lifespan)


def _error(exc: SwitchboardError) -> JSONResponse:
    return JSONResponse(exc.to_dict(), status_code=exc.status_code)


def _user_id(request: Request) -> str | None:
    header = get_config()["server"].get("user_header", "X-User-Id")
    user_id = (request.headers.get(header) or "").strip()
    return user_id or None


def _unauthenticated() -> JSONResponse:
    return JSONResponse({"error": "Missing user id", "type": "Unauthenticated"}, status_code=401)


async def _json_body(request: Request) -> dict:
    try:
        body = await request.json()
    except ValueError:
        raise InvalidRequest("Request body must be JSON")
    if not isinstance(body, dict):
        raise InvalidRequest("Request body must be a JSON object")
    return body


def _provider(name: str) -> Provider:
    try:
        return Provider(name)
    except ValueError:
        raise InvalidRequest(f"Unknown provider: {name}")


# ---------------------------------------------------------------------------
# Chat
# ---------------------------------------------------------------------------

@app.post("/api/v1/chat")
async def chat(request: Request):
    """
    Dispatch a conversation.

    Body: {"messages": [{"role", "content"}, ...], "model": str, "context_id": str}
    """
    user_id = _user_id(request)
    if not user_id:
        return _unauthenticated()

    try:
        body = await _json_body(request)
        model = body.get("model")
        context_id = body.get("context_id")
        if not isinstance(model, str) or not model.strip():
            raise InvalidRequest("Model is required")
        if not isinstance(context_id, str) or not context_id:
            raise InvalidRequest("context_id is required")

        turns = normalize_turns(body.get("messages"))
        if turns and turns[-1].role == USER:
            sqlite_store.append_message(context_id, USER, turns[-1].content,
                                        user_id=user_id, model=model.strip())
        if get_config()["dispatch"].get("personalize", True):
            turns = personalize(turns, sqlite_store.get_profile(user_id))

        result = await dispatcher.dispatch(user_id, context_id, turns, model)
    except SwitchboardError as e:
        return _error(e)
    except Exception:
        logger.exception("Unhandled error in /api/v1/chat")
        return JSONResponse({"error": "Internal server error", "type": "InternalError"}, status_code=500)

    return result.to_dict()


@app.get("/api/v1/route")
async def route(request: Request, model: str):
    """Show where a model id would be routed for this user (key redacted)."""
    user_id = _user_id(request)
    if not user_id:
        return _unauthenticated()
    try:
        decision = dispatcher.route(user_id, model)
    except SwitchboardError as e:
        return _error(e)
    return decision.to_dict(redact=True)


# ---------------------------------------------------------------------------
# Models and preferences
# ---------------------------------------------------------------------------

@app.get("/api/v1/models")
async def list_models(request: Request):
    user_id = _user_id(request)
    if not user_id:
        return _unauthenticated()
    try:
        credentials = dispatcher.resolver.resolve(user_id)
    except SwitchboardError as e:
        return _error(e)

    models = visible_models(sqlite_store.get_model_preferences(user_id))
    return {
        "object": "list",
        "data": [m.to_dict() for m in models],
        "grouped": {
            provider: [m.id for m in group]
            for provider, group in group_by_provider(models).items()
        },
        "direct_providers": [p.value for p in DIRECT_PROVIDERS if credentials.has(p)],
        "fallback_available": credentials.has(Provider.OPENROUTER),
    }


@app.put("/api/v1/preferences/models/{model_id:path}")
async def set_model_preference(model_id: str, request: Request):
    user_id = _user_id(request)
    if not user_id:
        return _unauthenticated()
    try:
        body = await _json_body(request)
        enabled = body.get("enabled")
        if not isinstance(enabled, bool):
            raise InvalidRequest("'enabled' must be true or false")
    except SwitchboardError as e:
        return _error(e)
    sqlite_store.set_model_preference(user_id, model_id, enabled)
    return {"model_id": model_id, "enabled": enabled}


# ---------------------------------------------------------------------------
# Provider keys
# ---------------------------------------------------------------------------

@app.get("/api/v1/keys")
async def list_keys(request: Request):
    """Which providers have a key, redacted. Never returns the secrets."""
    user_id = _user_id(request)
    if not user_id:
        return _unauthenticated()
    try:
        credentials = dispatcher.resolver.resolve(user_id)
    except SwitchboardError as e:
        return _error(e)
    return {
        p.value: redact_key(credentials.get(p)) if credentials.has(p) else None
        for p in Provider
    }


@app.put("/api/v1/keys/{provider}")
async def set_key(provider: str, request: Request):
    user_id = _user_id(request)
    if not user_id:
        return _unauthenticated()
    try:
        target = _provider(provider)
        body = await _json_body(request)
        api_key = body.get("api_key")
        if not isinstance(api_key, str) or not validate_api_key(target, api_key):
            raise InvalidApiKey(f"That doesn't look like a valid {target.title} API key")
    except SwitchboardError as e:
        return _error(e)

    sqlite_store.set_credential(user_id, target, api_key.strip())
    return {"provider": target.value, "api_key": redact_key(api_key.strip())}


@app.delete("/api/v1/keys/{provider}")
async def clear_key(provider: str, request: Request):
    user_id = _user_id(request)
    if not user_id:
        return _unauthenticated()
    try:
        target = _provider(provider)
    except SwitchboardError as e:
        return _error(e)
    sqlite_store.set_credential(user_id, target, None)
    return {"provider": target.value, "api_key": None}


@app.get("/health")
async def health():
    return {"status": "ok"}
