import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from seekchat import __version__
from seekchat.config import ServerConfig
from seekchat.errors import (
    ChatError,
    ConflictError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from seekchat.server.routes import router
from seekchat.store import AttachmentStore, PromptStore, SessionStore

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR = (
    (ValidationError, 400),
    (NotFoundError, 404),
    (ConflictError, 409),
    (StorageError, 500),
)


def _status_for(exc: ChatError) -> int:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status_code
    return 500


async def _chat_error_handler(request: Request, exc: ChatError) -> JSONResponse:
    status_code = _status_for(exc)
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
    else:
        logger.info(f"{request.method} {request.url.path} rejected: {exc}")
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


async def _request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    logger.info(f"{request.method} {request.url.path} rejected: invalid body")
    return JSONResponse(
        status_code=400,
        content={"detail": "Invalid request body", "errors": _jsonable_errors(exc)},
    )


def _jsonable_errors(exc: RequestValidationError) -> list[dict]:
    return [
        {"loc": list(err.get("loc", ())), "msg": str(err.get("msg", ""))}
        for err in exc.errors()
    ]


def create_app(config: ServerConfig | None = None) -> FastAPI:
    config = config or ServerConfig.from_env()
    config.validate()

    app = FastAPI(title="seekchat persistence server", version=__version__)
    app.state.config = config
    app.state.session_store = SessionStore(config.data_dir)
    app.state.attachment_store = AttachmentStore(config.data_dir)
    app.state.prompt_store = PromptStore(config.data_dir)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )
    app.add_exception_handler(ChatError, _chat_error_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)
    app.include_router(router)

    logger.info(f"Serving chats from {app.state.session_store.root}")
    return app
