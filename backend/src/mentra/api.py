"""FastAPI application for the Mentra tutoring chat service."""

import logging
from urllib.parse import quote

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import ValidationError
from starlette.datastructures import UploadFile

from mentra.config import Settings, settings as default_settings
from mentra.db import SessionStore, ThreadNotFoundError
from mentra.models import (
    ChatFailureResponse,
    ChatRequest,
    ChatResponse,
    ErrorResponse,
    OkResponse,
    ThreadListResponse,
    ThreadResponse,
)
from mentra.services.chat_handler import ConversationOrchestrator, ResponseStyle
from mentra.services.compaction import ConversationCompactor
from mentra.services.context_window import ContextWindowBuilder
from mentra.services.export import export_filename, render_markdown
from mentra.services.extraction import DocumentExtractor, UploadedDocument
from mentra.services.ingestion import EmptyMessageError, MessageIngestionPipeline
from mentra.services.model_gateway import ModelGateway, create_model_gateway

logger = logging.getLogger(__name__)


def create_app(
    settings: Settings | None = None,
    store: SessionStore | None = None,
    gateway: ModelGateway | None = None,
) -> FastAPI:
    """Build the application and its collaborators.

    Args:
        settings: Defaults to the environment-derived settings
        store: Thread store. Defaults to a fresh in-memory store.
        gateway: Model gateway. Defaults to the one ``settings`` selects.

    """
    settings = settings or default_settings
    store = store or SessionStore(greeting=settings.greeting)
    gateway = gateway or create_model_gateway(settings)

    compactor = None
    if settings.compaction_enabled:
        compactor = ConversationCompactor(
            store,
            gateway,
            recent_turns=settings.recent_turns,
            threshold=settings.compaction_threshold,
        )

    app = FastAPI(
        title="Mentra API",
        description="Tutoring chat service with document-aware conversations",
        version="0.1.0",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.settings = settings
    app.state.store = store
    app.state.orchestrator = ConversationOrchestrator(
        store=store,
        gateway=gateway,
        pipeline=MessageIngestionPipeline(
            DocumentExtractor(
                max_bytes=settings.max_upload_bytes,
                max_chars=settings.max_extracted_chars,
            )
        ),
        window=ContextWindowBuilder(settings.recent_turns),
        model_timeout=settings.model_timeout_seconds,
        compactor=compactor,
        serialize_threads=settings.serialize_thread_requests,
    )

    @app.exception_handler(ThreadNotFoundError)
    async def thread_not_found_handler(request: Request, exc: ThreadNotFoundError):
        return JSONResponse(status_code=404, content={"error": "Thread not found"})

    @app.exception_handler(EmptyMessageError)
    async def empty_message_handler(request: Request, exc: EmptyMessageError):
        return JSONResponse(status_code=400, content={"error": str(exc)})

    app.include_router(router)
    return app


# ============= Dependencies =============


def get_store(request: Request) -> SessionStore:
    return request.app.state.store


def get_orchestrator(request: Request) -> ConversationOrchestrator:
    return request.app.state.orchestrator


# ============= Routes =============

router = APIRouter()

_errors = {
    404: {"model": ErrorResponse},
}


@router.get("/", response_class=PlainTextResponse)
async def root():
    """Root endpoint."""
    return "Mentra backend is running ✅"


@router.get("/api/health")
async def health():
    """Health check endpoint."""
    return {"ok": True}


@router.get("/api/threads", response_model=ThreadListResponse)
def list_threads(store: SessionStore = Depends(get_store)):
    """List threads, most recently active first."""
    return ThreadListResponse(threads=store.list_threads())


@router.post("/api/threads", response_model=ThreadResponse, status_code=201)
def create_thread(store: SessionStore = Depends(get_store)):
    """Create a new thread seeded with the greeting."""
    return ThreadResponse(thread=store.create_thread())


@router.get("/api/threads/{thread_id}", response_model=ThreadResponse, responses=_errors)
def get_thread(thread_id: str, store: SessionStore = Depends(get_store)):
    """Get a thread with its messages."""
    return ThreadResponse(thread=store.get_thread(thread_id))


@router.delete("/api/threads/{thread_id}", response_model=OkResponse, responses=_errors)
def delete_thread(
    thread_id: str,
    store: SessionStore = Depends(get_store),
    orchestrator: ConversationOrchestrator = Depends(get_orchestrator),
):
    """Delete a thread."""
    store.delete_thread(thread_id)
    orchestrator.forget_thread(thread_id)
    return OkResponse()


@router.get("/api/threads/{thread_id}/export", response_class=PlainTextResponse, responses=_errors)
def export_thread(thread_id: str, store: SessionStore = Depends(get_store)):
    """Download a thread as a markdown transcript."""
    thread = store.get_thread(thread_id)
    filename = quote(export_filename(thread))
    return PlainTextResponse(
        render_markdown(thread),
        media_type="text/markdown; charset=utf-8",
        headers={"Content-Disposition": f"attachment; filename*=UTF-8''{filename}"},
    )


async def _read_chat_request(request: Request) -> tuple[ChatRequest, list[UploadedDocument]]:
    """Parse a JSON body, or a multipart form with ``files``."""
    content_type = request.headers.get("content-type", "")

    if content_type.startswith("multipart/form-data"):
        max_bytes = request.app.state.settings.max_upload_bytes
        form = await request.form()
        chat_request = ChatRequest(
            content=str(form.get("content") or ""),
            response_style=form.get("responseStyle") or None,
            include_practice=str(form.get("includePractice", "true")).lower() == "true",
        )
        documents = []
        for upload in form.getlist("files"):
            if not isinstance(upload, UploadFile):
                continue
            # Read one byte past the limit so oversized files are detected
            data = await upload.read(max_bytes + 1)
            documents.append(
                UploadedDocument(
                    name=upload.filename or "upload",
                    media_type=upload.content_type or "application/octet-stream",
                    data=data,
                )
            )
        return chat_request, documents

    body = await request.body()
    if not body:
        return ChatRequest(), []
    return ChatRequest.model_validate_json(body), []


@router.post(
    "/api/threads/{thread_id}/messages",
    response_model=ChatResponse,
    status_code=201,
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        500: {"model": ChatFailureResponse},
    },
)
async def post_message(
    thread_id: str,
    request: Request,
    orchestrator: ConversationOrchestrator = Depends(get_orchestrator),
):
    """Send a message (text and optional files) and get the tutor's reply."""
    try:
        chat_request, documents = await _read_chat_request(request)
    except ValidationError as e:
        logger.warning(f"Invalid message body for thread {thread_id}: {e}")
        return JSONResponse(status_code=400, content={"error": "Invalid message body"})

    result = await orchestrator.post_message(
        thread_id,
        chat_request.content,
        documents,
        style=ResponseStyle.parse(chat_request.response_style),
        include_practice=chat_request.include_practice,
    )

    if not result.ok:
        failure = ChatFailureResponse(
            error=result.error or "Model request failed",
            message=result.message,
            thread=result.thread,
        )
        return JSONResponse(
            status_code=500,
            content=failure.model_dump(mode="json", by_alias=True),
        )

    return ChatResponse(message=result.message, thread=result.thread)


app = create_app()


def run():
    """Run the application."""
    import uvicorn

    logging.basicConfig(
        level=default_settings.log_level.upper(),
        format="[%(asctime)s] %(levelname)s %(name)s - %(message)s",
    )
    uvicorn.run(
        "mentra.api:app",
        host=default_settings.host,
        port=default_settings.port,
    )
