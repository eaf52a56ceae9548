"""
HTTP API for RapidCLI.

This module exposes the same services as the interactive CLI over REST:
- **GET /health**                 - liveness probe for health checks.
- **POST /sessions**              - start a new session, returns its ID.
- **GET /sessions**               - list stored sessions, most recent first.
- **POST /sessions/{id}/load**    - make a stored session the active one.
- **POST /sessions/{id}/save**    - save the active session under a new ID.
- **GET /history**                - messages of the active session.
- **GET /tools**                  - registered tools and their availability.
- **POST /tools/reload**          - re-read the tool registry.
- **POST /agent**                 - run one objective: {"message": "..."}

Endpoints are plain ``def`` functions: the services block (model calls, tool processes), so FastAPI
runs them in its thread pool.
"""

import logging
from typing import (
    List,
    Optional,
)

from fastapi import (
    FastAPI,
    HTTPException,
    Request,
)
from pydantic import ValidationError

from rapidcli.api.models import (
    MessageRequest,
    MessageResponse,
    SessionResponse,
    ToolInfo,
)
from rapidcli.common import (
    AnsiColors,
    colored_print,
)
from rapidcli.core.context import (
    AppContext,
    build_context,
)
from rapidcli.core.schema import (
    ChatMessage,
    ConversationSessionSummary,
)
from rapidcli.tools.registry import ToolDescriptor

logger = logging.getLogger(__name__)


def _tool_info(descriptor: ToolDescriptor) -> ToolInfo:
    return ToolInfo(
        name=descriptor.name,
        display_name=descriptor.display_name,
        type=descriptor.configuration.type,
        available=descriptor.is_available,
        detail=descriptor.availability.detail,
        tasks=list(descriptor.configuration.tasks),
    )


def create_app(context: Optional[AppContext] = None) -> FastAPI:
    """Build the FastAPI application around *context* (a fresh one by default)."""
    ctx = context or build_context()
    app = FastAPI(title="RapidCLI API", version="0.1.0", description="RapidCLI agent API")
    app.state.context = ctx

    def get_ctx(request: Request) -> AppContext:
        return request.app.state.context

    # -----------------------------------------------------------------------
    # Routes
    # -----------------------------------------------------------------------
    @app.get("/health", summary="Health check")
    def health() -> dict[str, str]:
        """Return a simple liveness payload."""
        return {"status": "ok"}

    @app.post("/sessions", response_model=SessionResponse, summary="Start a new session")
    def create_session(request: Request) -> SessionResponse:
        session = get_ctx(request).chat.reset()
        return SessionResponse(session_id=session.id)

    @app.get(
        "/sessions", response_model=List[ConversationSessionSummary], summary="List stored sessions"
    )
    def list_sessions(request: Request) -> List[ConversationSessionSummary]:
        return get_ctx(request).store.list_sessions()

    @app.post("/sessions/{session_id}/load", response_model=SessionResponse)
    def load_session(session_id: str, request: Request) -> SessionResponse:
        chat = get_ctx(request).chat
        try:
            found = chat.load_session(session_id)
        except (ValidationError, OSError) as exc:
            logger.exception("Failed to load session %s", session_id)
            raise HTTPException(
                status_code=500, detail=f"Session '{session_id}' could not be read."
            ) from exc
        except ValueError as exc:
            raise HTTPException(status_code=400, detail="Invalid session id.") from exc
        if not found:
            raise HTTPException(status_code=404, detail=f"Session '{session_id}' not found.")
        return SessionResponse(session_id=chat.session.id, message_count=len(chat.history()))

    @app.post("/sessions/{session_id}/save", response_model=SessionResponse)
    def save_session(session_id: str, request: Request) -> SessionResponse:
        chat = get_ctx(request).chat
        try:
            saved = chat.save_snapshot(session_id)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail="Invalid session id.") from exc
        return SessionResponse(session_id=saved, message_count=len(chat.history()))

    @app.get("/history", response_model=List[ChatMessage], summary="Active session messages")
    def history(request: Request) -> List[ChatMessage]:
        return list(get_ctx(request).chat.history())

    @app.get("/tools", response_model=List[ToolInfo], summary="Registered tools")
    def tools(request: Request) -> List[ToolInfo]:
        orchestrator = get_ctx(request).orchestrator
        orchestrator.initialize()
        return [_tool_info(d) for d in orchestrator.registered_tools()]

    @app.post("/tools/reload", response_model=List[ToolInfo], summary="Reload the tool registry")
    def reload_tools(request: Request) -> List[ToolInfo]:
        return [_tool_info(d) for d in get_ctx(request).registry.reload()]

    @app.post("/agent", response_model=MessageResponse, summary="Process an objective")
    def agent_endpoint(req: MessageRequest, request: Request) -> MessageResponse:
        ctx = get_ctx(request)
        if not req.message.strip():
            raise HTTPException(status_code=400, detail="Message cannot be empty.")

        outcome = ctx.assistant.handle_objective(req.message)
        orchestration = outcome.orchestration
        tool = None
        if orchestration is not None and orchestration.tool_executed and orchestration.descriptor:
            tool = orchestration.descriptor.display_name
        result = outcome.agent_result
        return MessageResponse(
            reply=outcome.response_text,
            session_id=ctx.chat.session.id,
            completed=result.completed if result is not None else None,
            tool=tool,
            thoughts=outcome.thoughts,
            tool_invocations=list(result.tool_invocations) if result is not None else [],
        )

    return app


# ---------------------------------------------------------------------------
# Public helper to launch the API (imported by main.py)
# ---------------------------------------------------------------------------
def run_api(
    context: Optional[AppContext] = None,
    host: str = "0.0.0.0",
    port: int = 8000,
    reload: bool = False,
    log_level: str = "warning",
) -> None:
    """Start a uvicorn server hosting the app factory.

    Parameters
    ----------
    context:
        Services to serve. Ignored when *reload* is set, since the reloader re-imports the app.
    host, port:
        Bind address for the HTTP server.
    reload:
        If *True*, enable auto-reload (useful in development).
    log_level:
        Logging level for uvicorn.
    """

    # Lazy import - keeps uvicorn out of the CLI start-up path
    import uvicorn  # pylint: disable=import-outside-toplevel

    logger.info(
        "Starting RapidCLI API at %s:%d (reload=%s, log_level=%s)", host, port, reload, log_level
    )
    colored_print(f"RapidCLI API is running at http://localhost:{port}.", AnsiColors.GREEN)
    colored_print(f"Visit http://localhost:{port}/docs for API documentation.", AnsiColors.BLUE)
    if reload:
        uvicorn.run(
            "rapidcli.api.app:create_app",
            factory=True,
            host=host,
            port=port,
            reload=True,
            log_level=log_level,
        )
    else:
        uvicorn.run(create_app(context), host=host, port=port, log_level=log_level)
