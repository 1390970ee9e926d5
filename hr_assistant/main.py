"""
FastAPI application serving the HR Assistant.
Provides REST API endpoints for chat, exception approvals and monitoring.
"""

import asyncio
import contextlib
import logging
import os
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import uvicorn
from fastapi import FastAPI, Header, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from hr_assistant.chat_engine import ChatEngine, InvalidMessageError
from hr_assistant.config import settings
from hr_assistant.schemas import ChatRequest, ChatResponse, HealthResponse

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

_engine: ChatEngine | None = None


def get_chat_engine() -> ChatEngine:
    """Get or create the global chat engine instance."""
    global _engine
    if _engine is None:
        _engine = ChatEngine()
    return _engine


# Lifespan context manager for startup/shutdown
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle startup and shutdown events."""
    # Startup
    logger.info("Starting HR Assistant API")
    logger.info(f"Environment: {settings.environment}")

    engine = get_chat_engine()
    sweeper = asyncio.create_task(engine.run_sweeper())
    logger.info(f"Sweeper started (every {settings.sweep_interval_seconds}s)")

    yield

    # Shutdown
    logger.info("Shutting down HR Assistant API")
    sweeper.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await sweeper
    engine.record_store.close()


# Create FastAPI app
app = FastAPI(
    title="HR Assistant API",
    description="Conversational assistant for leave and work-from-home requests",
    version="1.0.0",
    lifespan=lifespan,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# API Endpoints


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint."""
    return {"message": "HR Assistant API", "version": "1.0.0", "docs": "/docs"}


@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check():
    """
    Health check endpoint.
    Returns service status and the record-store circuit breaker state.
    """
    return HealthResponse(
        status="healthy",
        environment=settings.environment,
        record_store_circuit_breaker=get_chat_engine().record_store.get_circuit_breaker_state(),
    )


@app.post("/chat", response_model=ChatResponse, response_model_exclude_none=True, tags=["Chat"])
async def chat(
    request: ChatRequest,
    x_user_email: str | None = Header(None),
    x_user_name: str | None = Header(None),
):
    """
    Chat with the HR Assistant.

    Multiple requests with the same session_id continue the same
    conversation, so a leave request can be built up over several turns:

    Request 1:
    ```json
    {"message": "2 days casual leave from tomorrow", "session_id": "user123"}
    ```

    Request 2 (same session):
    ```json
    {"message": "doctor visit", "session_id": "user123"}
    ```

    Request 3 answers the confirmation, either as text ("yes") or with
    `"confirmationAction": "yes"`.
    """
    payload = request.to_payload()
    if x_user_email:
        payload.employee_email = x_user_email
    if x_user_name:
        payload.employee_name = x_user_name

    try:
        logger.info(f"Chat request: session={request.session_id}")
        reply = await get_chat_engine().handle_message(request.session_id, request.message, payload)
    except InvalidMessageError:
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": "Message is required"})
    except Exception as e:
        logger.error(f"Error in /chat endpoint: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An error occurred processing your request. Please try again.",
        ) from e

    return ChatResponse(
        **reply.model_dump(),
        session_id=request.session_id,
        timestamp=datetime.now(timezone.utc).isoformat(),
    )


@app.post("/reset-conversation/{session_id}", tags=["Chat"])
async def reset_conversation(session_id: str):
    """
    Reset conversation state for a session.
    Useful for starting a fresh conversation.
    """
    get_chat_engine().reset_session(session_id)
    return {"message": f"Conversation reset for session {session_id}", "session_id": session_id}


@app.get("/approvals/{approval_id}", tags=["Approvals"])
async def get_approval(approval_id: str):
    """Pending exception request awaiting a manager decision."""
    approval = get_chat_engine().approvals.get(approval_id)
    if approval is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Approval not found or expired")
    return approval.to_dict()


async def _decide(approval_id: str, approve: bool) -> dict:
    try:
        result = await get_chat_engine().decide_approval(approval_id, approve)
    except Exception as e:
        logger.error(f"Error deciding approval {approval_id}: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error updating request status"
        ) from e

    if result is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Approval not found or expired")
    if not result.success:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=result.message)
    return {"approval_id": approval_id, "record_id": result.id, "status": result.message}


@app.post("/approvals/{approval_id}/approve", tags=["Approvals"])
async def approve_request(approval_id: str):
    return await _decide(approval_id, approve=True)


@app.post("/approvals/{approval_id}/reject", tags=["Approvals"])
async def reject_request(approval_id: str):
    return await _decide(approval_id, approve=False)


@app.get("/ready")
def ready():
    return {"status": "ready"}


@app.get("/metrics", tags=["Monitoring"])
async def metrics():
    """
    Monitoring endpoint.

    Returns:
    - Circuit breaker state
    - Active sessions
    - Pending exception approvals
    """
    engine = get_chat_engine()
    return {
        "circuit_breaker": engine.record_store.get_circuit_breaker_state(),
        "active_sessions": len(engine.session_store),
        "pending_approvals": engine.approvals.count(),
        "environment": settings.environment,
    }


def run():
    uvicorn.run(
        "hr_assistant.main:app",
        host="0.0.0.0",
        port=int(os.environ.get("PORT", 8080)),
        reload=settings.environment == "development",
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
