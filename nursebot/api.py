"""
FastAPI routes and endpoints for the Nursing Knowledge Chatbot

This module defines all REST API endpoints including:
- Chat endpoints for text and media messages
- Diagnostic keyword and document search endpoints
- Knowledge base system check and health endpoints
- Session inspection and clearing endpoints
"""

import logging
import random
import time
from typing import List, NamedTuple, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse

from nursebot.chat import ChatService
from nursebot.config import Settings, validate_configuration
from nursebot.knowledge import KnowledgeRepository
from nursebot.memory import SessionStore, create_session_store
from nursebot.messages import ReplyRenderer
from nursebot.models import (
    ChatRequest,
    ChatResponse,
    DocumentSearchResponse,
    HealthCheckResponse,
    KeywordSearchResponse,
    MediaRequest,
    SessionHistoryResponse,
    SessionStats,
    SystemCheck,
)
from nursebot.responses import ResponseComposer
from nursebot.retrieval import RetrievalEngine
from nursebot.store import KnowledgeStore

# Configure logging
logger = logging.getLogger(__name__)

# Create API router
router = APIRouter()


class ChatbotServices(NamedTuple):
    """Components shared by all requests of one application instance."""
    settings: Settings
    store: Optional[KnowledgeStore]
    repository: KnowledgeRepository
    engine: RetrievalEngine
    sessions: SessionStore
    chat: ChatService


def build_services(
    config: Settings,
    store: Optional[KnowledgeStore],
    sessions: Optional[SessionStore] = None,
    rng: Optional[random.Random] = None,
) -> ChatbotServices:
    """
    Wire the chatbot components together.

    Args:
        config: Application settings
        store: Knowledge store, None if storage is unavailable
        sessions: Session store, built from configuration when omitted
        rng: Random source for fallback replies

    Returns:
        ChatbotServices: The wired components
    """
    repository = KnowledgeRepository(store, config)
    engine = RetrievalEngine(repository, config)
    sessions = sessions or create_session_store(config, store)
    chat = ChatService(
        engine=engine,
        sessions=sessions,
        composer=ResponseComposer(rng),
        renderer=ReplyRenderer(config.department_names),
    )
    return ChatbotServices(
        settings=config,
        store=store,
        repository=repository,
        engine=engine,
        sessions=sessions,
        chat=chat,
    )


def get_services(request: Request) -> ChatbotServices:
    return request.app.state.services


def require_non_production(services: ChatbotServices = Depends(get_services)) -> ChatbotServices:
    """Diagnostic endpoints are disabled in production."""
    if services.settings.is_production:
        raise HTTPException(status_code=403, detail="This endpoint is not available in production")
    return services


@router.post("/chat", response_model=ChatResponse)
async def chat_with_bot(
    request: ChatRequest, services: ChatbotServices = Depends(get_services)
) -> ChatResponse:
    """
    Answer a text message.

    Args:
        request: Chat request containing the user id and message text

    Returns:
        ChatResponse: Rendered reply messages
    """
    start_time = time.time()

    reply = await services.chat.handle_text(request.user_id, request.text)

    response_time_ms = int((time.time() - start_time) * 1000)
    logger.info(f"Chat response generated for user {request.user_id} in {response_time_ms}ms")

    return ChatResponse(
        user_id=request.user_id,
        messages=reply.messages,
        matched=reply.matched,
        response_time_ms=response_time_ms,
    )


@router.post("/chat/media", response_model=ChatResponse)
async def chat_media(
    request: MediaRequest, services: ChatbotServices = Depends(get_services)
) -> ChatResponse:
    """Acknowledge an image or video message."""
    start_time = time.time()

    reply = await services.chat.handle_media(request.user_id, request.kind, request.media_id)

    return ChatResponse(
        user_id=request.user_id,
        messages=reply.messages,
        matched=reply.matched,
        response_time_ms=int((time.time() - start_time) * 1000),
    )


@router.get("/search", response_model=KeywordSearchResponse)
async def search_keywords(
    q: Optional[str] = None, services: ChatbotServices = Depends(require_non_production)
) -> KeywordSearchResponse:
    """
    Search the keyword index in both directions.

    Args:
        q: Search text

    Returns:
        KeywordSearchResponse: Matching document keywords and departments
    """
    if not q:
        raise HTTPException(status_code=400, detail="Query parameter 'q' is required")

    result = await services.engine.search_keywords(q)
    if result is None:
        raise HTTPException(status_code=503, detail="Keyword index is not available")

    logger.info(f"Keyword search for {q!r}: {len(result.matches)} keywords, {len(result.departments)} departments")
    return result


@router.get("/search/documents", response_model=DocumentSearchResponse)
async def search_documents(
    q: Optional[str] = None, services: ChatbotServices = Depends(require_non_production)
) -> DocumentSearchResponse:
    """Search knowledge titles, bodies and keywords."""
    if not q:
        raise HTTPException(status_code=400, detail="Query parameter 'q' is required")

    results = await services.repository.search(q)
    return DocumentSearchResponse(query=q, results=results, total_results=len(results))


@router.get("/system-check", response_model=SystemCheck)
async def system_check(services: ChatbotServices = Depends(require_non_production)) -> SystemCheck:
    """Report knowledge store, keyword index and department coverage."""
    return await services.repository.system_status()


@router.get("/health", response_model=HealthCheckResponse)
async def health_check(services: ChatbotServices = Depends(get_services)) -> HealthCheckResponse:
    """
    Health check endpoint.

    Returns:
        HealthCheckResponse: System health status
    """
    index_lookup = await services.repository.load_keyword_index()
    components = {
        "configuration": validate_configuration(services.settings),
        "knowledge_store": services.store is not None,
        "keyword_index": index_lookup.is_ok,
        "memory": True,
    }

    overall_status = "healthy" if all(components.values()) else "degraded"

    return HealthCheckResponse(
        status=overall_status,
        components=components,
        version=services.settings.api_version,
    )


@router.get("/sessions", response_model=List[SessionStats])
async def get_session_stats(services: ChatbotServices = Depends(get_services)) -> List[SessionStats]:
    """
    Get statistics for all stored conversations.

    Returns:
        List[SessionStats]: Memory statistics per user
    """
    stats = await services.sessions.stats()
    logger.info(f"Retrieved stats for {len(stats)} sessions")
    return stats


@router.get("/sessions/{user_id}", response_model=SessionHistoryResponse)
async def get_session_history(
    user_id: str, services: ChatbotServices = Depends(get_services)
) -> SessionHistoryResponse:
    """Return a user's recent conversation history."""
    history = await services.sessions.get_history(user_id)
    return SessionHistoryResponse(user_id=user_id, history=list(history))


@router.delete("/sessions/{user_id}")
async def clear_session(user_id: str, services: ChatbotServices = Depends(get_services)) -> JSONResponse:
    """
    Clear a user's conversation history.

    Args:
        user_id: User whose history to clear

    Returns:
        JSONResponse: Success or not-found message
    """
    if await services.sessions.clear(user_id):
        return JSONResponse(
            content={"message": f"Session {user_id} cleared successfully"},
            status_code=200,
        )

    return JSONResponse(
        content={"message": f"Session {user_id} not found"},
        status_code=404,
    )


def get_api_router() -> APIRouter:
    """
    Get the configured API router.

    Returns:
        APIRouter: Configured router with all endpoints
    """
    return router
