import json
import logging
from datetime import datetime
from functools import lru_cache
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse

from config import get_settings
from models import (
    HealthResponse, HistoryResponse, NewSessionRequest, SendMessageRequest,
    SessionResponse, TranscriptResponse, TurnResponse,
)
from services.chat_service import ScriptureChatService

settings = get_settings()

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("scripture_chat.api")

app = FastAPI(
    title="Scripture Chat API",
    description="Scripture lookup with theologian-styled commentary and conversational answers",
    version="1.0.0"
)

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@lru_cache()
def get_chat_service() -> ScriptureChatService:
    return ScriptureChatService()


@app.get("/")
async def root():
    return {
        "message": "Scripture Chat API",
        "version": "1.0.0",
        "endpoints": [
            "/chat",
            "/sessions",
            "/sessions/{session_id}/messages",
            "/sessions/{session_id}/stream",
            "/history/{user_id}",
            "/theologians",
            "/translations",
            "/health"
        ]
    }


@app.post("/chat", response_model=TurnResponse)
async def chat(message: SendMessageRequest, service: ScriptureChatService = Depends(get_chat_service)):
    """Main chat endpoint: scripture lookup + commentary, or a conversational reply"""
    try:
        return await service.handle_turn(message.user_id, message.message, session_id=message.session_id)
    except Exception as e:
        logger.exception("Chat turn failed")
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/sessions", response_model=SessionResponse)
async def new_session(request: NewSessionRequest, service: ScriptureChatService = Depends(get_chat_service)):
    """Start a new chat; the previous transcript is kept"""
    session_id = service.start_new_session(request.user_id)
    return SessionResponse(session_id=session_id, user_id=request.user_id)


@app.get("/sessions/{session_id}/messages", response_model=TranscriptResponse)
async def get_messages(session_id: str, service: ScriptureChatService = Depends(get_chat_service)):
    try:
        return TranscriptResponse(session_id=session_id, messages=service.get_transcript(session_id))
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@app.get("/sessions/{session_id}/stream")
async def stream_messages(
    session_id: str,
    request: Request,
    follow: bool = True,
    service: ScriptureChatService = Depends(get_chat_service),
):
    """Server-sent events carrying the ordered transcript after every change"""
    subscription = service.store.subscribe(session_id)

    async def iter_snapshots():
        # A client that disconnects while we wait for the next append is handled
        # by Starlette cancelling this generator; the finally still closes the
        # subscription so the store stops notifying it.
        try:
            async for snapshot in subscription:
                payload = [m.model_dump(mode="json") for m in snapshot]
                yield f"data: {json.dumps(payload)}\n\n"
                if not follow or await request.is_disconnected():
                    break
        finally:
            subscription.close()

    return StreamingResponse(iter_snapshots(), media_type="text/event-stream")


@app.get("/history/{user_id}", response_model=HistoryResponse)
async def get_history(user_id: str, search: Optional[str] = None, service: ScriptureChatService = Depends(get_chat_service)):
    """A user's past queries, newest first"""
    try:
        return HistoryResponse(user_id=user_id, entries=service.get_history(user_id, search))
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@app.delete("/history/{user_id}/{entry_id}")
async def delete_history_entry(user_id: str, entry_id: str, service: ScriptureChatService = Depends(get_chat_service)):
    try:
        deleted = service.delete_history_entry(user_id, entry_id)
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))
    if not deleted:
        raise HTTPException(status_code=404, detail="History entry not found")
    return {"deleted": entry_id}


@app.get("/theologians")
async def list_theologians(service: ScriptureChatService = Depends(get_chat_service)):
    return {"theologians": list(service.resolver.names)}


@app.get("/translations")
async def list_translations(service: ScriptureChatService = Depends(get_chat_service)):
    return {"translations": service.bible_service.get_supported_translations()}


@app.get("/health", response_model=HealthResponse)
async def health_check(service: ScriptureChatService = Depends(get_chat_service)):
    """Health check endpoint"""
    return HealthResponse(
        status="healthy",
        timestamp=datetime.now().isoformat(),
        services={
            "gemini": settings.has_gemini_key,
            "openai": settings.has_openai_key,
            "anthropic": settings.has_anthropic_key,
            "generation_provider": settings.GENERATION_PROVIDER,
            "transcript_store": service.store.backend,
        },
    )


# Run the server
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
