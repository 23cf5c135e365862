"""
Chat API endpoints - Buffered and streamed conversational turns.
"""

import asyncio
import json
import logging
from typing import Union

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status
from fastapi.responses import StreamingResponse

from ..core.exceptions import ProviderUnavailable, UnsupportedUpload
from ..core.session_store import SessionStore, get_session_store
from ..models import AgentRequest, AgentResponse, ModelSelection, SessionSnapshot, StreamRequest
from ..services import ConversationService, get_conversation_service, get_transcription_service
from ..services.conversation import TurnResult
from ..services.documents import extract_text
from ..services.stream_relay import StreamSink
from ..services.transcription import TranscriptionService
from ..utils.session import SessionContext, attach_session_cookie, get_session

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["chat"])

DONE_FRAME = "data: [DONE]\n\n"
CALENDAR_URL_HEADER = "X-Calendar-Url"


def format_sse(item: Union[str, dict]) -> str:
    """Raw text fragments go out as-is; tagged events as JSON."""
    if isinstance(item, dict):
        return f"data: {json.dumps(item, ensure_ascii=False)}\n\n"
    return f"data: {item}\n\n"


def _to_response(result: TurnResult) -> AgentResponse:
    return AgentResponse(
        intent=result.intent,
        transcript=result.transcript,
        reply=result.reply,
        provider=result.provider,
        model=result.model,
        calendar_url=result.calendar_url,
        image=result.image,
    )


@router.post("/agent", response_model=AgentResponse)
async def agent_turn(
    body: AgentRequest,
    session: SessionContext = Depends(get_session),
    service: ConversationService = Depends(get_conversation_service),
):
    """
    Run one buffered turn.

    Returns:
        Intent, transcript, reply and the provider/model that produced it
    """
    result = await service.process_message(session.session_id, body.text)
    return _to_response(result)


@router.post("/chat/stream")
async def stream_chat(
    body: StreamRequest,
    session: SessionContext = Depends(get_session),
    service: ConversationService = Depends(get_conversation_service),
):
    """
    Run one streamed turn as Server-Sent Events.

    Frames are raw reply text, ``{"type": "calendar", ...}``,
    ``{"type": "image", ...}`` or ``{"type": "error", ...}``, then ``[DONE]``.
    A calendar link is also announced up front in the X-Calendar-Url header.
    """
    plan = await service.plan_turn(session.session_id, body.text)
    sink = StreamSink()
    turn = asyncio.create_task(service.stream_turn(
        session.session_id, plan, sink,
        language=body.language, model_override=body.model_override,
    ))

    async def event_generator():
        try:
            async for item in sink:
                yield format_sse(item)
            yield DONE_FRAME
        finally:
            # Client gone or stream complete; the turn still records what was sent
            sink.detach()
            if not turn.done():
                logger.info(f"Client detached before turn completed: session {session.session_id}")

    headers = {
        "Cache-Control": "no-cache",
        "Connection": "keep-alive",
        "X-Accel-Buffering": "no",  # Disable nginx buffering
    }
    if plan.booking is not None:
        headers[CALENDAR_URL_HEADER] = plan.booking.link

    response = StreamingResponse(event_generator(), media_type="text/event-stream", headers=headers)
    return attach_session_cookie(response, session)


@router.get("/chat/history", response_model=SessionSnapshot)
async def get_history(
    session: SessionContext = Depends(get_session),
    store: SessionStore = Depends(get_session_store),
):
    """Current session's history, model and booked events."""
    state = store.get(session.session_id)
    return SessionSnapshot(
        session_id=session.session_id,
        selected_model=store.get_model(session.session_id),
        history=store.get_history(session.session_id),
        calendar_events=list(state.calendar_events),
        authenticated=state.auth_tokens is not None,
    )


@router.post("/chat/clear")
async def clear_history(
    session: SessionContext = Depends(get_session),
    store: SessionStore = Depends(get_session_store),
):
    """Empty the conversation history; model and events are kept."""
    async with store.lock(session.session_id):
        store.clear(session.session_id)
    return {"status": "cleared"}


@router.get("/model")
async def get_model(
    session: SessionContext = Depends(get_session),
    store: SessionStore = Depends(get_session_store),
):
    return {"model": store.get_model(session.session_id)}


@router.post("/model")
async def set_model(
    body: ModelSelection,
    session: SessionContext = Depends(get_session),
    store: SessionStore = Depends(get_session_store),
):
    """Override the generation model for this session. Names are not validated here."""
    store.set_model(session.session_id, body.model)
    return {"model": body.model}


@router.post("/chat/voice", response_model=AgentResponse)
async def voice_turn(
    audio: UploadFile = File(...),
    language: str = Form("en-US"),
    session: SessionContext = Depends(get_session),
    service: ConversationService = Depends(get_conversation_service),
    transcriber: TranscriptionService = Depends(get_transcription_service),
):
    """Transcribe a recorded clip and run it as a buffered turn."""
    if not transcriber.is_configured():
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Speech-to-text is not configured"
        )

    audio_data = await audio.read()
    try:
        text = await transcriber.transcribe_audio(
            audio_data, filename=audio.filename or "audio.webm", language=language
        )
    except ProviderUnavailable as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))

    if not text:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                            detail="No speech detected")

    result = await service.process_message(session.session_id, text)
    return _to_response(result)


@router.post("/chat/upload", response_model=AgentResponse)
async def upload_document(
    file: UploadFile = File(...),
    session: SessionContext = Depends(get_session),
    service: ConversationService = Depends(get_conversation_service),
):
    """Read a text or PDF document and summarize it into the conversation."""
    data = await file.read()
    try:
        document_text = extract_text(data, file.content_type, file.filename)
    except UnsupportedUpload as e:
        raise HTTPException(status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE, detail=e.message)

    result = await service.process_document(
        session.session_id, file.filename or "document", document_text
    )
    return _to_response(result)
