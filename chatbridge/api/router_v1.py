from __future__ import annotations

import json
import logging
from typing import List
from fastapi import APIRouter, Depends, status
from fastapi.responses import StreamingResponse

from .models import (
    CreateSessionRequest,
    MessageRequest,
    MessageResponse,
    SessionResponse,
    TrimRequest,
    TrimResponse,
    UsageModel,
)
from .deps import get_api_key, get_chat_service
from ..application.chat_service import ChatService
from ..domain.errors import ChatBridgeError

router = APIRouter(prefix="/v1", tags=["v1"], dependencies=[Depends(get_api_key)])
logger = logging.getLogger("chatbridge_api")


@router.get("/health")
async def health() -> dict:
    return {"status": "ok"}


# Plain `def` handlers: FastAPI runs them in its threadpool.
@router.post("/sessions", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
def create_session(
    payload: CreateSessionRequest,
    service: ChatService = Depends(get_chat_service),
) -> SessionResponse:
    session = service.create_session(
        backend=payload.backend,
        model=payload.model,
        system_prompt=payload.system_prompt,
        max_turns=payload.max_turns,
        session_id=payload.session_id,
    )
    return SessionResponse(**service.describe(session))


@router.get("/sessions", response_model=List[SessionResponse])
def list_sessions(service: ChatService = Depends(get_chat_service)) -> List[SessionResponse]:
    return [SessionResponse(**d) for d in service.list_sessions()]


@router.get("/sessions/{session_id}", response_model=SessionResponse)
def get_session(session_id: str, service: ChatService = Depends(get_chat_service)) -> SessionResponse:
    session = service.get_session(session_id)
    return SessionResponse(**service.describe(session), transcript=session.history())


@router.delete("/sessions/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_session(
    session_id: str,
    purge: bool = False,
    service: ChatService = Depends(get_chat_service),
) -> None:
    service.delete_session(session_id, purge=purge)


@router.post("/sessions/{session_id}/messages", response_model=MessageResponse)
def send_message(
    session_id: str,
    payload: MessageRequest,
    service: ChatService = Depends(get_chat_service),
) -> MessageResponse:
    content = service.send(session_id, payload.message)
    session = service.get_session(session_id)
    usage = session.last_usage
    return MessageResponse(
        session_id=session_id,
        content=content,
        usage=UsageModel(**usage.to_dict()) if usage else None,
        turns=len(session),
    )


@router.post("/sessions/{session_id}/messages/stream")
def stream_message(
    session_id: str,
    payload: MessageRequest,
    service: ChatService = Depends(get_chat_service),
):
    """Server-Sent Events streaming endpoint.

    Behavior:
    - Streams fragments as SSE events: {type: 'token', content: '...'}
    - Ends with {type: 'final', content: '...', usage: {...}} once the reply is committed
    - A backend failure after streaming began is reported as {type: 'error', ...};
      the transcript is left untouched in that case
    """
    # Input errors and unknown sessions fail here, before any byte is sent
    fragments = service.stream(session_id, payload.message)

    def sse_gen():
        parts = []
        try:
            for fragment in fragments:
                parts.append(fragment)
                yield f"data: {json.dumps({'type': 'token', 'content': fragment})}\n\n"
        except ChatBridgeError as e:
            logger.warning(f"Stream for session {session_id} failed: {e}")
            yield f"data: {json.dumps({'type': 'error', 'error': type(e).__name__, 'detail': str(e)})}\n\n"
            return
        finally:
            fragments.close()
        usage = service.get_session(session_id).last_usage
        final = {
            'type': 'final',
            'content': ''.join(parts),
            'usage': usage.to_dict() if usage else None,
        }
        yield f"data: {json.dumps(final)}\n\n"

    return StreamingResponse(sse_gen(), media_type="text/event-stream")


@router.post("/sessions/{session_id}/trim", response_model=TrimResponse)
def trim_session(
    session_id: str,
    payload: TrimRequest,
    service: ChatService = Depends(get_chat_service),
) -> TrimResponse:
    removed = service.trim(session_id, payload.max_turns)
    return TrimResponse(
        session_id=session_id,
        removed=removed,
        turns=len(service.get_session(session_id)),
    )
