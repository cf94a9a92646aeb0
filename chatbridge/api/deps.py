from __future__ import annotations

import os
import logging
from typing import Optional
from fastapi import Header, HTTPException, status

from ..application.chat_service import ChatService
from ..infrastructure.config.settings import get_settings
from ..infrastructure.storage import JsonFileTranscriptStore

_service: Optional[ChatService] = None


def get_api_key(x_api_key: Optional[str] = Header(default=None, alias="X-API-Key")) -> Optional[str]:
    expected = os.getenv("API_KEY")
    if expected:
        # Enforce API key if configured
        if not x_api_key or x_api_key != expected:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or missing API key")
    return x_api_key


def get_chat_service() -> ChatService:
    """Process-wide chat service; sessions live as long as the server."""
    global _service
    if _service is None:
        settings = get_settings()
        store_dir = settings.session.store_dir
        store = JsonFileTranscriptStore(store_dir) if store_dir else None
        _service = ChatService(
            settings=settings,
            store=store,
            logger=logging.getLogger("chatbridge_api"),
        )
    return _service
