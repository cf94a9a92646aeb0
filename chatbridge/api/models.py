from __future__ import annotations

from typing import List, Optional
from pydantic import BaseModel, Field


class CreateSessionRequest(BaseModel):
    backend: Optional[str] = Field(None, description="openai | anthropic (default: CHAT_BACKEND)")
    model: Optional[str] = None
    system_prompt: Optional[str] = None
    max_turns: Optional[int] = Field(None, ge=0)
    session_id: Optional[str] = None


class TurnRecord(BaseModel):
    role: str
    text: str


class UsageModel(BaseModel):
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0


class SessionResponse(BaseModel):
    session_id: str
    backend: str
    model: str
    system_prompt: str
    max_turns: Optional[int] = None
    turns: int
    usage: UsageModel
    transcript: Optional[List[TurnRecord]] = None


class MessageRequest(BaseModel):
    message: str


class MessageResponse(BaseModel):
    session_id: str
    content: str
    usage: Optional[UsageModel] = None
    turns: int


class TrimRequest(BaseModel):
    max_turns: int


class TrimResponse(BaseModel):
    session_id: str
    removed: int
    turns: int

