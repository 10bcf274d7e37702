from pydantic import BaseModel
from typing import Optional, List

from clinassist.schemas.results import Provenance


class ChatRequest(BaseModel):
    message: str
    conversation_id: Optional[int] = None
    medical_context: Optional[str] = None


class ChatResponse(BaseModel):
    conversation_id: int
    reply: str
    chat_message_id: int
    suggested_questions: List[str] = []

    # Safety metadata
    status: str
    risk_level: str
    urgency_level: str
    emergency_detected: bool
    red_flags: List[str] = []
    disclaimer: str
    provenance: Optional[Provenance] = None


class ConversationOut(BaseModel):
    id: int
    title: Optional[str] = None
    message_count: int = 0


class ChatMessageOut(BaseModel):
    id: int
    role: str
    content: str
    token_count: Optional[int] = None
