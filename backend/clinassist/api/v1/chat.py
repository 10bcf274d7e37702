from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from clinassist.core.dependencies import get_clinical_service, get_current_user_id
from clinassist.db.session import get_db
from clinassist.models.conversation import Conversation
from clinassist.schemas.chat import ChatMessageOut, ChatRequest, ChatResponse, ConversationOut
from clinassist.schemas.requests import ChatTurn
from clinassist.services.chat_service import list_conversations, process_chat_message
from clinassist.services.clinical_pipeline import ClinicalAiService
from clinassist.utils.logger import logger


router = APIRouter()


@router.post("/chat", response_model=ChatResponse)
def chat(
    payload: ChatRequest,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
    service: ClinicalAiService = Depends(get_clinical_service),
):
    # bounds are enforced by ChatTurn; a violation surfaces as 422
    turn = ChatTurn(
        message=payload.message,
        conversation_id=payload.conversation_id,
        medical_context=payload.medical_context,
    )

    try:
        out = process_chat_message(db, user_id=user_id, turn=turn, service=service)
    except Exception:
        db.rollback()
        logger.exception("Chat processing failed")
        raise HTTPException(status_code=500, detail="Chat processing failed")

    result = out["result"]

    return ChatResponse(
        conversation_id=out["conversation_id"],
        reply=result.reply,
        chat_message_id=out["assistant_message_id"],
        suggested_questions=list(result.suggested_questions),
        status=result.status.value,
        risk_level=result.risk.risk_level.value,
        urgency_level=result.risk.urgency_level.value,
        emergency_detected=result.is_emergency,
        red_flags=list(result.extraction.red_flags),
        disclaimer=result.disclaimer,
        provenance=result.provenance,
    )


@router.get("/conversations", response_model=List[ConversationOut])
def get_conversations(
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    return [
        ConversationOut(id=c.id, title=c.title, message_count=len(c.messages))
        for c in list_conversations(db, user_id=user_id)
    ]


@router.get("/conversations/{conversation_id}/messages", response_model=List[ChatMessageOut])
def get_conversation_messages(
    conversation_id: int,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    conversation = (
        db.query(Conversation)
        .filter(Conversation.id == conversation_id, Conversation.user_id == user_id)
        .first()
    )
    if not conversation:
        raise HTTPException(status_code=404, detail="Conversation not found")

    return [
        ChatMessageOut(id=m.id, role=m.role, content=m.content, token_count=m.token_count)
        for m in conversation.messages
    ]
