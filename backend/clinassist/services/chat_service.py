from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from clinassist.core.config import settings
from clinassist.models.chat_message import ChatMessage
from clinassist.models.conversation import Conversation
from clinassist.schemas.requests import ChatTurn
from clinassist.schemas.results import ClinicalResult, ResultStatus
from clinassist.services.clinical_pipeline import ClinicalAiService
from clinassist.services.provider_gateway import estimate_token_count
from clinassist.utils.conversation_title import generate_conversation_title
from clinassist.utils.logger import logger


# ------------------------------------------------------------------
# Conversation lifecycle
# ------------------------------------------------------------------

def get_or_create_conversation(
    db: Session,
    user_id: str,
    conversation_id: Optional[int] = None,
) -> Conversation:
    if conversation_id:
        conversation = (
            db.query(Conversation)
            .filter(
                Conversation.id == conversation_id,
                Conversation.user_id == user_id,
            )
            .first()
        )
        if conversation:
            return conversation

    conversation = Conversation(user_id=user_id)
    db.add(conversation)
    return conversation


def list_conversations(db: Session, *, user_id: str, limit: int = 50) -> List[Conversation]:
    return (
        db.query(Conversation)
        .filter(Conversation.user_id == user_id, Conversation.is_active.is_(True))
        .order_by(Conversation.id.desc())
        .limit(limit)
        .all()
    )


# ------------------------------------------------------------------
# Message persistence
# ------------------------------------------------------------------

def save_message(
    db: Session,
    *,
    user_id: str,
    conversation: Conversation,
    role: str,
    content: str,
    meta: Optional[dict] = None,
) -> ChatMessage:
    message = ChatMessage(
        user_id=user_id,
        conversation_id=conversation.id,
        role=role,
        content=content,
        token_count=estimate_token_count(content),
        meta=meta,
    )
    db.add(message)

    if role == "user" and not conversation.title:
        conversation.title = generate_conversation_title(content)

    return message


def get_conversation_history(
    db: Session,
    *,
    conversation_id: int,
    limit: int | None = None,
) -> List[Dict[str, str]]:
    """
    Most recent `limit` messages, returned oldest first.
    """
    limit = settings.HISTORY_WINDOW if limit is None else limit
    if limit <= 0:
        return []

    messages = (
        db.query(ChatMessage)
        .filter(ChatMessage.conversation_id == conversation_id)
        .order_by(ChatMessage.id.desc())
        .limit(limit)
        .all()
    )
    return [{"role": m.role, "content": m.content} for m in reversed(messages)]


def _assistant_meta(result: ClinicalResult) -> Dict[str, Any]:
    return {
        "status": result.status.value,
        "risk_level": result.risk.risk_level.value,
        "urgency_level": result.risk.urgency_level.value,
        "confidence_level": result.risk.confidence_level.value,
        "safety_flags": [f.model_dump(mode="json") for f in result.safety_flags],
        "provenance": result.provenance.model_dump() if result.provenance else None,
    }


# ------------------------------------------------------------------
# Main chat processor
# ------------------------------------------------------------------

def process_chat_message(
    db: Session,
    *,
    user_id: str,
    turn: ChatTurn,
    service: ClinicalAiService,
) -> Dict[str, Any]:

    # 1️⃣ conversation
    conversation = get_or_create_conversation(db, user_id, turn.conversation_id)
    db.flush()

    # 2️⃣ history is read before this turn is stored
    history = get_conversation_history(
        db,
        conversation_id=conversation.id,
        limit=service.history_window,
    )

    save_message(db, user_id=user_id, conversation=conversation, role="user", content=turn.message)
    db.flush()

    # 3️⃣ pipeline
    result = service.respond_to_chat(turn, history)

    if result.status == ResultStatus.EMERGENCY:
        logger.warning(f"Emergency detected in conversation {conversation.id}")

    assistant_msg = save_message(
        db,
        user_id=user_id,
        conversation=conversation,
        role="assistant",
        content=result.reply,
        meta=_assistant_meta(result),
    )

    db.commit()

    return {
        "conversation_id": conversation.id,
        "assistant_message_id": assistant_msg.id,
        "result": result,
    }
