import re

MAX_TITLE_LENGTH = 50


def generate_conversation_title(message: str) -> str:
    """
    Generate a short title from the first user message.
    """
    if not message:
        return "Medical conversation"

    cleaned = re.sub(r"\s+", " ", message).strip()
    if not cleaned:
        return "Medical conversation"

    if len(cleaned) > MAX_TITLE_LENGTH:
        return cleaned[: MAX_TITLE_LENGTH - 3] + "..."

    return cleaned
