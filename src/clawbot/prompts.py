"""Builds the message list sent to the model for one consultation."""

import json
from typing import Any, Dict, List, Optional

from .models import SYSTEM_ROLE, USER_ROLE, ChatMessage

PERSONA = """You are ClawBot, a personal assistant living in a Telegram chat.
You are not a monolithic AI: you are a coordinator that calls tools to get things done.

Before giving your final answer (if NOT calling a tool), show your reasoning in one line:
💭 **Thinking:** <what you are doing and why>

Be concise, clear and technically accurate. Ask clarifying questions when the
intent is ambiguous. You have memory of the recent conversation (the history
below). Never claim access to files, repositories or credentials you were not
given through a tool result."""


def build_system_prompt(context: Optional[Dict[str, Any]], persona: str = PERSONA) -> str:
    rendered = json.dumps(context, indent=2, ensure_ascii=False) if context else "None"
    return f"{persona}\n\nExisting Context:\n{rendered}"


def build_messages(
    user_text: str,
    context: Optional[Dict[str, Any]],
    history: List[ChatMessage],
    image_url: Optional[str] = None,
    persona: str = PERSONA,
) -> List[Dict[str, Any]]:
    """System persona, then history in stored order, then the new user turn.

    With ``image_url`` the new turn is multi-part (text + image) for vision models.
    """
    messages = [{"role": SYSTEM_ROLE, "content": build_system_prompt(context, persona)}]
    messages.extend(msg.model_dump() for msg in history)

    if image_url:
        content: Any = [
            {"type": "text", "text": user_text or "What is in this image?"},
            {"type": "image_url", "image_url": {"url": image_url}},
        ]
    else:
        content = user_text
    messages.append({"role": USER_ROLE, "content": content})
    return messages
