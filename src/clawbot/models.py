"""
Defines the core Pydantic data models for the bot.

These models serve as the formal, validated data contract between all other pillars,
aligning with conventions from industry-standard libraries like the OpenAI SDK.
"""

from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

# --- Constants ---
USER_ROLE = "user"
ASSISTANT_ROLE = "assistant"
SYSTEM_ROLE = "system"
TOOL_ROLE = "tool"
Role = Literal[USER_ROLE, ASSISTANT_ROLE, SYSTEM_ROLE, TOOL_ROLE]

AttachmentKind = Literal["voice", "image", "document"]


# --- Models ---
class ChatMessage(BaseModel):
    """Represents a single message within a conversation.

    Messages are frozen once created: history is an append-only log whose
    order is the prompt itself.
    """

    model_config = ConfigDict(frozen=True)

    role: Role
    content: Optional[Union[str, List[Dict[str, Any]]]] = None


class Attachment(BaseModel):
    """Structured attachment metadata of an inbound message."""

    kind: AttachmentKind
    file_id: str
    file_name: Optional[str] = None
    mime_type: Optional[str] = None


class InboundMessage(BaseModel):
    """One user message as received from the chat transport."""

    chat_id: str
    text: str = ""
    attachment: Optional[Attachment] = None

    @classmethod
    def from_telegram(cls, update: Dict[str, Any]) -> Optional["InboundMessage"]:
        """Builds an InboundMessage from a Telegram update, or None if irrelevant."""
        message = update.get("message") or update.get("edited_message")
        if not message or not isinstance(message.get("chat"), dict):
            return None
        chat_id = message["chat"].get("id")
        if chat_id is None:
            return None

        text = message.get("text") or message.get("caption") or ""
        attachment = None
        if message.get("voice"):
            attachment = Attachment(
                kind="voice",
                file_id=message["voice"]["file_id"],
                mime_type=message["voice"].get("mime_type"),
            )
        elif message.get("photo"):
            # Telegram lists photo sizes smallest first
            attachment = Attachment(kind="image", file_id=message["photo"][-1]["file_id"])
        elif message.get("document"):
            document = message["document"]
            attachment = Attachment(
                kind="document",
                file_id=document["file_id"],
                file_name=document.get("file_name"),
                mime_type=document.get("mime_type"),
            )

        if not text and attachment is None:
            return None
        return cls(chat_id=str(chat_id), text=text, attachment=attachment)


class ToolCall(BaseModel):
    """A tool invocation requested by the model."""

    id: str
    function_name: str
    function_args: str = "{}"


class ToolResult(BaseModel):
    """The outcome of executing one ToolCall."""

    tool_call_id: str
    function_name: str
    content: str
    is_error: bool = False


class LLMReply(BaseModel):
    """Normalized answer of the model gateway.

    Either plain text (``tool_calls`` empty) or a set of requested tool
    invocations, in the order the model returned them.
    """

    content: Optional[str] = None
    tool_calls: List[ToolCall] = Field(default_factory=list)
    is_error: bool = False

    @property
    def wants_tools(self) -> bool:
        return bool(self.tool_calls)
