"""
Pydantic API schemas for the chat relay endpoints.

WHAT: Request and response models for FastAPI
WHY: Type-safe validation before anything reaches a provider
HOW: Pydantic v2 models converting into the llm dataclasses
"""

from typing import Optional, List, Literal
from pydantic import BaseModel, Field

from ..core.config import settings
from ..llm.types import ChatConfig, ChatMessage, ChatReply, ParsedContent, Provider, SystemPromptMode


class ChatMessageIn(BaseModel):
    """One conversation turn as sent by the browser."""
    id: str = Field(default="", description="Message ID (empty for the outgoing message)")
    role: Literal["user", "assistant", "system"]
    content: str
    timestamp: Optional[int] = Field(default=None, description="Epoch milliseconds")

    def to_message(self) -> ChatMessage:
        if self.timestamp is None:
            return ChatMessage(role=self.role, content=self.content, id=self.id)
        return ChatMessage(role=self.role, content=self.content, id=self.id, timestamp=self.timestamp)


class ChatConfigIn(BaseModel):
    """Provider target supplied by the client."""
    provider: Provider
    api_key: str = Field(..., min_length=1, description="Provider API key")
    base_url: str = Field(default="", description="Empty for the provider default")
    model: str = Field(..., min_length=1)
    max_tokens: int = Field(default_factory=lambda: settings.LLM_DEFAULT_MAX_TOKENS, gt=0)
    system_prompt_mode: SystemPromptMode = SystemPromptMode.INLINE

    def to_config(self) -> ChatConfig:
        return ChatConfig(
            provider=self.provider,
            api_key=self.api_key,
            base_url=self.base_url,
            model=self.model,
            max_tokens=self.max_tokens,
            system_prompt_mode=self.system_prompt_mode,
        )


class ChatStreamRequest(BaseModel):
    """Body of POST /chat/stream."""
    messages: List[ChatMessageIn] = Field(..., min_length=1, description="History, new user message last")
    config: Optional[ChatConfigIn] = Field(default=None, description="Omit to use the server default")


class ParseRequest(BaseModel):
    """Body of POST /chat/parse."""
    content: str


class ParsedContentOut(BaseModel):
    """Reasoning/answer split of a reply."""
    think_content: Optional[str]
    main_content: str
    is_thinking_complete: bool

    @classmethod
    def from_parsed(cls, parsed: ParsedContent) -> "ParsedContentOut":
        return cls(
            think_content=parsed.think_content,
            main_content=parsed.main_content,
            is_thinking_complete=parsed.is_thinking_complete,
        )


class ProviderStatusOut(BaseModel):
    """Result of a connection check."""
    available: bool
    base_url: str
    models: Optional[List[str]] = None
    error: Optional[str] = None


class ProviderInfoOut(BaseModel):
    """Registry entry exposed to the settings screen."""
    provider: Provider
    display_name: str
    auth_type: str
    default_base_url: str


class ChatReplyOut(BaseModel):
    """Body returned by POST /chat/complete."""
    content: str
    think_content: Optional[str]
    main_content: str
    is_thinking_complete: bool

    @classmethod
    def from_reply(cls, reply: ChatReply) -> "ChatReplyOut":
        return cls(
            content=reply.content,
            think_content=reply.parsed.think_content,
            main_content=reply.parsed.main_content,
            is_thinking_complete=reply.parsed.is_thinking_complete,
        )
