from dataclasses import dataclass
from typing import Any, Dict, List, Literal, Mapping, Optional, Union

from pydantic import BaseModel, Field


class Message(BaseModel):
    """One role-tagged turn of a conversation."""

    role: Literal['user', 'assistant', 'system']
    content: str = ''
    cache_control: Optional[Dict[str, Any]] = None
    file_references: List[str] = Field(default_factory=list)


MessageLike = Union[Message, Mapping[str, Any]]


def as_message(message: MessageLike) -> Message:
    if isinstance(message, Message):
        return message
    return Message.model_validate(dict(message))


@dataclass
class SessionState:
    """Feature flags shared across the session and toggled by the user interface."""

    claude_web_search: bool = False


__all__ = ['Message', 'MessageLike', 'SessionState', 'as_message']
