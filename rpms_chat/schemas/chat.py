from datetime import datetime
from typing import Any, Generic, List, Optional, TypeVar

from pydantic import BaseModel, Field, model_validator

from rpms_chat.core.errors import ErrorKind

T = TypeVar("T")

ATTACHMENT_FIELDS = ("url", "name", "type", "size")


class Result(BaseModel, Generic[T]):
    success: bool
    data: Optional[T] = None
    error: Optional[str] = None
    kind: Optional[ErrorKind] = None
    status_code: Optional[int] = None

    @classmethod
    def ok(cls, data: Any = None) -> "Result":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str, kind: ErrorKind, status_code: Optional[int] = None) -> "Result":
        return cls(success=False, error=error, kind=kind, status_code=status_code)


class Attachment(BaseModel):
    url: str
    name: str
    type: str
    size: int = Field(ge=0)


class LastMessage(BaseModel):
    content: str = ""
    created_at: Optional[datetime] = None


class Contact(BaseModel):
    id: str
    name: str
    email: str = ""
    role: str = ""
    avatar: Optional[str] = None
    unread_count: int = Field(default=0, ge=0)
    last_message: Optional[LastMessage] = None


class Message(BaseModel):
    id: str
    sender_id: str
    receiver_id: str
    content: str = ""
    attachment: Optional[Attachment] = None
    reply_to_message_id: Optional[str] = None
    is_forwarded: bool = False
    is_read: bool = False
    created_at: datetime
    # Opcionales que el backend puede incluir
    sender_name: Optional[str] = None
    receiver_name: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _collect_attachment(cls, data: Any) -> Any:
        """
        El backend manda el adjunto plano (attachment_url, attachment_name, ...).
        Solo se arma el Attachment si vienen los cuatro campos.
        """
        if not isinstance(data, dict) or data.get("attachment") is not None:
            return data
        flat = {f: data.get(f"attachment_{f}") for f in ATTACHMENT_FIELDS}
        data = {k: v for k, v in data.items() if not k.startswith("attachment_")}
        if all(v not in (None, "") for v in flat.values()):
            data["attachment"] = flat
        return data

    @property
    def has_content(self) -> bool:
        return bool(self.content and self.content.strip())


class SendMessageRequest(BaseModel):
    receiver_id: str
    content: str = ""
    attachment: Optional[Attachment] = None
    reply_to_message_id: Optional[str] = None
    is_forwarded: bool = False

    @model_validator(mode="after")
    def _content_or_attachment(self) -> "SendMessageRequest":
        if not self.content.strip() and self.attachment is None:
            raise ValueError("Message must have content or an attachment")
        return self

    def to_payload(self) -> dict:
        """Cuerpo que espera POST /chat/send (adjunto aplanado)."""
        body = {"receiver_id": self.receiver_id, "content": self.content}
        if self.attachment is not None:
            for f in ATTACHMENT_FIELDS:
                body[f"attachment_{f}"] = getattr(self.attachment, f)
        if self.reply_to_message_id:
            body["reply_to_message_id"] = self.reply_to_message_id
        if self.is_forwarded:
            body["is_forwarded"] = True
        return body


class UnreadCount(BaseModel):
    count: int = Field(default=0, ge=0)
