from datetime import date
from typing import List, Literal, Optional

from pydantic import BaseModel

from rpms_chat.schemas.chat import Attachment, Contact, Message


class AttachmentView(BaseModel):
    url: str
    name: str
    type: str
    size: int
    kind: Literal["image", "pdf", "file"]
    size_label: str


class ReplyPreview(BaseModel):
    message_id: str
    sender_label: str
    content: str


class MessageView(BaseModel):
    message: Message
    is_mine: bool
    time_label: str
    receipt: Optional[str] = None
    attachment: Optional[AttachmentView] = None
    reply_preview: Optional[ReplyPreview] = None


class ThreadItem(BaseModel):
    kind: Literal["date", "message"]
    day: Optional[date] = None
    message: Optional[MessageView] = None


class ThreadView(BaseModel):
    state: Literal["idle", "loading", "active"]
    contact: Optional[Contact] = None
    items: List[ThreadItem] = []


class DraftView(BaseModel):
    text: str
    attachment: Optional[Attachment] = None
    reply: Optional[ReplyPreview] = None
    uploading: bool = False
    sending: bool = False
    enabled: bool = False
    can_send: bool = False
    error: Optional[str] = None


class ForwardFailure(BaseModel):
    contact_id: str
    error: str


class ForwardReport(BaseModel):
    success: bool
    delivered: List[str] = []
    failed: List[ForwardFailure] = []
    error: Optional[str] = None


class SessionInfo(BaseModel):
    user_id: str
    user_name: Optional[str] = None
    authenticated: bool = True
