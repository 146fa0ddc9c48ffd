# rpms_chat/services/chat_client.py
import logging
from typing import Any, List, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from rpms_chat.core.config import settings
from rpms_chat.core.errors import ErrorKind
from rpms_chat.schemas.chat import (
    Attachment, Contact, Message, Result,
    SendMessageRequest, UnreadCount,
)
from rpms_chat.services.transport import TransportClient

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


class OutgoingFile(BaseModel):
    name: str
    content: bytes
    type: str = "application/octet-stream"

    @property
    def size(self) -> int:
        return len(self.content)


def _parse_list(model: Type[M], payload: Any, what: str) -> List[M]:
    # Un payload que no es lista se trata como vacío
    if not isinstance(payload, list):
        if payload is not None:
            logger.warning("%s: se esperaba una lista, llegó %s", what, type(payload).__name__)
        return []
    items: List[M] = []
    for raw in payload:
        try:
            items.append(model.model_validate(raw))
        except ValidationError as e:
            logger.warning("%s: se descarta un elemento inválido: %s", what, e.errors()[:1])
    return items


class ChatClient:
    def __init__(self, transport: TransportClient, max_attachment_bytes: Optional[int] = None):
        self.transport = transport
        self.max_attachment_bytes = max_attachment_bytes or settings.MAX_ATTACHMENT_BYTES

    async def list_contacts(self) -> Result:
        res = await self.transport.get("/chat/contacts")
        if not res.success:
            return res
        return Result.ok(_parse_list(Contact, res.data, "contacts"))

    async def list_messages(self, contact_id: str) -> Result:
        res = await self.transport.get("/chat/messages", params={"contact_id": contact_id})
        if not res.success:
            return res
        messages = _parse_list(Message, res.data, "messages")
        # sorted es estable: empates conservan el orden del servidor
        return Result.ok(sorted(messages, key=lambda m: m.created_at))

    async def send_message(
        self,
        receiver_id: str,
        content: str = "",
        attachment: Optional[Attachment] = None,
        reply_to_id: Optional[str] = None,
        is_forwarded: bool = False,
    ) -> Result:
        try:
            payload = SendMessageRequest(
                receiver_id=receiver_id,
                content=content or "",
                attachment=attachment,
                reply_to_message_id=reply_to_id,
                is_forwarded=is_forwarded,
            )
        except ValidationError:
            return Result.fail("Message must have content or an attachment", ErrorKind.VALIDATION)

        res = await self.transport.post("/chat/send", json=payload.to_payload())
        if not res.success:
            return res
        try:
            return Result.ok(Message.model_validate(res.data))
        except ValidationError:
            logger.error("send_message: respuesta inválida: %s", res.data)
            return Result.fail("Invalid response from server", ErrorKind.MALFORMED, res.status_code)

    def check_attachment_size(self, size: int) -> Optional[str]:
        if size > self.max_attachment_bytes:
            limit_mb = self.max_attachment_bytes / (1024 * 1024)
            return f"File size must be less than {limit_mb:g}MB"
        return None

    async def upload_attachment(self, file: OutgoingFile) -> Result:
        error = self.check_attachment_size(file.size)
        if error:
            return Result.fail(error, ErrorKind.VALIDATION)

        res = await self.transport.post(
            "/chat/upload", files={"file": (file.name, file.content, file.type)}
        )
        if not res.success:
            return res
        try:
            return Result.ok(Attachment.model_validate(res.data))
        except ValidationError:
            logger.error("upload_attachment: respuesta inválida: %s", res.data)
            return Result.fail("Invalid response from server", ErrorKind.MALFORMED, res.status_code)

    async def get_unread_count(self) -> int:
        res = await self.transport.get("/chat/unread-count")
        if not res.success:
            return 0
        try:
            return UnreadCount.model_validate(res.data).count
        except ValidationError:
            return 0
