"""
Modelos de vista del hilo: separadores de fecha, previews de respuesta y
descriptores de adjuntos. Funciones puras, sin red.
"""
from datetime import date, datetime
from typing import Dict, List, Optional

from rpms_chat.core.config import settings
from rpms_chat.schemas.chat import Attachment, Contact, Message
from rpms_chat.schemas.views import AttachmentView, MessageView, ReplyPreview, ThreadItem

READ_MARK = "✓✓"
SENT_MARK = "✓"


def local_day(dt: datetime) -> date:
    # Con zona horaria se agrupa por el día local, como el navegador
    if dt.tzinfo is not None:
        return dt.astimezone().date()
    return dt.date()


def time_label(dt: datetime) -> str:
    if dt.tzinfo is not None:
        dt = dt.astimezone()
    return dt.strftime("%H:%M")


def attachment_kind(mime_type: str) -> str:
    if mime_type.startswith("image/"):
        return "image"
    if mime_type == "application/pdf":
        return "pdf"
    return "file"


def format_file_size(size: Optional[int]) -> str:
    if not size:
        return ""
    kb = size / 1024
    if kb < 1024:
        return f"{kb:.1f} KB"
    return f"{kb / 1024:.1f} MB"


def attachment_marker(attachment: Attachment) -> str:
    return f"📎 {attachment.name}"


def summary_text(message: Message) -> str:
    """Texto que representa al mensaje en previews (contenido o marcador de adjunto)."""
    if message.has_content:
        return message.content
    if message.attachment is not None:
        return attachment_marker(message.attachment)
    return ""


def attachment_view(attachment: Attachment) -> AttachmentView:
    return AttachmentView(
        **attachment.model_dump(),
        kind=attachment_kind(attachment.type),
        size_label=format_file_size(attachment.size),
    )


def truncate(text: str, length: int) -> str:
    if len(text) <= length:
        return text
    return text[: max(length - 1, 0)].rstrip() + "…"


def sender_label(message: Message, current_user_id: Optional[str], contact: Optional[Contact]) -> str:
    if current_user_id and message.sender_id == current_user_id:
        return "You"
    if message.sender_name:
        return message.sender_name
    if contact is not None and message.sender_id == contact.id:
        return contact.name
    return "message"


def reply_preview(
    message: Message,
    current_user_id: Optional[str],
    contact: Optional[Contact],
    length: Optional[int] = None,
) -> ReplyPreview:
    return ReplyPreview(
        message_id=message.id,
        sender_label=sender_label(message, current_user_id, contact),
        content=truncate(summary_text(message), length or settings.REPLY_PREVIEW_LENGTH),
    )


def build_thread_items(
    messages: List[Message],
    current_user_id: Optional[str],
    contact: Optional[Contact] = None,
) -> List[ThreadItem]:
    """
    Intercala un separador de fecha antes del primer mensaje y cada vez que
    cambia el día calendario respecto del mensaje anterior.
    """
    by_id: Dict[str, Message] = {m.id: m for m in messages}
    items: List[ThreadItem] = []
    previous_day: Optional[date] = None

    for msg in messages:
        day = local_day(msg.created_at)
        if previous_day is None or day != previous_day:
            items.append(ThreadItem(kind="date", day=day))
        previous_day = day

        is_mine = bool(current_user_id) and msg.sender_id == current_user_id
        parent = by_id.get(msg.reply_to_message_id) if msg.reply_to_message_id else None
        items.append(
            ThreadItem(
                kind="message",
                message=MessageView(
                    message=msg,
                    is_mine=is_mine,
                    time_label=time_label(msg.created_at),
                    receipt=(READ_MARK if msg.is_read else SENT_MARK) if is_mine else None,
                    attachment=attachment_view(msg.attachment) if msg.attachment else None,
                    reply_preview=reply_preview(parent, current_user_id, contact) if parent else None,
                ),
            )
        )
    return items


def filter_contacts(contacts: List[Contact], term: str, include_role: bool = True) -> List[Contact]:
    """Búsqueda por nombre (y rol) sin distinguir mayúsculas."""
    needle = (term or "").strip().lower()
    if not needle:
        return list(contacts)
    return [
        c for c in contacts
        if needle in c.name.lower() or (include_role and needle in c.role.lower())
    ]
