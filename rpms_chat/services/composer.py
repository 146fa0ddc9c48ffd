# rpms_chat/services/composer.py
import asyncio
import logging
from typing import List, Optional

from rpms_chat.core.errors import ErrorKind
from rpms_chat.schemas.chat import Attachment, Contact, Message, Result
from rpms_chat.schemas.views import DraftView, ForwardFailure, ForwardReport, ReplyPreview
from rpms_chat.services.chat_client import ChatClient, OutgoingFile
from rpms_chat.services.conversation import ConversationManager
from rpms_chat.services.thread_view import filter_contacts, reply_preview

logger = logging.getLogger(__name__)


class Composer:
    """Borrador del mensaje saliente: texto, un adjunto y un destino de respuesta."""

    def __init__(self, client: ChatClient, conversation: ConversationManager, current_user_id: Optional[str] = None):
        self.client = client
        self.conversation = conversation
        self.current_user_id = current_user_id

        self.text = ""
        self.attachment: Optional[Attachment] = None
        self.reply_to: Optional[Message] = None
        self.uploading = False
        self.sending = False
        self.error: Optional[str] = None

    @property
    def enabled(self) -> bool:
        return self.conversation.active_contact is not None

    @property
    def can_send(self) -> bool:
        if not self.enabled or self.uploading or self.sending:
            return False
        return bool(self.text.strip()) or self.attachment is not None

    def set_text(self, text: str) -> None:
        self.text = text or ""

    def reset(self) -> None:
        self.text = ""
        self.attachment = None
        self.reply_to = None
        self.error = None

    # --- adjuntos ---

    async def stage_attachment(self, file: OutgoingFile) -> Result:
        if not self.enabled:
            return self._reject("No contact selected")
        if self.uploading:
            return self._reject("An upload is already in progress")
        if self.attachment is not None:
            return self._reject("Remove the current attachment first")
        size_error = self.client.check_attachment_size(file.size)
        if size_error:
            return self._reject(size_error)

        self.uploading = True
        self.error = None
        try:
            res = await self.client.upload_attachment(file)
        finally:
            self.uploading = False

        if res.success:
            self.attachment = res.data
            logger.info("Adjunto subido: %s (%s bytes)", res.data.name, res.data.size)
        else:
            self.attachment = None
            self.error = res.error
            logger.warning("Falló la subida de %s: %s", file.name, res.error)
        return res

    def remove_attachment(self) -> None:
        self.attachment = None

    # --- respuesta ---

    def set_reply(self, message_id: str) -> Result:
        message = self.conversation.find_message(message_id)
        if message is None:
            return self._reject("Message not found in this conversation", 404)
        self.reply_to = message
        return Result.ok(message)

    def clear_reply(self) -> None:
        self.reply_to = None

    @property
    def reply_preview(self) -> Optional[ReplyPreview]:
        if self.reply_to is None:
            return None
        return reply_preview(self.reply_to, self.current_user_id, self.conversation.active_contact)

    # --- envío ---

    async def send(self) -> Result:
        if not self.can_send:
            if not self.enabled:
                return self._reject("No contact selected")
            if self.uploading or self.sending:
                return self._reject("Wait for the current operation to finish")
            return self._reject("Message must have content or an attachment")

        contact = self.conversation.active_contact
        self.sending = True
        self.error = None
        try:
            res = await self.client.send_message(
                contact.id,
                content=self.text.strip(),
                attachment=self.attachment,
                reply_to_id=self.reply_to.id if self.reply_to else None,
                is_forwarded=False,
            )
        finally:
            self.sending = False

        if res.success:
            self.conversation.apply_sent_message(res.data)
            # Si el usuario cambió de contacto durante el envío, el borrador ya es otro
            current = self.conversation.active_contact
            if current is not None and current.id == contact.id:
                self.text = ""
                self.attachment = None
                self.reply_to = None
        else:
            self.error = res.error
            logger.warning("No se pudo enviar a %s: %s", contact.id, res.error)
        return res

    def view(self) -> DraftView:
        return DraftView(
            text=self.text,
            attachment=self.attachment,
            reply=self.reply_preview,
            uploading=self.uploading,
            sending=self.sending,
            enabled=self.enabled and not self.uploading,
            can_send=self.can_send,
            error=self.error,
        )

    def _reject(self, message: str, status_code: Optional[int] = None) -> Result:
        self.error = message
        return Result.fail(message, ErrorKind.VALIDATION, status_code)


class Forwarder:
    """
    Reenvío modal: un mensaje origen y N contactos destino. Cada destino recibe
    un envío independiente con is_forwarded=True y sin reply_to_message_id.
    """

    def __init__(self, client: ChatClient, conversation: ConversationManager):
        self.client = client
        self.conversation = conversation
        self.message: Optional[Message] = None
        self.targets: List[str] = []
        self.forwarding = False

    @property
    def is_open(self) -> bool:
        return self.message is not None

    def open(self, message_id: str) -> Result:
        message = self.conversation.find_message(message_id)
        if message is None:
            return Result.fail("Message not found in this conversation", ErrorKind.VALIDATION, 404)
        self.message = message
        self.targets = []
        return Result.ok(message)

    def close(self) -> None:
        self.message = None
        self.targets = []

    def toggle_target(self, contact_id: str) -> None:
        if contact_id in self.targets:
            self.targets = [t for t in self.targets if t != contact_id]
        else:
            self.targets = self.targets + [contact_id]

    def picker_contacts(self, term: str = "") -> List[Contact]:
        return filter_contacts(self.conversation.contacts, term, include_role=False)

    async def confirm(self) -> Result:
        if self.message is None:
            return Result.fail("No message selected to forward", ErrorKind.VALIDATION)
        if not self.targets:
            return Result.fail("Select at least one contact", ErrorKind.VALIDATION)

        # El modal se cierra al confirmar; los envíos siguen en curso
        message, targets = self.message, list(dict.fromkeys(self.targets))
        self.close()
        return await self.forward(message, targets)

    async def forward(self, message: Message, contact_ids: List[str]) -> Result:
        self.forwarding = True
        try:
            results = await asyncio.gather(
                *(
                    self.client.send_message(
                        cid,
                        content=message.content,
                        attachment=message.attachment,
                        reply_to_id=None,
                        is_forwarded=True,
                    )
                    for cid in contact_ids
                )
            )
        finally:
            self.forwarding = False

        report = ForwardReport(success=all(r.success for r in results))
        for cid, res in zip(contact_ids, results):
            if res.success:
                report.delivered.append(cid)
                self.conversation.apply_sent_message(res.data)
            else:
                report.failed.append(ForwardFailure(contact_id=cid, error=res.error or "An error occurred"))

        active = self.conversation.active_contact
        if active is not None and active.id in contact_ids:
            await self.conversation.refresh_messages()

        if report.success:
            logger.info("Mensaje %s reenviado a %d contactos", message.id, len(contact_ids))
            return Result.ok(report)

        logger.warning(
            "Reenvío de %s: %d de %d fallaron", message.id, len(report.failed), len(contact_ids)
        )
        report.error = f"Failed to forward message to {len(report.failed)} of {len(contact_ids)} contacts"
        kinds = {r.kind for r in results if not r.success}
        return Result(
            success=False,
            data=report,
            error=report.error,
            kind=kinds.pop() if len(kinds) == 1 else ErrorKind.SERVER,
        )
