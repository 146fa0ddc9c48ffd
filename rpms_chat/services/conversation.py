# rpms_chat/services/conversation.py
import logging
from enum import Enum
from typing import List, Optional

from rpms_chat.core.config import settings
from rpms_chat.core.errors import ErrorKind
from rpms_chat.schemas.chat import Contact, LastMessage, Message, Result
from rpms_chat.services.chat_client import ChatClient
from rpms_chat.services.polling import PeriodicTask
from rpms_chat.services.thread_view import filter_contacts, summary_text

logger = logging.getLogger(__name__)


class ConversationState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    ACTIVE = "active"


class ConversationManager:
    """
    Dueño exclusivo de la lista de contactos y del hilo del contacto activo.
    Cada fetch de mensajes toma un número de secuencia; solo se aplica la
    respuesta más nueva para el contacto que sigue seleccionado.
    """

    def __init__(
        self,
        client: ChatClient,
        message_interval: Optional[float] = None,
        contact_interval: Optional[float] = None,
        unread_interval: Optional[float] = None,
    ):
        self.client = client
        self.message_interval = message_interval or settings.MESSAGE_POLL_INTERVAL
        self.contact_interval = contact_interval or settings.CONTACT_POLL_INTERVAL
        self.unread_interval = unread_interval or settings.UNREAD_POLL_INTERVAL

        self.state = ConversationState.IDLE
        self.contacts: List[Contact] = []
        self.contacts_loading = True
        self.active_contact: Optional[Contact] = None
        self.messages: List[Message] = []
        self.unread_count = 0
        self.error: Optional[str] = None

        self._message_seq = 0
        self._contact_seq = 0
        # Solo el select más reciente puede activar la vista y arrancar el polling
        self._selection = 0
        self._message_poll: Optional[PeriodicTask] = None
        self._contact_poll = PeriodicTask("contacts", self.contact_interval, self.refresh_contacts)
        self._unread_poll = PeriodicTask("unread-count", self.unread_interval, self.refresh_unread_count)

    # --- ciclo de vida de la vista ---

    async def start(self) -> None:
        await self.refresh_contacts()
        await self.refresh_unread_count()
        self._contact_poll.start()
        self._unread_poll.start()

    async def stop(self) -> None:
        await self._contact_poll.stop()
        await self._unread_poll.stop()
        self._selection += 1
        self._cancel_message_poll()
        self.active_contact = None
        self.messages = []
        self.state = ConversationState.IDLE

    # --- contactos ---

    async def refresh_contacts(self) -> None:
        self._contact_seq += 1
        seq = self._contact_seq
        res = await self.client.list_contacts()
        self.contacts_loading = False
        if seq != self._contact_seq:
            return
        if not res.success:
            logger.warning("No se pudieron cargar los contactos: %s", res.error)
            return
        self.contacts = res.data
        # El contacto activo refleja los datos nuevos (unread, preview)
        if self.active_contact is not None:
            fresh = self.get_contact(self.active_contact.id)
            if fresh is not None:
                self.active_contact = fresh

    def get_contact(self, contact_id: str) -> Optional[Contact]:
        return next((c for c in self.contacts if c.id == contact_id), None)

    def search_contacts(self, term: str = "") -> List[Contact]:
        return filter_contacts(self.contacts, term)

    async def refresh_unread_count(self) -> None:
        self.unread_count = await self.client.get_unread_count()

    # --- conversación activa ---

    async def select(self, contact_id: str) -> Result:
        contact = self.get_contact(contact_id)
        if contact is None:
            return Result.fail("Contact not found", ErrorKind.VALIDATION, 404)

        # Se descarta el hilo anterior y su polling antes de pedir el nuevo
        self._selection += 1
        selection = self._selection
        self._cancel_message_poll()
        self.active_contact = contact
        self.messages = []
        self.error = None
        self.state = ConversationState.LOADING
        logger.info("Conversación seleccionada: %s", contact_id)

        res = await self.refresh_messages()
        if selection != self._selection:
            # Otro select/deselect ganó mientras esperábamos
            return res
        self.state = ConversationState.ACTIVE
        self._cancel_message_poll()
        self._message_poll = PeriodicTask(
            f"messages:{contact_id}", self.message_interval, self.refresh_messages
        )
        self._message_poll.start()
        return res

    def deselect(self) -> None:
        self._selection += 1
        self._cancel_message_poll()
        # Invalida cualquier fetch en vuelo del contacto anterior
        self._message_seq += 1
        self.active_contact = None
        self.messages = []
        self.error = None
        self.state = ConversationState.IDLE

    async def refresh_messages(self) -> Result:
        contact = self.active_contact
        if contact is None:
            return Result.fail("No contact selected", ErrorKind.VALIDATION)

        self._message_seq += 1
        seq = self._message_seq
        res = await self.client.list_messages(contact.id)

        if seq != self._message_seq or self.active_contact is None or self.active_contact.id != contact.id:
            logger.debug("Respuesta vieja de mensajes descartada (seq=%s)", seq)
            return res
        if res.success:
            self.messages = res.data
            self.error = None
        else:
            # Se mantiene la lista previa; en la primera carga queda vacía
            self.error = res.error
            logger.warning("No se pudieron cargar mensajes de %s: %s", contact.id, res.error)
        return res

    def find_message(self, message_id: str) -> Optional[Message]:
        return next((m for m in self.messages if m.id == message_id), None)

    def apply_sent_message(self, message: Message) -> None:
        """Agrega el mensaje enviado al hilo activo y actualiza el preview del contacto."""
        if self.active_contact is not None and self.active_contact.id == message.receiver_id:
            # Un poll en vuelo no debe pisar el mensaje recién agregado
            self._message_seq += 1
            self.messages = self.messages + [message]

        preview = LastMessage(content=summary_text(message), created_at=message.created_at)
        self.contacts = [
            c.model_copy(update={"last_message": preview}) if c.id == message.receiver_id else c
            for c in self.contacts
        ]
        if self.active_contact is not None and self.active_contact.id == message.receiver_id:
            self.active_contact = self.active_contact.model_copy(update={"last_message": preview})

    @property
    def message_polling(self) -> bool:
        return self._message_poll is not None and self._message_poll.running

    @property
    def contact_polling(self) -> bool:
        return self._contact_poll.running

    def _cancel_message_poll(self) -> None:
        if self._message_poll is not None:
            self._message_poll.cancel()
            self._message_poll = None
