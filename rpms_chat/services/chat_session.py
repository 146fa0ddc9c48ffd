# rpms_chat/services/chat_session.py
import logging
from typing import Optional

import httpx

from rpms_chat.core.errors import AppError
from rpms_chat.schemas.chat import Result
from rpms_chat.schemas.views import ThreadView
from rpms_chat.services.chat_client import ChatClient
from rpms_chat.services.composer import Composer, Forwarder
from rpms_chat.services.conversation import ConversationManager
from rpms_chat.services.session import Session, get_token_store
from rpms_chat.services.thread_view import build_thread_items
from rpms_chat.services.transport import TransportClient

logger = logging.getLogger(__name__)


class ChatSession:
    """
    La vista de chat de un usuario: contactos, hilo activo, borrador y reenvío,
    todo sobre el mismo cliente autenticado.
    """

    def __init__(
        self,
        session: Session,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        message_interval: Optional[float] = None,
        contact_interval: Optional[float] = None,
        unread_interval: Optional[float] = None,
    ):
        self.session = session
        self.client = ChatClient(TransportClient(session, base_url=base_url, transport=transport))
        self.conversation = ConversationManager(
            self.client,
            message_interval=message_interval,
            contact_interval=contact_interval,
            unread_interval=unread_interval,
        )
        self.composer = Composer(self.client, self.conversation, current_user_id=session.user_id)
        self.forwarder = Forwarder(self.client, self.conversation)
        self.started = False

    async def start(self) -> None:
        if self.started:
            return
        await self.conversation.start()
        self.started = True
        logger.info("Chat iniciado para usuario %s", self.session.user_id)

    async def stop(self) -> None:
        await self.conversation.stop()
        self.composer.reset()
        self.forwarder.close()
        self.started = False
        logger.info("Chat detenido para usuario %s", self.session.user_id)

    async def select(self, contact_id: str) -> Result:
        # El borrador y el reenvío pertenecen al hilo anterior
        self.composer.reset()
        self.forwarder.close()
        return await self.conversation.select(contact_id)

    def deselect(self) -> None:
        self.composer.reset()
        self.forwarder.close()
        self.conversation.deselect()

    def thread_view(self) -> ThreadView:
        conv = self.conversation
        return ThreadView(
            state=conv.state.value,
            contact=conv.active_contact,
            items=build_thread_items(conv.messages, self.session.user_id, conv.active_contact),
        )


_chat_session: Optional[ChatSession] = None


async def open_chat_session(session: Session, **kwargs) -> ChatSession:
    global _chat_session
    await close_chat_session()
    _chat_session = ChatSession(session, **kwargs)
    await _chat_session.start()
    return _chat_session


async def close_chat_session() -> None:
    global _chat_session
    if _chat_session is not None:
        await _chat_session.stop()
    _chat_session = None


async def get_chat_session() -> ChatSession:
    """Dependencia FastAPI: sesión activa, o la persistida si el proceso reinició."""
    if _chat_session is not None:
        return _chat_session
    stored = await get_token_store().get_session()
    if not stored:
        raise AppError("No autenticado", 401)
    return await open_chat_session(stored)
