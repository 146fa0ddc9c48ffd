from typing import List

from fastapi import APIRouter, Depends, File, UploadFile
from pydantic import BaseModel

from rpms_chat.core.errors import AppError
from rpms_chat.schemas.chat import Contact, Message, Result
from rpms_chat.schemas.views import DraftView, ForwardReport, ThreadView
from rpms_chat.services.chat_client import OutgoingFile
from rpms_chat.services.chat_session import ChatSession, get_chat_session

router = APIRouter()


class DraftTextRequest(BaseModel):
    text: str = ""


class ForwardRequest(BaseModel):
    message_id: str
    contact_ids: List[str]


def _unwrap(res: Result):
    if not res.success:
        raise AppError.from_failure(res.error, res.kind, res.status_code)
    return res.data


# --------------------------------------------------------------------
# Contactos y conversación activa
# --------------------------------------------------------------------
@router.get("/contacts", response_model=List[Contact])
async def list_contacts(search: str = "", chat: ChatSession = Depends(get_chat_session)):
    return chat.conversation.search_contacts(search)


@router.post("/contacts/{contact_id}/select", response_model=ThreadView)
async def select_contact(contact_id: str, chat: ChatSession = Depends(get_chat_session)):
    res = await chat.select(contact_id)
    # Un fallo de carga no es fatal: la vista queda activa con la lista vacía
    if not res.success and res.status_code == 404:
        _unwrap(res)
    return chat.thread_view()


@router.delete("/selection", response_model=ThreadView)
async def deselect_contact(chat: ChatSession = Depends(get_chat_session)):
    chat.deselect()
    return chat.thread_view()


@router.get("/thread", response_model=ThreadView)
async def get_thread(chat: ChatSession = Depends(get_chat_session)):
    return chat.thread_view()


@router.get("/unread-count")
async def unread_count(refresh: bool = False, chat: ChatSession = Depends(get_chat_session)):
    if refresh:
        await chat.conversation.refresh_unread_count()
    return {"count": chat.conversation.unread_count}


# --------------------------------------------------------------------
# Borrador
# --------------------------------------------------------------------
@router.get("/draft", response_model=DraftView)
async def get_draft(chat: ChatSession = Depends(get_chat_session)):
    return chat.composer.view()


@router.put("/draft", response_model=DraftView)
async def set_draft_text(payload: DraftTextRequest, chat: ChatSession = Depends(get_chat_session)):
    chat.composer.set_text(payload.text)
    return chat.composer.view()


@router.post("/draft/attachment", response_model=DraftView)
async def stage_attachment(
    file: UploadFile = File(...),
    chat: ChatSession = Depends(get_chat_session),
):
    outgoing = OutgoingFile(
        name=file.filename or "file",
        content=await file.read(),
        type=file.content_type or "application/octet-stream",
    )
    _unwrap(await chat.composer.stage_attachment(outgoing))
    return chat.composer.view()


@router.delete("/draft/attachment", response_model=DraftView)
async def remove_attachment(chat: ChatSession = Depends(get_chat_session)):
    chat.composer.remove_attachment()
    return chat.composer.view()


@router.put("/draft/reply/{message_id}", response_model=DraftView)
async def set_reply(message_id: str, chat: ChatSession = Depends(get_chat_session)):
    _unwrap(chat.composer.set_reply(message_id))
    return chat.composer.view()


@router.delete("/draft/reply", response_model=DraftView)
async def clear_reply(chat: ChatSession = Depends(get_chat_session)):
    chat.composer.clear_reply()
    return chat.composer.view()


@router.post("/send", response_model=Message)
async def send_draft(chat: ChatSession = Depends(get_chat_session)):
    return _unwrap(await chat.composer.send())


# --------------------------------------------------------------------
# Reenvío
# --------------------------------------------------------------------
@router.post("/forward", response_model=ForwardReport)
async def forward_message(payload: ForwardRequest, chat: ChatSession = Depends(get_chat_session)):
    """
    Reenvía un mensaje del hilo activo. Devuelve el detalle por contacto:
    success=False si al menos un envío falló.
    """
    forwarder = chat.forwarder
    _unwrap(forwarder.open(payload.message_id))
    for contact_id in payload.contact_ids:
        if contact_id not in forwarder.targets:
            forwarder.toggle_target(contact_id)
    res = await forwarder.confirm()
    if res.data is None:
        _unwrap(res)
    return res.data
