import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from rpms_chat.schemas.views import SessionInfo
from rpms_chat.services.chat_session import close_chat_session, open_chat_session
from rpms_chat.services.session import Session, TokenStore, get_token_store

logger = logging.getLogger(__name__)
router = APIRouter()


class SessionRequest(BaseModel):
    token: str
    user_id: str
    user_name: Optional[str] = None


@router.post("/session", response_model=SessionInfo)
async def create_session(
    payload: SessionRequest,
    token_store: TokenStore = Depends(get_token_store),
):
    """
    Guarda el token emitido por el backend de RPMS y arranca la vista de chat
    (carga de contactos + polling).
    """
    session = Session(token=payload.token, user_id=payload.user_id, user_name=payload.user_name)
    await token_store.save_session(session)
    await open_chat_session(session)
    logger.info("Sesión iniciada para %s", payload.user_id)
    return SessionInfo(user_id=payload.user_id, user_name=payload.user_name)


@router.get("/session", response_model=SessionInfo)
async def get_session(token_store: TokenStore = Depends(get_token_store)):
    session = await token_store.get_session()
    if not session:
        raise HTTPException(status_code=401, detail="No autenticado")
    return SessionInfo(user_id=session.user_id or "", user_name=session.user_name)


@router.delete("/session")
async def delete_session(token_store: TokenStore = Depends(get_token_store)):
    """Cierra sesión: borra el token y corta todo el polling."""
    await close_chat_session()
    await token_store.clear()
    return {"detail": "ok"}
