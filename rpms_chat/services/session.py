import json
import logging
import os
from typing import Any, Dict, Optional

from rpms_chat.core.config import settings

logger = logging.getLogger(__name__)


class Session:
    """Token bearer + usuario actual. Se inyecta al transport al construirlo."""

    def __init__(
        self,
        token: Optional[str] = None,
        user_id: Optional[str] = None,
        user_name: Optional[str] = None,
    ):
        self.token = token
        self.user_id = user_id
        self.user_name = user_name

    @property
    def authenticated(self) -> bool:
        return bool(self.token)

    def auth_headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"} if self.token else {}

    def model_dump(self) -> Dict[str, Any]:
        return {
            "token": self.token,
            "user_id": self.user_id,
            "user_name": self.user_name,
        }

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "Session":
        return Session(
            token=data.get("token"),
            user_id=data.get("user_id"),
            user_name=data.get("user_name"),
        )


class TokenStore:
    def __init__(self, path: str):
        self.path = path
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)

    async def save_session(self, session: Session) -> None:
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(session.model_dump(), f)

    async def get_session(self) -> Optional[Session]:
        if not os.path.exists(self.path):
            return None
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError):
            logger.warning("No se pudo leer la sesión guardada en %s", self.path)
            return None
        if not data.get("token"):
            return None
        return Session.from_dict(data)

    async def clear(self) -> None:
        if os.path.exists(self.path):
            os.remove(self.path)


_token_store: Optional[TokenStore] = None


def get_token_store() -> TokenStore:
    global _token_store
    if _token_store is None:
        _token_store = TokenStore(settings.TOKEN_STORE_PATH)
    return _token_store
