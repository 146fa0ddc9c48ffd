# rpms_chat/services/transport.py
import logging
from typing import Any, Dict, Optional

import httpx

from rpms_chat.core.config import settings
from rpms_chat.core.errors import ErrorKind
from rpms_chat.schemas.chat import Result
from rpms_chat.services.session import Session

logger = logging.getLogger(__name__)


class TransportClient:
    """
    Cliente HTTP del backend de RPMS. Nunca lanza: todo termina en un Result
    con success/data/error.
    """

    def __init__(
        self,
        session: Session,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.session = session
        self.base_url = (base_url or settings.CHAT_API_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.REQUEST_TIMEOUT
        # Permite inyectar httpx.MockTransport en tests
        self._transport = transport

    async def request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
        files: Optional[Dict[str, Any]] = None,
    ) -> Result:
        url = f"{self.base_url}{path}"
        headers = self.session.auth_headers()
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.request(
                    method, url, params=params, json=json, files=files, headers=headers
                )
        except httpx.HTTPError as e:
            logger.error("API request failed for %s %s: %r", method, path, e)
            return Result.fail(str(e) or "Network error", ErrorKind.NETWORK)

        try:
            data = resp.json()
        except ValueError:
            # Página de error HTML o cuerpo vacío
            if not resp.is_success:
                logger.warning("%s %s -> %s sin JSON", method, path, resp.status_code)
                return Result.fail(
                    f"Server error ({resp.status_code})", ErrorKind.MALFORMED, resp.status_code
                )
            logger.error("%s %s -> respuesta 2xx no es JSON", method, path)
            return Result.fail("Invalid response from server", ErrorKind.MALFORMED, resp.status_code)

        if not resp.is_success:
            msg = data.get("error") if isinstance(data, dict) else None
            logger.warning("%s %s -> %s: %r", method, path, resp.status_code, msg)
            if not isinstance(msg, str) or not msg:
                msg = "An error occurred"
            return Result.fail(msg, ErrorKind.SERVER, resp.status_code)

        return Result.ok(data)

    async def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Result:
        return await self.request("GET", path, params=params)

    async def post(
        self,
        path: str,
        json: Optional[Dict[str, Any]] = None,
        files: Optional[Dict[str, Any]] = None,
    ) -> Result:
        return await self.request("POST", path, json=json, files=files)
