from typing import List

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    PROJECT_NAME: str = "rpms-chat"
    VERSION: str = "0.1.0"
    ENV: str = "development"
    PORT: int = 8000

    # Backend de RPMS (admite la variable que usa el frontend)
    CHAT_API_URL: str = Field(
        default="http://localhost:8080/api/v1",
        validation_alias=AliasChoices("CHAT_API_URL", "NEXT_PUBLIC_API_URL"),
    )
    REQUEST_TIMEOUT: float = 20.0

    # Intervalos de polling (segundos)
    MESSAGE_POLL_INTERVAL: float = 3.0
    CONTACT_POLL_INTERVAL: float = 10.0
    UNREAD_POLL_INTERVAL: float = 10.0

    # Composer
    MAX_ATTACHMENT_BYTES: int = 10 * 1024 * 1024
    REPLY_PREVIEW_LENGTH: int = 100

    # CORS (frontend Next.js / Vite)
    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        "http://localhost:5173",
    ]

    # Sesión persistida (token bearer + usuario actual)
    TOKEN_STORE_PATH: str = "data/session.json"

    # Logs: consola + archivo
    LOG_DIR: str = "logs"
    LOG_FILE: str = "rpms-chat.log"
    LOG_LEVEL: str = "INFO"
    # Loggers de terceros que con polling cada pocos segundos solo hacen ruido
    QUIET_LOGGERS: List[str] = ["httpx", "httpcore"]

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )


settings = Settings()
