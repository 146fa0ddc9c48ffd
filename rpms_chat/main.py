from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from rpms_chat.core.config import settings
from rpms_chat.core.logging import configure_logging
from rpms_chat.core.errors import register_exception_handlers
from rpms_chat.api.routes import auth, chat
from rpms_chat.services.chat_session import close_chat_session


@asynccontextmanager
async def lifespan(_: FastAPI):
    yield
    # La vista se "desmonta": se cancelan todos los polls
    await close_chat_session()


def create_app() -> FastAPI:
    configure_logging()

    app = FastAPI(
        title=settings.PROJECT_NAME,
        version=settings.VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"],
        max_age=3600,
    )

    register_exception_handlers(app)

    app.include_router(auth.router, prefix="/auth", tags=["auth"])
    app.include_router(chat.router, prefix="/chat", tags=["chat"])

    @app.get("/healthz")
    async def healthz() -> dict:
        return {"status": "ok"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("rpms_chat.main:app", host="0.0.0.0", port=int(settings.PORT), reload=True)
