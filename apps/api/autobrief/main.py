from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from autobrief.config import get_settings
from autobrief.container import ServiceContainer
from autobrief.infrastructure.db import connection as db
from autobrief.interfaces.api.dependencies import ApiError, api_error_handler
from autobrief.interfaces.api.routers import auth, chat, payments, results, upload
from autobrief.logging_config import configure_logging


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    settings = get_settings()
    container = ServiceContainer(settings, db.init_pool(settings.database_url))
    container.ensure_schema()
    app.state.container = container
    try:
        yield
    finally:
        await container.aclose()
        db.close_pool()


app = FastAPI(title="AutoBrief API", version="0.1.0", lifespan=lifespan)
app.add_exception_handler(ApiError, api_error_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[get_settings().frontend_origin],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}


app.include_router(auth.router)
app.include_router(upload.router)
app.include_router(results.router)
app.include_router(payments.router)
app.include_router(chat.router)
