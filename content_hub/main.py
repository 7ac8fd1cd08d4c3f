import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import text

from content_hub.config import settings
from content_hub.core.errors import Gone, ServiceError
from content_hub.database import Base, engine, async_session_maker, get_async_session
from content_hub.routes.admin import router as admin_router
from content_hub.routes.apikeys import router as apikey_router
from content_hub.routes.auth import router as auth_router
from content_hub.routes.files import router as file_router
from content_hub.routes.shares import router as share_router
from content_hub.services import users as user_service

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
log = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    async with async_session_maker() as session:
        await user_service.seed_admin(session, settings.ADMIN_USER, settings.ADMIN_PASS)
    log.info("startup_complete storage=%s", settings.STORAGE_BACKEND)
    yield
    await engine.dispose()


app = FastAPI(title="Content Hub API", lifespan=lifespan)

app.include_router(auth_router, prefix="/api")
app.include_router(file_router, prefix="/api")
app.include_router(share_router, prefix="/api")
app.include_router(apikey_router, prefix="/api")
app.include_router(admin_router, prefix="/api")


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.get("/")
async def root():
    return {"message": "Content Hub API is running"}


@app.get("/health")
async def health(session: AsyncSession = Depends(get_async_session)):
    await session.execute(text("SELECT 1"))
    return {"status": "ok"}


@app.get("/share/{token}")
async def legacy_share(token: str):
    # old direct-download links
    raise Gone(f"Share links have moved, open /preview/{token} instead")
