import logging

from fastapi import FastAPI, Depends
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession
from app.modules.transcription.api import router as transcription_router
from app.modules.agent.api import router as agent_router
from app.modules.assistant.api import router as assistant_router
from app.modules.admin.api import router as admin_router
from app.modules.users.api import router as users_router
from app.core.database import db_manager
from app.core.dependencies import get_db
from app.core.global_error_handler import register_global_exception_handlers
from app.core.config import settings

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Transcription Task Engine API",
    description="Quota-gated transcription, agent and assistant executions backed by a background worker.",
    version="1.0.0"
)

register_global_exception_handlers(app)

@app.on_event("shutdown")
async def shutdown_event():
    """Close database connections on shutdown."""
    await db_manager.close()
    logger.info("Database engine closed.")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(transcription_router, prefix="/api")
app.include_router(agent_router, prefix="/api")
app.include_router(assistant_router, prefix="/api")
app.include_router(admin_router, prefix="/api")
app.include_router(users_router, prefix="/api")

@app.get("/api/")
async def root():
    return {"message": "Transcription Task Engine API is running"}

@app.get("/api/health")
async def health_check(db: AsyncSession = Depends(get_db)):
    await db.execute(text("SELECT 1"))
    return {"status": "ok"}
