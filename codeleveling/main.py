from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import logging

from codeleveling.core.config import get_settings
from codeleveling.core.db import build_engine, build_session_factory, init_db
from codeleveling.seed_data import seed_catalog
from codeleveling.services.user_service import UserService
from codeleveling.routers import daily as daily_router
from codeleveling.routers import leaderboard as leaderboard_router
from codeleveling.routers import quests as quests_router
from codeleveling.routers import users as users_router

settings = get_settings()

# Configurar logging
logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Maneja el ciclo de vida de la aplicación"""
    logger.info(f"Starting {settings.APP_NAME} ({settings.ENVIRONMENT})...")

    engine = build_engine(settings.DATABASE_URL, echo=settings.DB_ECHO)
    app.state.engine = engine
    app.state.session_factory = build_session_factory(engine)
    init_db(engine)

    if settings.SEED_ON_STARTUP:
        db = app.state.session_factory()
        try:
            seed_catalog(db)
            user = UserService(db, settings).ensure_user(settings.DEFAULT_USERNAME)
            if user is None:
                logger.warning(f"Could not initialize default user {settings.DEFAULT_USERNAME}")
            else:
                logger.info(f"Default user ready: {user.username} (id={user.id})")
        finally:
            db.close()

    yield

    logger.info(f"Shutting down {settings.APP_NAME}...")
    engine.dispose()


app = FastAPI(
    title=settings.APP_NAME,
    description="Gamified learning tracker: quests, XP, levels, daily tasks and a leaderboard",
    version=settings.VERSION,
    lifespan=lifespan,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json"
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(users_router.router)
app.include_router(quests_router.router)
app.include_router(daily_router.router)
app.include_router(leaderboard_router.router)


# Health check
@app.get("/health", tags=["Health"])
def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "service": settings.APP_NAME,
        "version": settings.VERSION,
        "environment": settings.ENVIRONMENT,
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
