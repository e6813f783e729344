import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware

from imposter_room.config import settings
from imposter_room.database import init_db
from imposter_room.errors import GameError
from imposter_room.routes import admin, game

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("🚀 Starting Imposter game server...")
    init_db()
    yield


app = FastAPI(title=settings.APP_NAME, version=settings.VERSION, lifespan=lifespan)


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(GameError)
async def game_error_handler(request: Request, exc: GameError):
    # Reads that hit a store failure end up here instead of as a 500
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


# Include game routes
app.include_router(game.router)
app.include_router(admin.router)


@app.get("/health")
async def health_check():
    return {"status": "healthy", "service": "imposter-room"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("imposter_room.main:app", host=settings.HOST, port=settings.PORT, reload=settings.DEBUG)
