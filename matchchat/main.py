import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI

from matchchat.database.connection import close_mongo_connection, connect_to_mongo, get_database
from matchchat.repositories.match_repository import MatchRepository
from matchchat.repositories.message_repository import MessageRepository
from matchchat.routers.conversations import router as conversations_router
from matchchat.routers.matches import router as matches_router


logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):

    await connect_to_mongo()
    db = get_database()
    await MatchRepository(db).ensure_indexes()
    await MessageRepository(db).ensure_indexes()
    try:
        yield
    finally:
        await close_mongo_connection()


app = FastAPI(title="matchchat", lifespan=lifespan)


app.include_router(conversations_router)
app.include_router(matches_router)


@app.get("/")
async def root():

    return {"message": "matchchat is running"}
