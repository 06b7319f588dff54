import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect

from matchchat.database.connection import mongo_db_dependency
from matchchat.repositories.match_repository import MatchRepository
from matchchat.repositories.message_repository import MessageRepository
from matchchat.repositories.user_repository import UserRepository
from matchchat.schemas.conversation import ConversationState
from matchchat.services.change_source import BusChangeSource
from matchchat.services.conversation_engine import ConversationAggregator
from matchchat.services.conversation_service import ConversationService
from matchchat.services.conversation_views import search_conversations, split_conversations
from matchchat.services.entity_fetchers import MongoEntityFetcher
from matchchat.utils.realtime_bus import get_bus

logger = logging.getLogger(__name__)

router = APIRouter(tags=["conversations"])


def get_fetcher(db = Depends(mongo_db_dependency)) -> MongoEntityFetcher:
    return MongoEntityFetcher(UserRepository(db), MessageRepository(db))


def get_conversation_service(db = Depends(mongo_db_dependency), fetcher: MongoEntityFetcher = Depends(get_fetcher)) -> ConversationService:
    return ConversationService(MatchRepository(db), fetcher)


async def get_aggregator(db = Depends(mongo_db_dependency), fetcher: MongoEntityFetcher = Depends(get_fetcher)) -> ConversationAggregator:
    bus = await get_bus()
    return ConversationAggregator(BusChangeSource(bus, MatchRepository(db)), fetcher)


@router.get("/users/{user_id}/conversations")
async def list_conversations(user_id: str, q: Optional[str] = Query(None, max_length=100), split: bool = False, service: ConversationService = Depends(get_conversation_service)):
    conversations = search_conversations(await service.list_conversations(user_id), q)
    if not split:
        return {"items": [c.model_dump(mode="json") for c in conversations]}
    active, new_matches = split_conversations(conversations)
    return {
        "items": [c.model_dump(mode="json") for c in active],
        "new_matches": [c.model_dump(mode="json") for c in new_matches],
    }


@router.websocket("/ws/conversations/{user_id}")
async def conversations_socket(websocket: WebSocket, user_id: str, aggregator: ConversationAggregator = Depends(get_aggregator)):
    await websocket.accept()
    states: "asyncio.Queue[ConversationState]" = asyncio.Queue()
    aggregator.add_listener(states.put_nowait)

    async def _forward() -> None:
        while True:
            state = await states.get()
            await websocket.send_json(state.to_payload())

    await aggregator.start(user_id)
    sender = asyncio.create_task(_forward())
    try:
        # Inbound frames are ignored; the loop only waits for the client to leave
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.debug("Conversation socket for user %s closed", user_id)
    finally:
        await aggregator.stop()
        sender.cancel()
        await asyncio.gather(sender, return_exceptions=True)
