from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from matchchat.database.connection import mongo_db_dependency
from matchchat.repositories.match_repository import MatchRepository
from matchchat.repositories.message_repository import MessageRepository
from matchchat.schemas.conversation import MatchStatus, MessageType
from matchchat.services.chat_service import ChatService, MatchNotFoundError
from matchchat.utils.realtime_bus import get_bus


router = APIRouter(prefix="/matches", tags=["chat"])


class SendMessageRequest(BaseModel):

    sender_id: str
    content: str = ""
    type: MessageType = MessageType.text


class MarkReadRequest(BaseModel):

    reader_id: str


class UpdateMatchRequest(BaseModel):

    status: MatchStatus


async def get_chat_service(db = Depends(mongo_db_dependency)) -> ChatService:
    return ChatService(MessageRepository(db), MatchRepository(db), await get_bus())


@router.post("/{match_id}/messages", status_code=201)
async def send_message(match_id: str, body: SendMessageRequest, service: ChatService = Depends(get_chat_service)):
    try:
        message = await service.send_message(match_id, body.sender_id, body.content, body.type)
    except MatchNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return message.model_dump(mode="json")


@router.get("/{match_id}/messages")
async def list_messages(match_id: str, limit: int = Query(50, ge=1, le=200), cursor: Optional[str] = None, service: ChatService = Depends(get_chat_service)):
    try:
        messages, next_cursor = await service.get_history(match_id, limit=limit, cursor=cursor)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid cursor")
    return {"items": [m.model_dump(mode="json") for m in messages], "next_cursor": next_cursor}


@router.post("/{match_id}/read")
async def mark_read(match_id: str, body: MarkReadRequest, service: ChatService = Depends(get_chat_service)):
    try:
        count = await service.mark_read(match_id, body.reader_id)
    except MatchNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return {"updated": count}


@router.patch("/{match_id}")
async def update_match(match_id: str, body: UpdateMatchRequest, service: ChatService = Depends(get_chat_service)):
    try:
        match = await service.set_match_status(match_id, body.status)
    except MatchNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    return match.model_dump(mode="json")
