"""
Chatroom Routes for Room Chat AI

Room management and the asynchronous message endpoint. Posting a message
only stores and queues it; the AI reply shows up in the room once a worker
has processed the job.
"""

from typing import List

from fastapi import APIRouter, Depends, status

from roomchat.api.dependencies import (
    ChatRepoDep,
    get_chatroom_service,
    get_current_user_id,
    get_quota_gate,
)
from roomchat.domain.chat import (
    ChatRoom,
    ChatRoomWithMessages,
    CreateChatRoomRequest,
    SendMessageRequest,
    SendMessageResponse,
)
from roomchat.infrastructure.exceptions import NotFoundError
from roomchat.services.chatroom_service import ChatroomService
from roomchat.services.quota_gate import QuotaGate


router = APIRouter()


@router.post("/chatroom", response_model=ChatRoom, status_code=status.HTTP_201_CREATED)
async def create_chatroom(
    request: CreateChatRoomRequest,
    user_id: str = Depends(get_current_user_id),
    service: ChatroomService = Depends(get_chatroom_service),
):
    """Create a new chat room for the current user."""
    return await service.create_chatroom(user_id, request.name)


@router.get("/chatroom", response_model=List[ChatRoom])
async def list_chatrooms(
    user_id: str = Depends(get_current_user_id),
    service: ChatroomService = Depends(get_chatroom_service),
):
    """List the current user's rooms, newest first."""
    return await service.list_chatrooms(user_id)


@router.get("/chatroom/{chatroom_id}", response_model=ChatRoomWithMessages)
async def get_chatroom(
    chatroom_id: str,
    repo: ChatRepoDep,
    user_id: str = Depends(get_current_user_id),
):
    """Get a room with its messages, oldest first."""
    room = await repo.get_user_room(chatroom_id, user_id, with_messages=True)
    if room is None:
        raise NotFoundError(
            "Chatroom not found or you do not have access to it.",
            resource="chatroom",
            resource_id=chatroom_id,
        )
    return ChatRoomWithMessages.model_validate(room)


@router.post(
    "/chatroom/{chatroom_id}/message",
    response_model=SendMessageResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def send_message(
    chatroom_id: str,
    request: SendMessageRequest,
    user_id: str = Depends(get_current_user_id),
    gate: QuotaGate = Depends(get_quota_gate),
):
    """
    Send a message to the AI.

    Returns 202 with the stored user message. Responds 429 when a BASIC
    user has used up today's prompts.
    """
    message = await gate.submit_message(chatroom_id, user_id, request.content)
    return SendMessageResponse(
        message=message,
        detail="Message received and is being processed by the AI.",
    )
