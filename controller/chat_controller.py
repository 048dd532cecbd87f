# chat_controller.py
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from helper.error_handling import NotFound
from helper.security import get_current_user_id
from models.user import User
from services.bootstrap import get_conversations, get_exchange_service, get_ledger
from services.conversation_repository import ConversationRepository
from services.credit_ledger import CreditLedger
from services.message_exchange import MessageExchangeService

router = APIRouter()


class SendMessageRequest(BaseModel):
    message: str = Field(min_length=1)
    chatId: Optional[int] = None

class SendMessageResponse(BaseModel):
    reply: str
    chatId: int
    credits: int
    chatTitle: str

class ChatSummaryResponse(BaseModel):
    id: int
    title: str
    lastMessage: Optional[str] = None
    lastMessageAt: Optional[datetime] = None

class ChatListResponse(BaseModel):
    chats: List[ChatSummaryResponse]

class MessageResponse(BaseModel):
    id: int
    chatId: int
    sender: str
    text: str
    createdAt: datetime

class ChatDetail(BaseModel):
    id: int
    title: str
    messages: List[MessageResponse]

class ChatDetailResponse(BaseModel):
    chat: ChatDetail

class MsgResponse(BaseModel):
    msg: str

class CreditsUser(BaseModel):
    id: int
    username: str
    email: str

class CreditsResponse(BaseModel):
    credits: int
    user: CreditsUser


@router.post("/message", response_model=SendMessageResponse)
async def send_message(
    data: SendMessageRequest,
    user_id: int = Depends(get_current_user_id),
    service: MessageExchangeService = Depends(get_exchange_service),
):
    """Send a message, get the normalized AI reply and spend one credit."""
    result = await service.handle_send(user_id, data.chatId, data.message)
    return SendMessageResponse(
        reply=result.reply_text,
        chatId=result.chat_id,
        credits=result.remaining_credits,
        chatTitle=result.chat_title,
    )


@router.get("/chats", response_model=ChatListResponse)
async def get_user_chats(
    user_id: int = Depends(get_current_user_id),
    conversations: ConversationRepository = Depends(get_conversations),
):
    """Get all chats for the caller, most recently active first"""
    chats = await conversations.list_by_user(user_id)
    return ChatListResponse(chats=[
        ChatSummaryResponse(
            id=c.id,
            title=c.title,
            lastMessage=c.last_message,
            lastMessageAt=c.last_message_at,
        ) for c in chats
    ])


@router.get("/chats/{chat_id}", response_model=ChatDetailResponse)
async def get_chat_messages(
    chat_id: int,
    user_id: int = Depends(get_current_user_id),
    conversations: ConversationRepository = Depends(get_conversations),
):
    chat, messages = await conversations.get_chat_detail(chat_id, user_id)
    return ChatDetailResponse(chat=ChatDetail(
        id=chat.id,
        title=chat.title,
        messages=[MessageResponse(
            id=m.id,
            chatId=m.chat_id,
            sender=getattr(m.sender, "value", m.sender),
            text=m.text,
            createdAt=m.created_at,
        ) for m in messages],
    ))


@router.delete("/chats/{chat_id}", response_model=MsgResponse)
async def delete_chat(
    chat_id: int,
    user_id: int = Depends(get_current_user_id),
    conversations: ConversationRepository = Depends(get_conversations),
):
    """Delete a chat and all its associated messages."""
    await conversations.delete_chat(chat_id, user_id)
    return MsgResponse(msg="Chat deleted successfully")


@router.get("/credits", response_model=CreditsResponse)
async def get_user_credits(
    user_id: int = Depends(get_current_user_id),
    ledger: CreditLedger = Depends(get_ledger),
):
    user = await User.get_or_none(id=user_id)
    if user is None:
        raise NotFound("User not found")
    credits = await ledger.balance(user_id)
    return CreditsResponse(
        credits=credits,
        user=CreditsUser(id=user.id, username=user.username, email=user.email),
    )
