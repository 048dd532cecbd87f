# services/conversation_repository.py
"""
Chat/Message persistence.

Every lookup is scoped to the (chat id, owner) pair: a chat that exists but
belongs to someone else is reported exactly like a missing one.
"""
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, AsyncIterator, List, Optional, Tuple

from tortoise.transactions import in_transaction

from helper.error_handling import NotFound
from models.chat import Chat
from models.message import Message, Sender

TITLE_MAX_LEN = 50
TITLE_CUT_LEN = 47
HISTORY_LIMIT = 10


def derive_chat_title(text: str) -> str:
    if len(text) > TITLE_MAX_LEN:
        return text[:TITLE_CUT_LEN] + "…"
    return text


@dataclass
class ResolvedChat:
    chat: Any
    recent_messages: List[Any] = field(default_factory=list)  # newest first
    created: bool = False


@dataclass(frozen=True)
class ChatSummary:
    id: int
    title: str
    last_message: Optional[str]
    last_message_at: Optional[datetime]


class ConversationRepository(ABC):
    history_limit: int = HISTORY_LIMIT

    @abstractmethod
    async def resolve_or_create(
        self, user_id: int, chat_id: Optional[int], first_message_text: str, now: datetime
    ) -> ResolvedChat:
        """Owned chat (with recent messages) for chat_id, else a new chat titled from the text."""

    @abstractmethod
    async def append_message(self, chat_id: int, sender: Sender, text: str, using_db: Any = None) -> Any:
        ...

    @abstractmethod
    async def list_by_user(self, user_id: int) -> List[ChatSummary]:
        ...

    @abstractmethod
    async def get_chat(self, chat_id: int, user_id: int) -> Any:
        ...

    @abstractmethod
    async def get_messages(self, chat_id: int, user_id: int) -> List[Any]:
        ...

    @abstractmethod
    async def get_chat_detail(self, chat_id: int, user_id: int) -> Tuple[Any, List[Any]]:
        """The owned chat and its messages, oldest first, from a single ownership lookup."""

    @abstractmethod
    async def delete_chat(self, chat_id: int, user_id: int) -> None:
        ...

    @abstractmethod
    async def update_summary(
        self, chat_id: int, last_message_text: str, timestamp: datetime, using_db: Any = None
    ) -> None:
        ...

    @abstractmethod
    async def delete_message(self, message_id: int) -> None:
        ...

    @abstractmethod
    async def delete_empty_chat(self, chat_id: int) -> None:
        ...

    @abstractmethod
    def transaction(self):
        """Async context manager; the yielded handle is passed as using_db."""


def _scoped(qs, using_db):
    return qs.using_db(using_db) if using_db is not None else qs


class TortoiseConversationRepository(ConversationRepository):
    def __init__(self, history_limit: int = HISTORY_LIMIT) -> None:
        self.history_limit = history_limit

    async def resolve_or_create(self, user_id, chat_id, first_message_text, now):
        if chat_id is not None:
            chat = await Chat.get_or_none(id=chat_id, user_id=user_id)
            if chat is not None:
                recent = await Message.filter(chat_id=chat.id).order_by("-created_at", "-id").limit(self.history_limit)
                return ResolvedChat(chat=chat, recent_messages=list(recent), created=False)

        chat = await Chat.create(
            user_id=user_id,
            title=derive_chat_title(first_message_text),
            last_message=first_message_text,
            last_message_at=now,
        )
        return ResolvedChat(chat=chat, recent_messages=[], created=True)

    async def append_message(self, chat_id, sender, text, using_db=None):
        return await Message.create(chat_id=chat_id, sender=Sender(sender), text=text, using_db=using_db)

    async def list_by_user(self, user_id):
        rows = await Chat.filter(user_id=user_id).order_by("-last_message_at", "-id").values(
            "id", "title", "last_message", "last_message_at"
        )
        return [ChatSummary(**row) for row in rows]

    async def get_chat(self, chat_id, user_id):
        chat = await Chat.get_or_none(id=chat_id, user_id=user_id)
        if chat is None:
            raise NotFound("Chat not found")
        return chat

    async def get_messages(self, chat_id, user_id):
        chat = await self.get_chat(chat_id, user_id)
        return await self._messages_of(chat.id)

    async def get_chat_detail(self, chat_id, user_id):
        chat = await self.get_chat(chat_id, user_id)
        return chat, await self._messages_of(chat.id)

    async def _messages_of(self, chat_id):
        return list(await Message.filter(chat_id=chat_id).order_by("created_at", "id"))

    async def delete_chat(self, chat_id, user_id):
        chat = await self.get_chat(chat_id, user_id)
        async with in_transaction() as conn:
            # messages first; there is no DB-level cascade
            await Message.filter(chat_id=chat.id).using_db(conn).delete()
            await Chat.filter(id=chat.id).using_db(conn).delete()

    async def update_summary(self, chat_id, last_message_text, timestamp, using_db=None):
        await _scoped(Chat.filter(id=chat_id), using_db).update(
            last_message=last_message_text, last_message_at=timestamp
        )

    async def delete_message(self, message_id):
        await Message.filter(id=message_id).delete()

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[Any]:
        async with in_transaction() as conn:
            yield conn

    async def delete_empty_chat(self, chat_id: int) -> None:
        """Remove a chat only if no messages reference it (exchange compensation)."""
        if not await Message.filter(chat_id=chat_id).exists():
            await Chat.filter(id=chat_id).delete()
