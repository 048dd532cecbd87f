# services/message_exchange.py
"""
One chat exchange: credit gate -> thread -> user message -> generation ->
normalization -> (AI message + chat summary + credit decrement, committed
together) -> result.
"""
import asyncio
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from tortoise import timezone
from tortoise.exceptions import BaseORMException

from helper.ai_logging import ai_dbg, ai_err, ai_info, ai_span, ai_warn, set_log_context
from helper.chat_context import build_history
from helper.error_handling import (
    AppError,
    GenerationFailure,
    InsufficientCredits,
    StorageFailure,
    ValidationFailure,
)
from helper.prompts_helper import formatting_instruction
from helper.reply_normalizer import parse_reply
from models.message import Sender
from services.conversation_repository import ConversationRepository
from services.credit_ledger import CreditLedger
from services.generation_client import GenerationClient


@dataclass(frozen=True)
class ExchangeResult:
    reply_text: str
    chat_id: int
    remaining_credits: int
    chat_title: str


class MessageExchangeService:
    def __init__(
        self,
        repository: ConversationRepository,
        ledger: CreditLedger,
        generator: GenerationClient,
        prompt_mode: str = "stateless",
        generation_timeout: Optional[float] = 60.0,
        compensate_failed_exchange: bool = False,
        clock: Callable[[], datetime] = timezone.now,
    ) -> None:
        self.repository = repository
        self.ledger = ledger
        self.generator = generator
        self.prompt_mode = prompt_mode
        self.generation_timeout = generation_timeout or None
        self.compensate_failed_exchange = compensate_failed_exchange
        self.clock = clock

    async def handle_send(self, user_id: int, chat_id: Optional[int], message_text: str) -> ExchangeResult:
        try:
            return await self._exchange(user_id, chat_id, message_text)
        except AppError:
            raise
        except BaseORMException as e:
            ai_warn("exchange.storage_error", {"exc": f"{e.__class__.__name__}: {e}"})
            raise StorageFailure() from e

    async def _exchange(self, user_id, chat_id, message_text) -> ExchangeResult:
        if not message_text or not message_text.strip():
            raise ValidationFailure("Message must not be empty")
        set_log_context(user_id=user_id, chat_id=chat_id)

        check = await self.ledger.check_and_reserve(user_id)
        if not check.ok:
            ai_info("exchange.insufficient_credits", {"user_id": user_id})
            raise InsufficientCredits(remaining=0)

        resolved = await self.repository.resolve_or_create(user_id, chat_id, message_text, self.clock())
        chat = resolved.chat
        set_log_context(chat_id=chat.id)

        user_message = await self.repository.append_message(chat.id, Sender.USER, message_text)

        history = build_history(resolved.recent_messages)
        ai_dbg("exchange.history", {"mode": self.prompt_mode, "entries": len(history)})

        try:
            raw = await self._generate(message_text, history if self.prompt_mode == "history" else None)
        except GenerationFailure as failure:
            await self._compensate(user_message, resolved, failure)
            raise

        reply = parse_reply(raw)
        ai_dbg("exchange.normalized", {"shape": reply.label, "len": len(reply.text)})

        async with self.repository.transaction() as conn:
            await self.repository.append_message(chat.id, Sender.AI, reply.text, using_db=conn)
            await self.repository.update_summary(chat.id, reply.text, self.clock(), using_db=conn)
            remaining = await self.ledger.decrement(user_id, using_db=conn)

        ai_info("exchange.done", {"chat_id": chat.id, "credits": remaining})
        return ExchangeResult(
            reply_text=reply.text,
            chat_id=chat.id,
            remaining_credits=remaining,
            chat_title=chat.title,
        )

    async def _generate(self, message_text, history) -> str:
        with ai_span("exchange.generate", {"provider": self.generator.name}):
            call = self.generator.generate(message_text, formatting_instruction(), history)
            try:
                return await asyncio.wait_for(call, timeout=self.generation_timeout)
            except asyncio.TimeoutError as e:
                raise GenerationFailure("AI provider timed out") from e

    async def _compensate(self, user_message, resolved, failure: GenerationFailure) -> None:
        if not self.compensate_failed_exchange:
            return
        try:
            await self.repository.delete_message(user_message.id)
            if resolved.created:
                await self.repository.delete_empty_chat(resolved.chat.id)
        except BaseORMException as e:
            # the generation failure stays the reported error
            ai_err("exchange.compensate_failed", {
                "message_id": user_message.id,
                "cause": failure.cause,
                "exc": f"{e.__class__.__name__}: {e}",
            })
            return
        ai_info("exchange.compensated", {"message_id": user_message.id, "chat_removed": resolved.created})
