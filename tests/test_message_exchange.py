import itertools
from datetime import datetime, timedelta

import pytest
from tortoise.exceptions import OperationalError

from fakes import InMemoryConversationRepository, InMemoryCreditLedger, ScriptedGenerator
from helper.chat_context import HistoryEntry
from helper.error_handling import GenerationFailure, InsufficientCredits, NotFound, ValidationFailure
from helper.prompts_helper import FORMATTING_INSTRUCTION
from models.chat import Chat
from models.message import Message, Sender
from models.user import User
from services.conversation_repository import TortoiseConversationRepository
from services.credit_ledger import TortoiseCreditLedger
from services.message_exchange import MessageExchangeService


def _clock():
    ticks = itertools.count()
    start = datetime(2025, 1, 1, 12, 0, 0)
    return lambda: start + timedelta(seconds=next(ticks))


def _service(balances=None, generator=None, **kwargs):
    repo = InMemoryConversationRepository()
    ledger = InMemoryCreditLedger(balances if balances is not None else {1: 5})
    generator = generator or ScriptedGenerator("PARAGRAPHS: Hi. Bye")
    service = MessageExchangeService(repo, ledger, generator, clock=_clock(), **kwargs)
    return service, repo, ledger, generator


async def test_zero_credits_is_rejected_without_writes():
    service, repo, ledger, generator = _service(balances={1: 0})

    with pytest.raises(InsufficientCredits) as exc_info:
        await service.handle_send(1, None, "hello")

    assert exc_info.value.remaining == 0
    assert exc_info.value.payload() == {"msg": "Insufficient credits", "credits": 0}
    assert repo.writes == 0
    assert repo.chats == {} and repo.messages == []
    assert generator.calls == []


async def test_last_credit_is_spent_and_turn_recorded():
    service, repo, ledger, _ = _service(balances={1: 1}, generator=ScriptedGenerator("PARAGRAPHS: A. B. C"))

    result = await service.handle_send(1, None, "tell me something")

    assert result.remaining_credits == 0
    assert result.reply_text == "A.\nB.\nC."
    assert result.chat_title == "tell me something"
    senders = [m.sender for m in repo.messages]
    assert senders == [Sender.USER, Sender.AI]
    assert repo.chats[result.chat_id].last_message == "A.\nB.\nC."
    assert ledger.balances[1] == 0


async def test_unknown_user_is_not_found():
    service, repo, _, _ = _service(balances={})

    with pytest.raises(NotFound):
        await service.handle_send(42, None, "hello")
    assert repo.writes == 0


async def test_blank_message_is_a_validation_failure():
    service, repo, _, _ = _service()

    with pytest.raises(ValidationFailure):
        await service.handle_send(1, None, "   ")
    assert repo.writes == 0


async def test_new_chat_title_is_truncated_with_ellipsis():
    service, _, _, _ = _service()
    text = "x" * 60

    result = await service.handle_send(1, None, text)

    assert result.chat_title == "x" * 47 + "…"


async def test_existing_chat_is_reused_and_title_kept():
    service, repo, _, _ = _service(generator=ScriptedGenerator("UNCLEAR: one", "UNCLEAR: two"))

    first = await service.handle_send(1, None, "first question")
    second = await service.handle_send(1, first.chat_id, "a different second question")

    assert second.chat_id == first.chat_id
    assert second.chat_title == "first question"
    assert len(repo.chats) == 1
    assert len(repo.messages) == 4
    assert repo.chats[first.chat_id].last_message == "two"


async def test_foreign_chat_id_starts_a_new_chat():
    service, repo, _, _ = _service(
        balances={1: 5, 2: 5}, generator=ScriptedGenerator("UNCLEAR: a", "UNCLEAR: b")
    )
    mine = await service.handle_send(1, None, "mine")

    theirs = await service.handle_send(2, mine.chat_id, "trying someone else's chat")

    assert theirs.chat_id != mine.chat_id
    assert repo.chats[mine.chat_id].last_message == "a"


async def test_stateless_mode_sends_only_the_current_message():
    generator = ScriptedGenerator("UNCLEAR: a", "UNCLEAR: b")
    service, _, _, _ = _service(generator=generator)

    first = await service.handle_send(1, None, "hello")
    await service.handle_send(1, first.chat_id, "again")

    last_call = generator.calls[-1]
    assert last_call["prompt"] == "again"
    assert last_call["instruction"] == FORMATTING_INSTRUCTION
    assert last_call["history"] is None


async def test_history_mode_sends_prior_turns_oldest_first():
    generator = ScriptedGenerator("UNCLEAR: a", "UNCLEAR: b")
    service, _, _, _ = _service(generator=generator, prompt_mode="history")

    first = await service.handle_send(1, None, "hello")
    await service.handle_send(1, first.chat_id, "again")

    assert generator.calls[-1]["history"] == [
        HistoryEntry(sender="user", text="hello"),
        HistoryEntry(sender="ai", text="a"),
    ]


async def test_generation_failure_keeps_user_message_and_credit():
    service, repo, ledger, _ = _service(generator=ScriptedGenerator(error=GenerationFailure("Failed to generate response")))

    with pytest.raises(GenerationFailure) as exc_info:
        await service.handle_send(1, None, "hello")

    assert exc_info.value.payload() == {"msg": "Chat error", "error": "Failed to generate response"}
    assert [m.sender for m in repo.messages] == [Sender.USER]
    assert ledger.balances[1] == 5


async def test_generation_failure_is_compensated_when_enabled():
    service, repo, ledger, _ = _service(
        generator=ScriptedGenerator(error=GenerationFailure("Failed to generate response")),
        compensate_failed_exchange=True,
    )

    with pytest.raises(GenerationFailure):
        await service.handle_send(1, None, "hello")

    assert repo.messages == []
    assert repo.chats == {}
    assert ledger.balances[1] == 5


async def test_compensation_keeps_an_existing_chat():
    generator = ScriptedGenerator("UNCLEAR: a")
    service, repo, _, _ = _service(generator=generator, compensate_failed_exchange=True)
    first = await service.handle_send(1, None, "hello")

    generator.error = GenerationFailure("Failed to generate response")
    with pytest.raises(GenerationFailure):
        await service.handle_send(1, first.chat_id, "again")

    assert first.chat_id in repo.chats
    assert [m.text for m in repo.messages] == ["hello", "a"]


async def test_empty_generation_is_a_failure():
    service, repo, ledger, _ = _service(generator=ScriptedGenerator())

    with pytest.raises(GenerationFailure):
        await service.handle_send(1, None, "hello")
    assert ledger.balances[1] == 5


async def test_slow_provider_times_out():
    service, _, ledger, _ = _service(
        generator=ScriptedGenerator("UNCLEAR: late", delay=0.5), generation_timeout=0.01
    )

    with pytest.raises(GenerationFailure) as exc_info:
        await service.handle_send(1, None, "hello")
    assert exc_info.value.cause == "AI provider timed out"
    assert ledger.balances[1] == 5


async def test_unlabelled_reply_is_stored_as_fallback():
    service, repo, _, _ = _service(generator=ScriptedGenerator("banana"))

    result = await service.handle_send(1, None, "hello")

    assert result.reply_text.startswith("UNCLEAR: Please provide a clear request")
    assert repo.messages[-1].text == result.reply_text


async def test_compensation_error_does_not_mask_the_generation_failure():
    class BrokenDeleteRepository(InMemoryConversationRepository):
        async def delete_message(self, message_id):
            raise OperationalError("database is locked")

    repo = BrokenDeleteRepository()
    service = MessageExchangeService(
        repo,
        InMemoryCreditLedger({1: 5}),
        ScriptedGenerator(error=GenerationFailure("AI provider quota exceeded")),
        compensate_failed_exchange=True,
        clock=_clock(),
    )

    with pytest.raises(GenerationFailure) as exc_info:
        await service.handle_send(1, None, "hello")

    assert exc_info.value.cause == "AI provider quota exceeded"
    assert [m.text for m in repo.messages] == ["hello"]


class DrainingGenerator(ScriptedGenerator):
    """Spends the caller's last credit elsewhere while the reply is being generated."""

    def __init__(self, user_id, *replies):
        super().__init__(*replies)
        self.user_id = user_id

    async def generate(self, prompt_text, formatting_instruction, history=None):
        await User.filter(id=self.user_id).update(credits=0)
        return await super().generate(prompt_text, formatting_instruction, history)


def _stored_service(generator):
    return MessageExchangeService(
        TortoiseConversationRepository(), TortoiseCreditLedger(), generator, clock=_clock()
    )


async def test_stored_exchange_commits_reply_summary_and_credit(make_user):
    user = await make_user(credits=1)
    service = _stored_service(ScriptedGenerator("PARAGRAPHS: Done. Bye"))

    result = await service.handle_send(user.id, None, "hello")

    assert result.remaining_credits == 0
    stored = await Message.filter(chat_id=result.chat_id).order_by("id")
    assert [(m.sender, m.text) for m in stored] == [(Sender.USER, "hello"), (Sender.AI, "Done.\nBye.")]
    chat = await Chat.get(id=result.chat_id)
    assert chat.last_message == "Done.\nBye."
    await user.refresh_from_db()
    assert user.credits == 0


async def test_balance_drained_mid_flight_rolls_back_the_reply(make_user):
    user = await make_user(credits=1)
    service = _stored_service(DrainingGenerator(user.id, "UNCLEAR: too late"))

    with pytest.raises(InsufficientCredits):
        await service.handle_send(user.id, None, "hello")

    chat = await Chat.get(user_id=user.id)
    stored = await Message.filter(chat_id=chat.id).order_by("id")
    assert [(m.sender, m.text) for m in stored] == [(Sender.USER, "hello")]
    assert chat.last_message == "hello"
    await user.refresh_from_db()
    assert user.credits == 0
