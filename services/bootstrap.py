# services/bootstrap.py
from fastapi import Request

from services.conversation_repository import TortoiseConversationRepository
from services.credit_ledger import TortoiseCreditLedger
from services.generation_client import build_generation_client
from services.message_exchange import MessageExchangeService


def build_services(app, settings, generator=None) -> None:
    """Construct the collaborators once at startup and hang them on app.state."""
    repository = TortoiseConversationRepository(history_limit=settings.history_limit)
    ledger = TortoiseCreditLedger()
    generator = generator or build_generation_client(settings)

    app.state.settings = settings
    app.state.conversations = repository
    app.state.ledger = ledger
    app.state.exchange_service = MessageExchangeService(
        repository=repository,
        ledger=ledger,
        generator=generator,
        prompt_mode=settings.prompt_mode,
        generation_timeout=settings.generation_timeout,
        compensate_failed_exchange=settings.compensate_failed_exchange,
    )


def get_exchange_service(request: Request) -> MessageExchangeService:
    return request.app.state.exchange_service


def get_conversations(request: Request) -> TortoiseConversationRepository:
    return request.app.state.conversations


def get_ledger(request: Request) -> TortoiseCreditLedger:
    return request.app.state.ledger
