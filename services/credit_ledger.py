# services/credit_ledger.py
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from tortoise.expressions import F

from helper.error_handling import InsufficientCredits, NotFound
from models.user import User


@dataclass(frozen=True)
class CreditCheck:
    ok: bool
    remaining: int


class CreditLedger(ABC):
    @abstractmethod
    async def check_and_reserve(self, user_id: int) -> CreditCheck:
        """ok=False (remaining=0) when the balance is 0 or less; NotFound for unknown users."""

    @abstractmethod
    async def decrement(self, user_id: int, using_db: Any = None) -> int:
        """Take exactly one credit and return the new balance; never goes below 0."""

    @abstractmethod
    async def balance(self, user_id: int) -> int:
        ...


class TortoiseCreditLedger(CreditLedger):
    async def _load(self, user_id: int, using_db: Any = None) -> User:
        user = await User.get_or_none(id=user_id, using_db=using_db)
        if user is None:
            raise NotFound("User not found")
        return user

    async def check_and_reserve(self, user_id):
        user = await self._load(user_id)
        if user.credits <= 0:
            return CreditCheck(ok=False, remaining=0)
        return CreditCheck(ok=True, remaining=user.credits)

    async def decrement(self, user_id, using_db=None):
        qs = User.filter(id=user_id, credits__gt=0)
        if using_db is not None:
            qs = qs.using_db(using_db)
        # single conditional UPDATE: two exchanges racing on the last credit cannot both win
        updated = await qs.update(credits=F("credits") - 1)
        if not updated:
            raise InsufficientCredits(remaining=0)
        user = await self._load(user_id, using_db)
        return user.credits

    async def balance(self, user_id):
        user = await self._load(user_id)
        return user.credits
