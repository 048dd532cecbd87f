import asyncio

import pytest
from tortoise.transactions import in_transaction

from helper.error_handling import InsufficientCredits, NotFound
from models.user import DEFAULT_CREDITS, User
from services.credit_ledger import TortoiseCreditLedger


async def test_new_user_starts_with_default_credits(make_user):
    user = await User.create(username="fresh", email="fresh@example.com")
    assert user.credits == DEFAULT_CREDITS == 1250


async def test_check_reports_balance(make_user):
    user = await make_user(credits=3)

    check = await TortoiseCreditLedger().check_and_reserve(user.id)

    assert check.ok is True
    assert check.remaining == 3


@pytest.mark.parametrize("credits", [0, -2])
async def test_check_rejects_empty_or_negative_balance(make_user, credits):
    user = await make_user(credits=credits)

    check = await TortoiseCreditLedger().check_and_reserve(user.id)

    assert check.ok is False
    assert check.remaining == 0


async def test_unknown_user_is_not_found(db):
    ledger = TortoiseCreditLedger()
    with pytest.raises(NotFound):
        await ledger.check_and_reserve(404)
    with pytest.raises(NotFound):
        await ledger.balance(404)


async def test_decrement_takes_exactly_one(make_user):
    user = await make_user(credits=2)
    ledger = TortoiseCreditLedger()

    assert await ledger.decrement(user.id) == 1
    assert await ledger.decrement(user.id) == 0
    assert await ledger.balance(user.id) == 0


async def test_decrement_never_goes_below_zero(make_user):
    user = await make_user(credits=0)

    with pytest.raises(InsufficientCredits):
        await TortoiseCreditLedger().decrement(user.id)

    await user.refresh_from_db()
    assert user.credits == 0


async def test_racing_decrements_spend_the_last_credit_once(make_user):
    user = await make_user(credits=1)
    ledger = TortoiseCreditLedger()

    results = await asyncio.gather(
        ledger.decrement(user.id), ledger.decrement(user.id), return_exceptions=True
    )

    denied = [r for r in results if isinstance(r, InsufficientCredits)]
    spent = [r for r in results if not isinstance(r, Exception)]
    assert len(denied) == 1
    assert spent == [0]
    assert await ledger.balance(user.id) == 0


async def test_decrement_inside_rolled_back_transaction_is_undone(make_user):
    user = await make_user(credits=5)
    ledger = TortoiseCreditLedger()

    with pytest.raises(RuntimeError):
        async with in_transaction() as conn:
            assert await ledger.decrement(user.id, using_db=conn) == 4
            raise RuntimeError("abort")

    assert await ledger.balance(user.id) == 5
