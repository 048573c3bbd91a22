"""Tests for the takeover and customization flows."""

from datetime import timedelta
from decimal import Decimal

import pytest

from app.domain.alpaca import AccessoryType, InvalidBidError, SYSTEM_OWNER
from app.services.alpaca_service import (
    AlpacaService,
    AlpacaNotFoundError,
    CooldownLockedError,
    ForbiddenError,
    PaymentVerificationError,
    BidLimitExceededError,
    PaymentUnavailableError,
)
from tests.conftest import FakePaymentGateway


async def take_over(service, owner="Alice", amount="150", password="p1", **kwargs):
    return await service.bid_on_alpaca(
        alpaca_id=1,
        amount=Decimal(amount),
        new_owner=owner,
        password=password,
        **kwargs
    )


@pytest.mark.asyncio
async def test_takeover_scenario(service, store, clock):
    """System -> Alice, locked retry, then Bob once the cooldown expires."""
    result = await take_over(service, "Alice", "150", "p1")

    assert result.valuation == Decimal("150")
    assert result.owner_name == "Alice"
    assert len(result.ledger) == 1
    assert result.ledger[0].previous_owner_name == SYSTEM_OWNER
    assert result.ledger[0].new_owner_name == "Alice"
    assert result.ledger[0].settled_amount == Decimal("150")

    with pytest.raises(CooldownLockedError):
        await take_over(service, "Bob", "200", "p2")

    clock.advance(minutes=5, seconds=1)
    result = await take_over(service, "Bob", "200", "p2")

    assert len(result.ledger) == 2
    assert result.ledger[0].new_owner_name == "Bob"
    assert result.ledger[1].new_owner_name == "Alice"
    assert result.display_name == "Alpaca #1"
    assert store.save_calls == 2


@pytest.mark.asyncio
async def test_unknown_alpaca(service, store):
    with pytest.raises(AlpacaNotFoundError) as exc_info:
        await service.bid_on_alpaca(99, Decimal("150"), "Alice", "p1")

    assert exc_info.value.alpaca_id == 99
    assert store.save_calls == 0


@pytest.mark.asyncio
async def test_cooldown_boundary(service, store, clock):
    await take_over(service)
    transferred_at = clock()

    clock.now = transferred_at + timedelta(minutes=5) - timedelta(milliseconds=1)
    with pytest.raises(CooldownLockedError) as exc_info:
        await take_over(service, "Bob", "200")
    assert exc_info.value.remaining_seconds == 1

    clock.now = transferred_at + timedelta(minutes=5)
    result = await take_over(service, "Bob", "200")
    assert result.owner_name == "Bob"
    assert result.last_transfer_at == clock.now


@pytest.mark.asyncio
async def test_cooldown_remaining_seconds_are_rounded_up(service, clock):
    await take_over(service)

    clock.advance(seconds=30, milliseconds=500)
    with pytest.raises(CooldownLockedError) as exc_info:
        await take_over(service, "Bob", "200")

    assert exc_info.value.remaining_seconds == 270
    assert "270 seconds" in str(exc_info.value)


@pytest.mark.asyncio
async def test_lock_is_reported_before_bid_amount(service, clock):
    await take_over(service, amount="150")

    with pytest.raises(CooldownLockedError):
        await take_over(service, "Bob", "10")


@pytest.mark.asyncio
@pytest.mark.parametrize("amount", ["100", "99.99"])
async def test_losing_bid_is_not_persisted(service, store, amount):
    before = await store.get_by_id(1)

    with pytest.raises(InvalidBidError) as exc_info:
        await take_over(service, amount=amount)

    assert exc_info.value.amount == Decimal(amount)
    assert exc_info.value.current_value == Decimal("100.00")
    assert store.save_calls == 0
    assert await store.get_by_id(1) == before


@pytest.mark.asyncio
async def test_password_is_stored_hashed(service, hasher):
    result = await take_over(service, password="hunter2")

    assert result.owner_secret_hash != "hunter2"
    assert "hunter2" not in result.owner_secret_hash
    assert hasher.verify("hunter2", result.owner_secret_hash)


@pytest.mark.asyncio
async def test_storage_failure_propagates(service, store):
    store.fail_on_save = RuntimeError("database is down")

    with pytest.raises(RuntimeError, match="database is down"):
        await take_over(service)

    stored = await store.get_by_id(1)
    assert stored.owner_name == SYSTEM_OWNER
    assert stored.ledger == []


@pytest.mark.asyncio
async def test_unverified_bid_above_beta_cap(service, store):
    with pytest.raises(BidLimitExceededError):
        await take_over(service, amount="1000000.01")

    assert store.save_calls == 0


@pytest.mark.asyncio
async def test_verified_payment_lifts_beta_cap(store, hasher, clock):
    gateway = FakePaymentGateway(verified=True)
    service = AlpacaService(store, hasher, payment_gateway=gateway, clock=clock)

    result = await take_over(service, amount="2000000", payment_token="pi_123")

    assert result.valuation == Decimal("2000000")
    assert gateway.verified_references == ["pi_123"]


@pytest.mark.asyncio
async def test_failed_payment_blocks_takeover(store, hasher, clock):
    gateway = FakePaymentGateway(verified=False)
    service = AlpacaService(store, hasher, payment_gateway=gateway, clock=clock)

    with pytest.raises(PaymentVerificationError):
        await take_over(service, payment_token="pi_declined")

    assert store.save_calls == 0


@pytest.mark.asyncio
async def test_gateway_without_token_falls_back_to_beta_cap(store, hasher, clock):
    gateway = FakePaymentGateway(verified=True)
    service = AlpacaService(store, hasher, payment_gateway=gateway, clock=clock)

    result = await take_over(service, amount="150")
    assert result.owner_name == "Alice"
    assert gateway.verified_references == []

    clock.advance(minutes=10)
    with pytest.raises(BidLimitExceededError):
        await take_over(service, "Bob", amount="5000000")


@pytest.mark.asyncio
async def test_system_alpaca_customizable_without_password(service):
    result = await service.customize_alpaca(1, None, {"display_name": "Fluffy"})

    assert result.display_name == "Fluffy"
    assert result.owner_name == SYSTEM_OWNER


@pytest.mark.asyncio
@pytest.mark.parametrize("password, reason", [(None, "missing"), ("", "missing"), ("wrong", "mismatch")])
async def test_owned_alpaca_rejects_bad_password(service, store, password, reason):
    await take_over(service, password="p1")
    saves = store.save_calls

    with pytest.raises(ForbiddenError) as exc_info:
        await service.customize_alpaca(1, password, {"display_name": "Hijacked"})

    assert exc_info.value.reason == reason
    assert str(exc_info.value) == "Access denied"
    assert store.save_calls == saves
    assert (await store.get_by_id(1)).display_name == "Alpaca #1"


@pytest.mark.asyncio
async def test_owner_customizes_only_supplied_fields(service, clock):
    taken = await take_over(service, password="p1")
    clock.advance(minutes=1)

    result = await service.customize_alpaca(1, "p1", {
        "coat_color": "Pink",
        "accessory": AccessoryType.GOLD_CHAIN,
    })

    assert result.coat_color == "Pink"
    assert result.accessory == AccessoryType.GOLD_CHAIN
    assert result.display_name == taken.display_name
    assert result.pen_color == taken.pen_color
    assert result.valuation == taken.valuation
    assert result.owner_name == taken.owner_name
    assert result.owner_secret_hash == taken.owner_secret_hash
    assert result.last_transfer_at == taken.last_transfer_at
    assert result.ledger == taken.ledger


@pytest.mark.asyncio
async def test_customization_locks_the_row(service, store):
    """Customization loads the alpaca the same way a bid does"""
    await take_over(service, password="p1")
    store.locked_loads.clear()

    await service.customize_alpaca(1, "p1", {"display_name": "Mine"})

    assert store.locked_loads == [1]


@pytest.mark.asyncio
async def test_customize_unknown_alpaca(service):
    with pytest.raises(AlpacaNotFoundError):
        await service.customize_alpaca(42, None, {"display_name": "Ghost"})


@pytest.mark.asyncio
async def test_list_and_get(service):
    alpacas = await service.list_alpacas()
    assert [a.id for a in alpacas] == [1]

    alpaca = await service.get_alpaca(1)
    assert alpaca.valuation == Decimal("100.00")

    with pytest.raises(AlpacaNotFoundError):
        await service.get_alpaca(2)


@pytest.mark.asyncio
async def test_cooldown_remaining_and_locked_until(service, clock):
    alpaca = await service.get_alpaca(1)
    assert service.cooldown_remaining(alpaca) == 0

    taken = await take_over(service)
    assert service.cooldown_remaining(taken) == 300
    assert service.locked_until(taken) == clock() + timedelta(minutes=5)


@pytest.mark.asyncio
async def test_payment_intent_requires_gateway(service):
    with pytest.raises(PaymentUnavailableError):
        await service.create_payment_intent(1, Decimal("150"), "Alice")


@pytest.mark.asyncio
async def test_payment_intent(store, hasher, clock):
    gateway = FakePaymentGateway()
    service = AlpacaService(store, hasher, payment_gateway=gateway, clock=clock)

    intent = await service.create_payment_intent(1, Decimal("150"), "Alice")

    assert intent == {"client_secret": "pi_test_secret_abc", "payment_intent_id": "pi_test"}
    assert gateway.intents == [{"amount": Decimal("150"), "alpaca_id": "1", "bidder": "Alice"}]

    with pytest.raises(InvalidBidError):
        await service.create_payment_intent(1, Decimal("100"), "Alice")
