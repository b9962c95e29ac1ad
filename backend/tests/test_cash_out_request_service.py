import asyncio
import math

import pytest

from conftest import balance_of
from core.exceptions import (
    DuplicatePendingRequest, InsufficientBalance, InvalidInput, InvalidStateTransition, NotFound,
    UserNotFound, WalletNotFound,
)
from services import cash_out_request_service as engine
from services.wallet_service import credit_wallet


# ── create_request ────────────────────────────────────────────────────────────
async def test_create_request_is_pending_without_touching_the_wallet(mongo, make_user):
    user = await make_user(balance=100)

    request = await engine.create_request(user["id"], 50.0, "rent")

    assert request["status"] == "pending"
    assert request["amount"] == 50.0
    assert request["reason"] == "rent"
    assert request["vendor_id"] is None
    assert request["user"]["id"] == user["id"]
    assert request["user"]["name"] == user["name"]
    assert await balance_of(mongo, user["id"]) == 100.0


async def test_create_request_defaults_reason(make_user):
    user = await make_user(balance=10)
    request = await engine.create_request(user["id"], 5)
    assert request["reason"] == "Cashout request"


async def test_create_request_attributes_vendor_owner(make_vendor):
    vendor, owner = await make_vendor(balance=200)
    request = await engine.create_request(owner["id"], 20)
    assert request["vendor_id"] == vendor["id"]


@pytest.mark.parametrize("amount", [0, -5, None])
async def test_create_request_rejects_invalid_amount(make_user, amount):
    user = await make_user(balance=100)
    with pytest.raises(InvalidInput):
        await engine.create_request(user["id"], amount)


async def test_create_request_unknown_user(mongo):
    with pytest.raises(UserNotFound):
        await engine.create_request(999, 10)


async def test_create_request_requires_wallet(make_user):
    user = await make_user()
    with pytest.raises(WalletNotFound) as exc:
        await engine.create_request(user["id"], 10)
    assert exc.value.status_code == 400


async def test_create_request_insufficient_balance_reports_amounts(mongo, make_user):
    user = await make_user(balance=30)

    with pytest.raises(InsufficientBalance) as exc:
        await engine.create_request(user["id"], 50)

    assert exc.value.to_dict() == {
        "detail": "Insufficient balance",
        "current_balance": 30.0,
        "requested_amount": 50.0,
    }
    assert await mongo.cash_out_requests.count_documents({}) == 0


# ── approve_request ───────────────────────────────────────────────────────────
async def test_approve_debits_wallet_and_writes_one_ledger_entry(mongo, make_user):
    user = await make_user(balance=100)
    request = await engine.create_request(user["id"], 50.0, "rent")

    result = await engine.approve_request(request["id"])

    assert result["request"]["status"] == "approved"
    assert result["wallet"]["balance"] == 50.0
    assert await balance_of(mongo, user["id"]) == 50.0

    tx = result["transaction"]
    assert tx["type"] == "debit"
    assert tx["amount"] == 50.0
    assert tx["status"] == "completed"
    assert tx["wallet_id"] == result["wallet"]["id"]
    assert tx["reason"] == "Cashout request approved - rent"
    assert await mongo.transactions.count_documents({}) == 1


async def test_approve_unknown_request(mongo):
    with pytest.raises(NotFound):
        await engine.approve_request(42)


async def test_terminal_requests_cannot_transition_again(mongo, make_user):
    user = await make_user(balance=100)
    request = await engine.create_request(user["id"], 10)
    await engine.approve_request(request["id"])

    with pytest.raises(InvalidStateTransition) as exc:
        await engine.reject_request(request["id"])
    assert str(exc.value) == "Cashout request cannot be rejected. Current status: approved"
    assert exc.value.current_status == "approved"

    with pytest.raises(InvalidStateTransition):
        await engine.approve_request(request["id"])

    assert await balance_of(mongo, user["id"]) == 90.0
    assert await mongo.transactions.count_documents({}) == 1


async def test_approve_rechecks_balance_at_commit(mongo, make_user):
    user = await make_user(balance=100)
    request = await engine.create_request(user["id"], 80)
    await mongo.wallets.update_one({"user_id": user["id"]}, {"$set": {"balance": 40.0}})

    with pytest.raises(InsufficientBalance) as exc:
        await engine.approve_request(request["id"])

    assert exc.value.current_balance == 40.0
    assert exc.value.requested_amount == 80.0
    assert await balance_of(mongo, user["id"]) == 40.0
    assert (await engine.get_request(request["id"]))["status"] == "pending"
    assert await mongo.transactions.count_documents({}) == 0


async def test_over_admission_is_settled_at_approval(mongo, make_user):
    user = await make_user(balance=100)
    first, second = await asyncio.gather(
        engine.create_request(user["id"], 60),
        engine.create_request(user["id"], 60),
    )
    assert first["status"] == second["status"] == "pending"

    await engine.approve_request(first["id"])
    assert await balance_of(mongo, user["id"]) == 40.0

    with pytest.raises(InsufficientBalance):
        await engine.approve_request(second["id"])

    rejected = await engine.reject_request(second["id"], "insufficient funds")
    assert rejected["status"] == "rejected"
    assert await balance_of(mongo, user["id"]) == 40.0


async def test_concurrent_approvals_never_overdraw(mongo, make_user):
    user = await make_user(balance=100)
    first = await engine.create_request(user["id"], 60)
    second = await engine.create_request(user["id"], 60)

    results = await asyncio.gather(
        engine.approve_request(first["id"]),
        engine.approve_request(second["id"]),
        return_exceptions=True,
    )

    failures = [r for r in results if isinstance(r, Exception)]
    assert len(failures) == 1
    assert isinstance(failures[0], InsufficientBalance)
    assert await balance_of(mongo, user["id"]) == 40.0
    assert await mongo.transactions.count_documents({}) == 1


# ── atomicity ─────────────────────────────────────────────────────────────────
async def test_failed_ledger_insert_rolls_back_and_retry_succeeds_once(mongo, make_user, monkeypatch):
    user = await make_user(balance=100)
    request = await engine.create_request(user["id"], 50)

    real_record = engine.record_transaction
    calls = {"n": 0}

    async def flaky_record(*args, **kwargs):
        calls["n"] += 1
        if calls["n"] == 1:
            raise RuntimeError("ledger unavailable")
        return await real_record(*args, **kwargs)

    monkeypatch.setattr(engine, "record_transaction", flaky_record)

    with pytest.raises(RuntimeError):
        await engine.approve_request(request["id"])

    assert (await engine.get_request(request["id"]))["status"] == "pending"
    assert await balance_of(mongo, user["id"]) == 100.0
    assert await mongo.transactions.count_documents({}) == 0

    result = await engine.approve_request(request["id"])

    assert result["request"]["status"] == "approved"
    assert await balance_of(mongo, user["id"]) == 50.0
    assert await mongo.transactions.count_documents({}) == 1


async def test_failed_debit_restores_pending_status(mongo, make_user, monkeypatch):
    user = await make_user(balance=100)
    request = await engine.create_request(user["id"], 50)

    async def broken_debit(wallet_id, amount):
        raise RuntimeError("wallet write failed")

    monkeypatch.setattr(engine, "debit_balance", broken_debit)

    with pytest.raises(RuntimeError):
        await engine.approve_request(request["id"])

    assert (await engine.get_request(request["id"]))["status"] == "pending"
    assert await balance_of(mongo, user["id"]) == 100.0
    assert await mongo.transactions.count_documents({}) == 0


# ── reject_request ────────────────────────────────────────────────────────────
async def test_reject_keeps_original_reason_without_wallet_effect(mongo, make_user):
    user = await make_user(balance=100)
    request = await engine.create_request(user["id"], 30, "school fees")

    rejected = await engine.reject_request(request["id"])

    assert rejected["status"] == "rejected"
    assert rejected["reason"] == "school fees"
    assert await balance_of(mongo, user["id"]) == 100.0
    assert await mongo.transactions.count_documents({}) == 0


async def test_reject_replaces_reason(make_user):
    user = await make_user(balance=100)
    request = await engine.create_request(user["id"], 30, "school fees")
    rejected = await engine.reject_request(request["id"], "missing documents")
    assert rejected["reason"] == "missing documents"


async def test_rejected_request_cannot_be_approved(make_user):
    user = await make_user(balance=100)
    request = await engine.create_request(user["id"], 30)
    await engine.reject_request(request["id"])

    with pytest.raises(InvalidStateTransition) as exc:
        await engine.approve_request(request["id"])
    assert str(exc.value) == "Cashout request cannot be approved. Current status: rejected"


# ── queries ───────────────────────────────────────────────────────────────────
async def test_get_request_attaches_requester_and_vendor(make_vendor):
    vendor, owner = await make_vendor(balance=100)
    request = await engine.create_request(owner["id"], 10)

    found = await engine.get_request(request["id"])

    assert found["user"]["id"] == owner["id"]
    assert found["vendor"] == {"id": vendor["id"], "name": vendor["name"], "type": "shop"}


async def test_get_unknown_request(mongo):
    with pytest.raises(NotFound):
        await engine.get_request(7)


async def test_list_requests_pagination_and_order(make_user):
    user = await make_user(balance=1000)
    created = [await engine.create_request(user["id"], 10 + i) for i in range(5)]

    seen = []
    for page in (1, 2, 3):
        items, pagination = await engine.list_requests(page=page, limit=2)
        assert len(items) <= 2
        assert pagination == {"page": page, "limit": 2, "total": 5, "pages": math.ceil(5 / 2)}
        seen.extend(item["id"] for item in items)

    assert seen == [r["id"] for r in reversed(created)]


async def test_list_requests_filters(make_user):
    alice = await make_user(balance=100, name="Alice")
    bob = await make_user(balance=100, name="Bob")
    a1 = await engine.create_request(alice["id"], 10)
    await engine.create_request(alice["id"], 20)
    await engine.create_request(bob["id"], 30)
    await engine.reject_request(a1["id"])

    items, pagination = await engine.list_requests(user_id=alice["id"], status="pending")
    assert pagination["total"] == 1
    assert items[0]["amount"] == 20.0
    assert "user" not in items[0]

    items, pagination = await engine.list_requests(status="pending")
    assert pagination["total"] == 2
    assert {item["user"]["name"] for item in items} == {"Alice", "Bob"}


async def test_whole_balance_can_be_withdrawn_after_cent_credits(mongo, make_user):
    user = await make_user(balance=0.7)
    await credit_wallet(user["id"], 0.1)

    request = await engine.create_request(user["id"], 0.8)
    result = await engine.approve_request(request["id"])

    assert result["wallet"]["balance"] == 0.0
    assert await balance_of(mongo, user["id"]) == 0.0


async def test_vendor_owner_keeps_one_pending_request(mongo, make_vendor):
    _vendor, owner = await make_vendor(balance=100)
    first = await engine.create_request(owner["id"], 10)

    with pytest.raises(DuplicatePendingRequest) as exc:
        await engine.create_request(owner["id"], 10)

    assert exc.value.to_dict()["pending_request_id"] == first["id"]
    assert await mongo.cash_out_requests.count_documents({}) == 1
