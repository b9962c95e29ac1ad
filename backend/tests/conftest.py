"""
Shared fixtures.

Storage runs on mongomock's in-process MongoDB engine. Motor exposes the same
collection API as pymongo with awaitable methods, so a thin async adapter is
enough to put mongomock behind `database.db`.
"""
from datetime import datetime, timezone

import httpx
import mongomock
import pytest
from pymongo import ReturnDocument

import database
from core.rate_limit import limiter
from core.security import create_access_token


class AsyncCursor:
    def __init__(self, cursor):
        self._cursor = cursor

    def sort(self, *args, **kwargs):
        self._cursor = self._cursor.sort(*args, **kwargs)
        return self

    def skip(self, count):
        self._cursor = self._cursor.skip(count)
        return self

    def limit(self, count):
        self._cursor = self._cursor.limit(count)
        return self

    async def to_list(self, length=None):
        docs = list(self._cursor)
        return docs if length is None else docs[:length]


class AsyncCollection:
    def __init__(self, collection):
        self._collection = collection

    def find(self, *args, **kwargs):
        return AsyncCursor(self._collection.find(*args, **kwargs))

    def aggregate(self, pipeline, **kwargs):
        return AsyncCursor(self._collection.aggregate(pipeline, **kwargs))

    async def find_one_and_update(self, filter, update, projection=None, upsert=False,
                                  return_document=ReturnDocument.BEFORE, **kwargs):
        # mongomock re-applies `filter` to fetch the AFTER document, which misses
        # as soon as the update changes a filtered field. Read it back by _id.
        if return_document is not ReturnDocument.AFTER:
            return self._collection.find_one_and_update(
                filter, update, projection=projection, upsert=upsert, **kwargs
            )
        before = self._collection.find_one_and_update(filter, update, upsert=upsert, **kwargs)
        if before is None:
            return self._collection.find_one(filter, projection) if upsert else None
        return self._collection.find_one({"_id": before["_id"]}, projection)

    def __getattr__(self, name):
        method = getattr(self._collection, name)

        async def _call(*args, **kwargs):
            return method(*args, **kwargs)
        return _call


class AsyncDatabase:
    def __init__(self, mongo_db):
        self._db = mongo_db
        self._collections = {}

    def __getitem__(self, name):
        if name not in self._collections:
            self._collections[name] = AsyncCollection(self._db[name])
        return self._collections[name]

    def __getattr__(self, name):
        if name.startswith("_"):
            raise AttributeError(name)
        return self[name]


@pytest.fixture(autouse=True)
def no_rate_limit(monkeypatch):
    monkeypatch.setattr(limiter, "enabled", False)


@pytest.fixture
def mongo(monkeypatch):
    raw = mongomock.MongoClient()["zareshop_test"]
    # The unique indexes the services rely on (see database.create_indexes)
    raw.wallets.create_index("user_id", unique=True)
    raw.cash_out_requests.create_index(
        "vendor_id",
        name="one_pending_request_per_vendor",
        unique=True,
        partialFilterExpression=database.PENDING_VENDOR_REQUEST,
    )
    fake = AsyncDatabase(raw)
    monkeypatch.setattr(database, "_db_instance", fake)
    return fake


@pytest.fixture
async def client(mongo):
    from main import app
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


# ── Factories ─────────────────────────────────────────────────────────────────
@pytest.fixture
def make_user(mongo):
    async def _make(user_type: str = "client", name: str = "Test User", balance=None, is_active: bool = True):
        now = datetime.now(timezone.utc)
        user = {
            "id":           await database.next_id("users"),
            "name":         name,
            "phone_number": "+251911000000",
            "email":        f"{user_type}@example.com",
            "type":         user_type,
            "is_active":    is_active,
            "created_at":   now,
            "updated_at":   now,
        }
        await mongo.users.insert_one(user)
        if balance is not None:
            await mongo.wallets.insert_one({
                "id":         await database.next_id("wallets"),
                "user_id":    user["id"],
                "balance":    float(balance),
                "status":     "active",
                "currency":   "ETB",
                "created_at": now,
                "updated_at": now,
            })
        user.pop("_id", None)
        return user
    return _make


@pytest.fixture
def make_vendor(mongo, make_user):
    async def _make(balance=None, name: str = "Sara's Boutique"):
        owner = await make_user("vendor_owner", name="Vendor Owner", balance=balance)
        vendor = {
            "id":         await database.next_id("vendors"),
            "user_id":    owner["id"],
            "name":       name,
            "type":       "shop",
            "created_at": datetime.now(timezone.utc),
        }
        await mongo.vendors.insert_one(vendor)
        vendor.pop("_id", None)
        return vendor, owner
    return _make


@pytest.fixture
def make_order(mongo):
    async def _make(vendor_id: int, total_amount: float, status: str = "completed"):
        await mongo.orders.insert_one({
            "id":           await database.next_id("orders"),
            "vendor_id":    vendor_id,
            "status":       status,
            "total_amount": total_amount,
            "created_at":   datetime.now(timezone.utc),
        })
    return _make


def auth(user: dict) -> dict:
    return {"Authorization": f"Bearer {create_access_token({'sub': str(user['id'])})}"}


async def balance_of(mongo, user_id: int) -> float:
    wallet = await mongo.wallets.find_one({"user_id": user_id})
    return wallet["balance"]
