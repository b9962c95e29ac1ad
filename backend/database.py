import logging
from motor.motor_asyncio import AsyncIOMotorClient
from pymongo import IndexModel, ReturnDocument
from config import settings

logger = logging.getLogger(__name__)

# Requests still pending that are attributed to a vendor (vendor_id is null otherwise)
PENDING_VENDOR_REQUEST = {"status": "pending", "vendor_id": {"$gt": 0}}

client: AsyncIOMotorClient = None
_db_instance = None


class _DbProxy:
    """
    Transparent proxy to the Motor database.
    Lets services do `from database import db` BEFORE connect_db().
    db.collection is resolved against _db_instance at call time.
    """
    def __getattr__(self, name):
        if _db_instance is None:
            raise RuntimeError("Database not connected. Call connect_db() first.")
        return getattr(_db_instance, name)

    def __getitem__(self, name):
        if _db_instance is None:
            raise RuntimeError("Database not connected. Call connect_db() first.")
        return _db_instance[name]


db = _DbProxy()


async def connect_db():
    global client, _db_instance
    client = AsyncIOMotorClient(
        settings.MONGO_URL,
        serverSelectionTimeoutMS=5000,
        connectTimeoutMS=10000,
    )
    _db_instance = client[settings.DB_NAME]
    logger.info(f"Connected to MongoDB: {settings.DB_NAME}")
    try:
        await create_indexes()
    except Exception as e:
        logger.warning(f"Could not create indexes (non-blocking): {e}")


async def close_db():
    global client, _db_instance
    if client:
        client.close()
        logger.info("MongoDB connection closed")
    client = None
    _db_instance = None


async def next_id(name: str) -> int:
    """Allocates the next integer id of a collection from the `counters` sequence."""
    counter = await db.counters.find_one_and_update(
        {"_id": name},
        {"$inc": {"seq": 1}},
        upsert=True,
        return_document=ReturnDocument.AFTER,
    )
    return int(counter["seq"])


async def create_indexes():
    collections_to_index = {
        "users": [
            IndexModel([("id", 1)], unique=True),
            IndexModel([("type", 1)]),
        ],
        "vendors": [
            IndexModel([("id", 1)], unique=True),
            IndexModel([("user_id", 1)]),
        ],
        "wallets": [
            IndexModel([("id", 1)], unique=True),
            IndexModel([("user_id", 1)], unique=True),
        ],
        "transactions": [
            IndexModel([("id", 1)], unique=True),
            IndexModel([("wallet_id", 1)]),
            IndexModel([("created_at", -1)]),
        ],
        "cash_out_requests": [
            IndexModel([("id", 1)], unique=True),
            IndexModel([("user_id", 1)]),
            IndexModel([("vendor_id", 1), ("status", 1)]),
            IndexModel(
                [("vendor_id", 1)],
                name="one_pending_request_per_vendor",
                unique=True,
                partialFilterExpression=PENDING_VENDOR_REQUEST,
            ),
            IndexModel([("status", 1)]),
            IndexModel([("created_at", -1)]),
        ],
        "orders": [
            IndexModel([("vendor_id", 1), ("status", 1)]),
        ],
    }

    for collection_name, index_models in collections_to_index.items():
        try:
            await _db_instance[collection_name].create_indexes(index_models)
            logger.info(f"Indexes created for collection: {collection_name}")
        except Exception as e:
            logger.error(f"Failed to create indexes for collection {collection_name}: {e}")

    logger.info("All MongoDB indexes creation attempts completed.")
