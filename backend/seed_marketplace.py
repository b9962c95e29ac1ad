import asyncio
import os
import sys
from datetime import datetime, timezone

sys.path.append(os.path.dirname(os.path.abspath(__file__)))
from core.security import create_access_token
from database import db, connect_db, close_db, next_id

# Local test accounts
TEST_USERS = [
    {"name": "Admin",          "type": "admin",        "phone_number": "+251900000000", "email": "admin@zareshop.com"},
    {"name": "Abebe (Client)", "type": "client",       "phone_number": "+251900000001", "email": "client@zareshop.com"},
    {"name": "Sara (Vendor)",  "type": "vendor_owner", "phone_number": "+251900000002", "email": "vendor@zareshop.com"},
    {"name": "Dawit (Driver)", "type": "driver",       "phone_number": "+251900000003", "email": "driver@zareshop.com"},
]

STARTING_BALANCE = {"client": 100.0, "vendor_owner": 500.0, "driver": 250.0}


async def seed_marketplace():
    await connect_db()
    now = datetime.now(timezone.utc)

    print("\n---------- ACCOUNTS ------------")
    for u in TEST_USERS:
        existing = await db.users.find_one({"email": u["email"]}, {"_id": 0})
        if existing:
            print(f"⏩ {u['type'].upper()} ({u['email']}) already exists.")
            user_id = existing["id"]
        else:
            user_id = await next_id("users")
            await db.users.insert_one({
                "id":         user_id,
                **u,
                "is_active":  True,
                "created_at": now,
                "updated_at": now,
            })
            print(f"✅ Created: {u['type'].upper():<13} -> id={user_id} ({u['name']})")

        balance = STARTING_BALANCE.get(u["type"])
        if balance is not None and not await db.wallets.find_one({"user_id": user_id}):
            await db.wallets.insert_one({
                "id":         await next_id("wallets"),
                "user_id":    user_id,
                "balance":    balance,
                "status":     "active",
                "currency":   "ETB",
                "created_at": now,
                "updated_at": now,
            })

        if u["type"] == "vendor_owner" and not await db.vendors.find_one({"user_id": user_id}):
            vendor_id = await next_id("vendors")
            await db.vendors.insert_one({
                "id":         vendor_id,
                "user_id":    user_id,
                "name":       "Sara's Boutique",
                "type":       "shop",
                "created_at": now,
            })
            for total in (120.0, 80.5, 300.0):
                await db.orders.insert_one({
                    "id":           await next_id("orders"),
                    "vendor_id":    vendor_id,
                    "status":       "completed",
                    "total_amount": total,
                    "created_at":   now,
                })

        token = create_access_token({"sub": str(user_id)})
        print(f"   token {u['type']}: {token}")

    print("\n-------------------------------")
    print("🚀 DONE")
    await close_db()

if __name__ == "__main__":
    asyncio.run(seed_marketplace())
