"""
Verify the key-value store is reachable with the configured REDIS_URL.

Writes, reads and deletes a scratch key. Run from the repo root:
    python backend/check_store.py
"""

import asyncio
import os
import sys
import time

from dotenv import load_dotenv

sys.path.insert(0, os.path.dirname(__file__))

from app.store import RedisStore  # noqa: E402

load_dotenv()


async def main():
    url = os.getenv("REDIS_URL")
    if not url:
        raise SystemExit("❌ REDIS_URL is missing from your .env file!")

    store = RedisStore(url)
    key = f"healthcheck:{int(time.time())}"
    try:
        print(f"🔌 Connecting to {url.split('@')[-1]}...")
        if not await store.ping():
            raise SystemExit("❌ PING failed")

        await store.set(key, {"ok": True}, ex=60)
        value = await store.get(key)
        await store.delete(key)
        print(f"✅ Round-trip works: {value}")
    finally:
        await store.close()


if __name__ == "__main__":
    asyncio.run(main())
