# loginthrottle.py
from __future__ import annotations
import redis.asyncio as redis


# ---- keys
def k_login(client_id: str) -> str: return f"admin-login:{client_id}"


class LoginThrottle:
    """Fixed-window counter of admin login attempts per client."""

    def __init__(self, r: redis.Redis, max_attempts: int,
                 window_seconds: int) -> None:
        self.r = r
        self.max_attempts = max_attempts
        self.window = window_seconds

    async def hit(self, client_id: str) -> bool:
        # the NX set opens a window; INCR counts inside it
        pipe = self.r.pipeline(transaction=True)
        pipe.set(k_login(client_id), 0, nx=True, ex=self.window)
        pipe.incr(k_login(client_id))
        _, attempts = await pipe.execute()
        return int(attempts) <= self.max_attempts

    async def reset(self, client_id: str) -> None:
        await self.r.delete(k_login(client_id))
