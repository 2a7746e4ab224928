# storefront/services/checkout_session.py
"""
Checkout sessions: a short-lived snapshot of the cart, its totals and the
user's addresses, taken when checkout starts and consumed by process_order.

Sessions are cheap to rebuild from the cart, so losing them (restart, expiry)
only sends the user back to the start of checkout. Two stores:

- InMemorySessionStore: one dict per process.
- RedisSessionStore: JSON under a TTL key, shared by all workers.
"""
import threading
import uuid
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional

import redis

from storefront.domain.errors import CheckoutSessionNotFound
from storefront.domain.schemas import (
    AddressOut,
    CartLine,
    CheckoutData,
    CheckoutSession,
    DefaultAddresses,
    OrderCalculation,
)
from storefront.utils.logging import get_logger
from storefront.utils.retry import redis_retry
from storefront.utils.settings import (
    CHECKOUT_SESSION_BACKEND,
    CHECKOUT_SESSION_TTL_SECONDS,
    REDIS_URL,
)

logger = get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InMemorySessionStore:
    def __init__(self):
        self._sessions: dict[str, CheckoutSession] = {}
        self._lock = threading.Lock()

    def save(self, session: CheckoutSession, now: datetime):
        with self._lock:
            self._sessions[session.id] = session

    def load(self, session_id: str) -> Optional[CheckoutSession]:
        with self._lock:
            return self._sessions.get(session_id)

    def delete(self, session_id: str):
        with self._lock:
            self._sessions.pop(session_id, None)

    def purge_expired(self, now: datetime) -> int:
        with self._lock:
            expired = [sid for sid, s in self._sessions.items() if s.expires_at < now]
            for sid in expired:
                del self._sessions[sid]
        return len(expired)

    def __len__(self):
        return len(self._sessions)


class RedisSessionStore:
    """Redis drops the key at expires_at, so purge_expired has nothing to do."""

    def __init__(self, url: str | None = None, client=None, prefix: str = "checkout_session:"):
        self.redis = client if client is not None else redis.Redis.from_url(url or REDIS_URL, decode_responses=True)
        self.prefix = prefix

    def _key(self, session_id: str) -> str:
        return f"{self.prefix}{session_id}"

    @redis_retry()
    def save(self, session: CheckoutSession, now: datetime):
        ttl = max(int((session.expires_at - now).total_seconds()), 1)
        self.redis.set(name=self._key(session.id), value=session.model_dump_json(), ex=ttl)

    @redis_retry()
    def load(self, session_id: str) -> Optional[CheckoutSession]:
        raw = self.redis.get(self._key(session_id))
        if raw is None:
            return None
        return CheckoutSession.model_validate_json(raw)

    @redis_retry()
    def delete(self, session_id: str):
        self.redis.delete(self._key(session_id))

    def purge_expired(self, now: datetime) -> int:
        return 0


class CheckoutSessionManager:
    def __init__(
        self,
        store=None,
        ttl_seconds: int = CHECKOUT_SESSION_TTL_SECONDS,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.store = store if store is not None else InMemorySessionStore()
        self.ttl = timedelta(seconds=ttl_seconds)
        self.clock = clock

    @staticmethod
    def owner_prefix(user_id: int) -> str:
        return f"checkout_{user_id}_"

    def new_session_id(self, user_id: int) -> str:
        millis = int(self.clock().timestamp() * 1000)
        return f"{self.owner_prefix(user_id)}{millis}_{uuid.uuid4().hex[:8]}"

    def create(
        self,
        user_id: int,
        cart_items: List[CartLine],
        calculation: OrderCalculation,
        user_addresses: List[AddressOut],
        default_addresses: DefaultAddresses,
        checkout_data: CheckoutData | None = None,
    ) -> CheckoutSession:
        now = self.clock()
        session = CheckoutSession(
            id=self.new_session_id(user_id),
            user_id=user_id,
            cart_items=cart_items,
            calculation=calculation,
            user_addresses=user_addresses,
            default_addresses=default_addresses,
            checkout_data=checkout_data,
            created_at=now,
            expires_at=now + self.ttl,
        )
        self.store.save(session, now)

        purged = self.store.purge_expired(now)
        if purged:
            logger.info(f"Purged {purged} expired checkout sessions")

        logger.info(f"Checkout session {session.id} created, expires at {session.expires_at.isoformat()}")
        return session

    def get(self, session_id: str, user_id: int) -> CheckoutSession:
        session = self.store.load(session_id)
        if session is None:
            raise CheckoutSessionNotFound("Checkout session not found or expired.")

        if session.expires_at < self.clock():
            self.store.delete(session_id)
            raise CheckoutSessionNotFound("Checkout session has expired. Please start over.")

        if not session.id.startswith(self.owner_prefix(user_id)):
            logger.warning(f"User {user_id} asked for checkout session {session_id} of another user")
            raise CheckoutSessionNotFound("Invalid checkout session.")

        return session

    def update(self, session_id: str, user_id: int, checkout_data: CheckoutData) -> CheckoutSession:
        session = self.get(session_id, user_id)
        updated = session.model_copy(update={"checkout_data": checkout_data})
        self.store.save(updated, self.clock())
        return updated

    def delete(self, session_id: str, user_id: int):
        session = self.store.load(session_id)
        if session is not None and session.id.startswith(self.owner_prefix(user_id)):
            self.store.delete(session_id)


_manager: CheckoutSessionManager | None = None
_manager_lock = threading.Lock()


def build_session_store(backend: str = CHECKOUT_SESSION_BACKEND):
    if backend == "redis":
        return RedisSessionStore()
    if backend == "memory":
        return InMemorySessionStore()
    raise ValueError(f"Unknown checkout session backend: {backend}")


def get_session_manager() -> CheckoutSessionManager:
    global _manager
    with _manager_lock:
        if _manager is None:
            _manager = CheckoutSessionManager(store=build_session_store())
        return _manager


def set_session_manager(manager: CheckoutSessionManager | None):
    global _manager
    with _manager_lock:
        _manager = manager
