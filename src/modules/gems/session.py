"""Per-user ledger sessions.

Each authenticated user gets exactly one ``StudioSession`` holding their
ledger client and spend guard. Signing out resets the ledger and drops the
session so nothing cached survives a user switch. Idle sessions expire after
``SESSION_TTL_SECONDS`` and the registry holds at most ``SESSION_CACHE_SIZE``
of them; a session with a spend in flight is never evicted.
"""

import asyncio
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from uuid import UUID

from cachetools import TTLCache

from src.modules.auth.retry import RetryPolicy
from src.utils.logger import get_logger
from src.utils.settings.gems import GemSettings

from .costs import FeatureCostResolver
from .exceptions import BalanceStoreUnavailableError
from .ledger import LedgerClient
from .spend import SpendGuard
from .store import BalanceStore
from .usage import UsageLog

logger = get_logger(__name__)


@dataclass
class StudioSession:
    user_id: UUID
    ledger: LedgerClient
    guard: SpendGuard
    loading: asyncio.Task | None = field(default=None, repr=False)

    @property
    def busy(self) -> bool:
        if self.loading is not None and not self.loading.done():
            return True
        return self.guard.busy


class SessionCache(TTLCache):
    """TTL cache of sessions that resets evicted ledgers and keeps busy sessions."""

    def expire(self, time=None):
        evicted = []
        for user_id, session in super().expire(time):
            if session.busy:
                # Re-armed with a fresh ttl
                self[user_id] = session
            else:
                self._evicted(user_id, session, "expired")
                evicted.append((user_id, session))
        return evicted

    def popitem(self):
        with self.timer as now:
            self.expire(now)
            for user_id in list(self):
                session = self[user_id]
                if not session.busy:
                    del self[user_id]
                    self._evicted(user_id, session, "capacity")
                    return user_id, session
        raise KeyError("every cached session has a spend in flight")

    @staticmethod
    def _evicted(user_id: UUID, session: StudioSession, reason: str) -> None:
        session.ledger.reset()
        logger.info("Evicted ledger session", user_id=str(user_id), reason=reason)


class SessionRegistry:
    def __init__(
        self,
        store: BalanceStore,
        usage_log: UsageLog,
        costs: FeatureCostResolver,
        settings: GemSettings | None = None,
        timer: Callable[[], float] = time.monotonic,
    ):
        settings = settings or GemSettings()
        self.store = store
        self.usage_log = usage_log
        self.costs = costs
        self.retry_policy = RetryPolicy.for_balance_reads(settings)
        self._sessions = SessionCache(
            maxsize=settings.SESSION_CACHE_SIZE,
            ttl=settings.SESSION_TTL_SECONDS,
            timer=timer,
        )
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        self._sessions.expire()
        return len(self._sessions)

    def get(self, user_id: UUID) -> StudioSession | None:
        self._sessions.expire()
        return self._sessions.get(user_id)

    async def open(self, user_id: UUID) -> StudioSession:
        """Return the user's session once its first balance load has finished."""
        async with self._lock:
            self._sessions.expire()
            session = self._sessions.get(user_id)
            created = session is None
            if created:
                ledger = LedgerClient(self.store, self.costs, user_id, self.retry_policy)
                session = StudioSession(
                    user_id=user_id,
                    ledger=ledger,
                    guard=SpendGuard(ledger, self.usage_log),
                )

            try:
                # Re-inserting slides the idle timeout
                self._sessions[user_id] = session
            except KeyError as e:
                logger.error("Session registry is full of busy sessions", user_id=str(user_id))
                raise BalanceStoreUnavailableError(details={"reason": "session_capacity"}) from e

            if created:
                session.loading = asyncio.create_task(session.ledger.refresh())
                logger.info("Opened ledger session", user_id=str(user_id))

        await asyncio.shield(session.loading)
        return session

    async def sign_out(self, user_id: UUID) -> bool:
        async with self._lock:
            self._sessions.expire()
            session = self._sessions.pop(user_id, None)

        if session is None:
            return False

        session.ledger.reset()
        logger.info("Closed ledger session", user_id=str(user_id))
        return True

    async def close_all(self) -> None:
        async with self._lock:
            self._sessions.expire()
            sessions = [self._sessions.pop(user_id) for user_id in list(self._sessions)]
        for session in sessions:
            session.ledger.reset()
