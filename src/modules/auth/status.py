"""Account status checks that must never hang a request.

Both checks fail open: an unreachable directory means "not blocked" and
"not privileged".
"""

from uuid import UUID

from cachetools import TTLCache

from src.database.models import AppRole
from src.utils.logger import get_logger
from src.utils.settings.gems import GemSettings

from .directory import AccountDirectory
from .retry import BoundedRetry, RetryExhaustedError, RetryPolicy, with_timeout

logger = get_logger(__name__)


class AccountStatusService:
    def __init__(
        self,
        directory: AccountDirectory,
        timeout_seconds: float | None = None,
        retry_policy: RetryPolicy | None = None,
    ):
        settings = GemSettings()
        self.directory = directory
        self.timeout_seconds = (
            timeout_seconds
            if timeout_seconds is not None
            else settings.STATUS_CHECK_TIMEOUT_SECONDS
        )
        self.retry_policy = retry_policy or RetryPolicy.for_status_checks(settings)
        # Only answers the directory actually gave are cached, never fallbacks
        self._blocked: TTLCache[UUID, bool] = TTLCache(
            maxsize=1000, ttl=settings.BLOCKED_STATUS_CACHE_TTL
        )

    async def is_blocked(self, user_id: UUID) -> bool:
        if user_id in self._blocked:
            return self._blocked[user_id]

        try:
            blocked = await with_timeout(
                self.directory.is_blocked(user_id), self.timeout_seconds, None
            )
        except Exception as e:
            logger.warning(f"Blocked-status check failed, allowing: {e}", user_id=str(user_id))
            return False

        if blocked is None:
            return False

        self._blocked[user_id] = blocked
        return blocked

    def forget(self, user_id: UUID) -> None:
        """Drop the cached blocked status so the next check hits the directory."""
        self._blocked.pop(user_id, None)

    async def is_admin(self, user_id: UUID) -> bool:
        retry = BoundedRetry(self.retry_policy)
        try:
            return await with_timeout(
                retry.run(lambda: self.directory.has_role(user_id, AppRole.ADMIN.value)),
                self.timeout_seconds,
                False,
            )
        except RetryExhaustedError as e:
            logger.warning(
                f"Admin-role check gave up after {e.attempts} attempts: {e.last_error}",
                user_id=str(user_id),
            )
            return False
