"""Per-client daily submission limiting on top of an option store."""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

from shared.python.options import OptionStore, OptionStoreError

logger = logging.getLogger(__name__)

RATE_LIMIT_OPTION_KEY = "voicenotes_rate_limit_submissions"
DEFAULT_MAX_SUBMISSIONS_PER_DAY = 5


class RateLimitStoreError(Exception):
    """Exception raised when the rate limit table cannot be read or written."""

    def __init__(self, operation: str, reason: str):
        self.operation = operation
        self.reason = reason
        super().__init__(f"Rate limit table {operation} failed: {reason}")


@dataclass(frozen=True)
class QuotaDecision:
    """Outcome of a quota check for one client."""

    allowed: bool
    count: int
    limit: int


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _is_live(record: Any, today: str) -> bool:
    """Whether a stored record is well formed and belongs to today."""
    if not isinstance(record, dict) or record.get("date") != today:
        return False
    count = record.get("count")
    return isinstance(count, int) and not isinstance(count, bool) and count >= 0


class DailySubmissionLimiter:
    """
    Daily per-client submission limiter.

    The whole table ({client_id: {"count": int, "date": "YYYY-MM-DD"}}) is
    stored as one option and read-modify-written on every check and every
    increment. The read-modify-write is not atomic: two concurrent requests
    can both pass check_quota and both be recorded, letting a client exceed
    the limit by one. Accepted for low-volume listener feedback.
    """

    def __init__(
        self,
        store: OptionStore,
        max_per_day: int = DEFAULT_MAX_SUBMISSIONS_PER_DAY,
        option_key: str = RATE_LIMIT_OPTION_KEY,
        clock: Callable[[], datetime] | None = None,
    ):
        self.store = store
        self.max_per_day = max_per_day
        self.option_key = option_key
        self.clock = clock or _utc_now

    def _today(self) -> str:
        """Current UTC calendar day as YYYY-MM-DD."""
        now = self.clock()
        if now.tzinfo is not None:
            now = now.astimezone(timezone.utc)
        return now.strftime("%Y-%m-%d")

    def _load_table(self) -> dict[str, dict[str, Any]]:
        try:
            table = self.store.get(self.option_key, {})
        except OptionStoreError as e:
            raise RateLimitStoreError("read", str(e)) from e
        if not isinstance(table, dict):
            logger.warning(f"Discarding malformed rate limit table of type {type(table).__name__}")
            return {}
        return table

    def _save_table(self, table: dict[str, dict[str, Any]]) -> None:
        try:
            self.store.set(self.option_key, table)
        except OptionStoreError as e:
            raise RateLimitStoreError("write", str(e)) from e

    def _live_table(self, today: str) -> dict[str, dict[str, Any]]:
        """Load the table keeping only well formed records from today."""
        table = self._load_table()
        return {
            client_id: record
            for client_id, record in table.items()
            if _is_live(record, today)
        }

    def check_quota(self, client_id: str) -> QuotaDecision:
        """
        Check whether a client may submit today.

        Expired records are removed and the cleaned table is written back
        on every call, whatever the outcome.

        Args:
            client_id: Client identifier (remote IP address)

        Returns:
            QuotaDecision with allowed=False once count reaches the limit

        Raises:
            RateLimitStoreError: If the table cannot be read or written
        """
        today = self._today()
        table = self._live_table(today)

        count = table[client_id]["count"] if client_id in table else 0
        allowed = count < self.max_per_day

        self._save_table(table)

        if not allowed:
            logger.info(
                f"Submission limit reached for {client_id}: {count}/{self.max_per_day}"
            )
        return QuotaDecision(allowed=allowed, count=count, limit=self.max_per_day)

    def record_submission(self, client_id: str) -> int:
        """
        Count one accepted submission for a client.

        Returns:
            The client's submission count for today after the increment

        Raises:
            RateLimitStoreError: If the table cannot be read or written
        """
        today = self._today()
        table = self._load_table()

        record = table.get(client_id)
        if _is_live(record, today):
            record["count"] += 1
        else:
            record = {"count": 1, "date": today}
            table[client_id] = record

        self._save_table(table)
        logger.debug(f"Recorded submission {record['count']} today for {client_id}")
        return record["count"]

    def get_count_today(self, client_id: str) -> int:
        """Get the number of submissions a client made today."""
        record = self._load_table().get(client_id)
        if _is_live(record, self._today()):
            return record["count"]
        return 0

    def get_remaining_today(self, client_id: str) -> int:
        """Get the remaining submission quota for a client today."""
        return max(0, self.max_per_day - self.get_count_today(client_id))

    def seconds_until_reset(self) -> int:
        """Seconds until the quota resets at the next UTC midnight."""
        now = self.clock()
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        now = now.astimezone(timezone.utc)
        midnight = (now + timedelta(days=1)).replace(hour=0, minute=0, second=0, microsecond=0)
        return max(1, int((midnight - now).total_seconds()))
