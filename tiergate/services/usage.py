"""Per-user, per-metric usage counters with monthly periods.

Every write is a single ``UPDATE ... SET count = count + :n`` statement so two
requests racing on the same counter can never both read the same value and
write back the same increment. Quota checks that must hold under concurrency
go through :meth:`UsageAccountant.try_consume`, which puts the quota bound in
the UPDATE's WHERE clause.
"""

from __future__ import annotations

from datetime import datetime
from typing import Awaitable, Callable, TypeVar

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from tiergate.config import TierGateSettings
from tiergate.db.models.usage import UsageCounter
from tiergate.db.session import Database
from tiergate.domain.models import ConsumeResult
from tiergate.domain.tiers import UNLIMITED, Quota
from tiergate.logging import logger
from tiergate.services.exceptions import StorageUnavailableError
from tiergate.utils.datetime import naive_utc, next_month_start, utc_now
from tiergate.utils.retry import retry_async

T = TypeVar("T")

STORE_UNAVAILABLE_ERRORS: tuple[type[BaseException], ...] = (
    OperationalError,
    InterfaceError,
    ConnectionError,
    TimeoutError,
)

# A lost INSERT race is retried once; the second pass always finds the row.
_INSERT_RACE_ATTEMPTS = 2


class UsageAccountant:
    def __init__(
        self,
        database: Database,
        settings: TierGateSettings,
        *,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.database = database
        self.settings = settings
        self._clock = clock

    def _now(self) -> datetime:
        return naive_utc(self._clock())

    # Public API ------------------------------------------------------

    async def get_current_count(self, user_id: str, metric: str) -> int:
        """Count for the current period; 0 when nothing was recorded yet."""

        count, _ = await self._read_usage(user_id, metric, "get_current_count")
        return count

    async def get_period_reset_at(self, user_id: str, metric: str) -> datetime:
        _, reset_at = await self._read_usage(user_id, metric, "get_period_reset_at")
        return reset_at

    async def get_usage(self, user_id: str, metric: str) -> tuple[int, datetime]:
        """Current count and the timestamp at which it resets."""

        return await self._read_usage(user_id, metric, "get_usage")

    async def record_usage(self, user_id: str, metric: str, amount: int = 1) -> int:
        """Atomically add ``amount`` to the counter and return the new count."""

        result = await self._consume(user_id, metric, UNLIMITED, amount, "record_usage")
        return result.count

    async def try_consume(
        self, user_id: str, metric: str, quota: Quota, amount: int = 1
    ) -> ConsumeResult:
        """Increment only if the new count stays within ``quota``."""

        return await self._consume(user_id, metric, quota, amount, "try_consume")

    async def period_reset(self, user_id: str, metric: str) -> bool:
        """Zero an elapsed counter and move it to the next period.

        Returns ``False`` when the counter is missing or its period is still
        running, so calling it again within the same period changes nothing.
        """

        now = self._now()

        async def _reset() -> bool:
            async with self.database.session() as session:
                rolled = await self._roll_period(session, user_id, metric, now)
                await session.commit()
            return rolled

        return await self._run("period_reset", _reset)

    # Internal helpers -------------------------------------------------

    async def _run(self, operation: str, factory: Callable[[], Awaitable[T]]) -> T:
        usage_cfg = self.settings.usage
        try:
            return await retry_async(
                factory,
                max_attempts=usage_cfg.retry_attempts,
                base_delay=usage_cfg.retry_base_delay,
                retry_on=STORE_UNAVAILABLE_ERRORS,
                logger=logger,
                operation_name=f"usage.{operation}",
            )
        except STORE_UNAVAILABLE_ERRORS as exc:
            logger.error("usage_store_unavailable", operation=operation, error=str(exc))
            raise StorageUnavailableError(operation, str(exc)) from exc

    async def _read_usage(
        self, user_id: str, metric: str, operation: str
    ) -> tuple[int, datetime]:
        now = self._now()

        async def _read() -> tuple[int, datetime]:
            async with self.database.session() as session:
                row = await self._load(session, user_id, metric)
            # An elapsed period reads as empty; the reset itself happens on write.
            if row is None or row.period_reset_at <= now:
                return 0, next_month_start(now)
            return row.count, row.period_reset_at

        return await self._run(operation, _read)

    async def _consume(
        self, user_id: str, metric: str, quota: Quota, amount: int, operation: str
    ) -> ConsumeResult:
        if amount < 1:
            raise ValueError("amount must be at least 1")
        now = self._now()

        async def _write() -> ConsumeResult:
            async with self.database.session() as session:
                for attempt in range(1, _INSERT_RACE_ATTEMPTS + 1):
                    try:
                        result = await self._increment(session, user_id, metric, quota, amount, now)
                        await session.commit()
                        break
                    except IntegrityError:
                        await session.rollback()
                        if attempt >= _INSERT_RACE_ATTEMPTS:
                            raise
                        logger.info("usage_counter_insert_race", user_id=user_id, metric=metric)
            log = logger.info if result.accepted else logger.warning
            log(
                "usage_recorded" if result.accepted else "usage_quota_reached",
                user_id=user_id,
                metric=metric,
                amount=amount,
                count=result.count,
                quota=None if quota is UNLIMITED else quota,
            )
            return result

        return await self._run(operation, _write)

    async def _increment(
        self,
        session: AsyncSession,
        user_id: str,
        metric: str,
        quota: Quota,
        amount: int,
        now: datetime,
    ) -> ConsumeResult:
        await self._roll_period(session, user_id, metric, now)

        stmt = (
            update(UsageCounter)
            .where(UsageCounter.user_id == user_id, UsageCounter.metric == metric)
            .values(count=UsageCounter.count + amount, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        if quota is not UNLIMITED:
            stmt = stmt.where(UsageCounter.count + amount <= quota)
        result = await session.execute(stmt)

        row = await self._load(session, user_id, metric)
        if result.rowcount:
            return ConsumeResult(accepted=True, count=row.count, period_reset_at=row.period_reset_at)
        if row is not None:
            return ConsumeResult(accepted=False, count=row.count, period_reset_at=row.period_reset_at)

        # First action of this user/metric.
        reset_at = next_month_start(now)
        if quota is not UNLIMITED and amount > quota:
            return ConsumeResult(accepted=False, count=0, period_reset_at=reset_at)
        session.add(
            UsageCounter(
                user_id=user_id,
                metric=metric,
                count=amount,
                period_reset_at=reset_at,
                created_at=now,
                updated_at=now,
            )
        )
        await session.flush()
        return ConsumeResult(accepted=True, count=amount, period_reset_at=reset_at)

    async def _roll_period(
        self, session: AsyncSession, user_id: str, metric: str, now: datetime
    ) -> bool:
        next_reset = next_month_start(now)
        stmt = (
            update(UsageCounter)
            .where(
                UsageCounter.user_id == user_id,
                UsageCounter.metric == metric,
                UsageCounter.period_reset_at <= now,
            )
            .values(count=0, period_reset_at=next_reset, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(stmt)
        if result.rowcount:
            logger.info(
                "usage_period_reset",
                user_id=user_id,
                metric=metric,
                period_reset_at=next_reset.isoformat(),
            )
            return True
        return False

    @staticmethod
    async def _load(session: AsyncSession, user_id: str, metric: str):
        # Column select so a stale identity-map object is never returned.
        stmt = select(UsageCounter.count, UsageCounter.period_reset_at).where(
            UsageCounter.user_id == user_id,
            UsageCounter.metric == metric,
        )
        result = await session.execute(stmt)
        return result.one_or_none()


__all__ = ["STORE_UNAVAILABLE_ERRORS", "UsageAccountant"]
