"""Per-user LLM cost accounting on the daily usage ledger."""

import logging
import uuid
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from tradeintel.models.usage_ledger import UsageLedger
from tradeintel.services.ai_service import UsageRecord

logger = logging.getLogger(__name__)


def _today() -> date:
    return datetime.now(timezone.utc).date()


class CostTrackingService:
    """Adds usage to a user's ledger row for the current day.

    Increments are issued as a single UPDATE ... SET col = col + :delta so
    concurrent writers never lose each other's updates.
    """

    async def track(self, db: AsyncSession, user_id: uuid.UUID, usage: UsageRecord) -> None:
        await self._increment(
            db,
            user_id,
            input_tokens=usage.input_tokens,
            output_tokens=usage.output_tokens,
            cost=usage.cost_usd,
            sessions=0,
        )
        logger.debug(
            "Tracked usage: user=%s model=%s cost=%s",
            user_id,
            usage.model,
            usage.cost_usd,
        )

    async def increment_session_count(self, db: AsyncSession, user_id: uuid.UUID) -> None:
        await self._increment(db, user_id, input_tokens=0, output_tokens=0, cost=Decimal("0"), sessions=1)

    async def _increment(
        self,
        db: AsyncSession,
        user_id: uuid.UUID,
        input_tokens: int,
        output_tokens: int,
        cost: Decimal,
        sessions: int,
    ) -> None:
        period = _today()
        stmt = (
            update(UsageLedger)
            .where(UsageLedger.user_id == user_id, UsageLedger.period_date == period)
            .values(
                total_input_tokens=UsageLedger.total_input_tokens + input_tokens,
                total_output_tokens=UsageLedger.total_output_tokens + output_tokens,
                total_cost_usd=UsageLedger.total_cost_usd + cost,
                session_count=UsageLedger.session_count + sessions,
            )
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        if result.rowcount:
            return

        try:
            async with db.begin_nested():
                db.add(
                    UsageLedger(
                        user_id=user_id,
                        period_date=period,
                        total_input_tokens=input_tokens,
                        total_output_tokens=output_tokens,
                        total_cost_usd=cost,
                        session_count=sessions,
                    )
                )
        except IntegrityError:
            # Row was created concurrently; apply the increment to it
            await db.execute(stmt)

    async def summary(self, db: AsyncSession, user_id: uuid.UUID) -> dict:
        """Cost and token totals for today, the last 30 days, and all time."""
        today = _today()

        async def _totals(since: date | None) -> dict:
            query = select(
                func.coalesce(func.sum(UsageLedger.total_input_tokens), 0),
                func.coalesce(func.sum(UsageLedger.total_output_tokens), 0),
                func.coalesce(func.sum(UsageLedger.total_cost_usd), 0),
                func.coalesce(func.sum(UsageLedger.session_count), 0),
            ).where(UsageLedger.user_id == user_id)
            if since is not None:
                query = query.where(UsageLedger.period_date >= since)
            input_tokens, output_tokens, cost, sessions = (await db.execute(query)).one()
            return {
                "input_tokens": int(input_tokens),
                "output_tokens": int(output_tokens),
                "cost_usd": Decimal(str(cost)),
                "sessions": int(sessions),
            }

        return {
            "today": await _totals(today),
            "last_30_days": await _totals(today - timedelta(days=29)),
            "all_time": await _totals(None),
        }


async def track_usage_safely(
    db: AsyncSession,
    tracker: CostTrackingService,
    user_id: uuid.UUID,
    usage: UsageRecord,
) -> None:
    """Record usage inside a savepoint; a ledger failure never aborts the caller."""
    try:
        async with db.begin_nested():
            await tracker.track(db, user_id, usage)
    except SQLAlchemyError as e:
        logger.warning("Failed to track usage for user=%s (non-fatal): %s", user_id, e)
