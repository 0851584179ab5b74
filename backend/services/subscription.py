"""Subscription lookups. Plans are informational; nothing is gated on them."""
import logging
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from errors import ConflictError, NotFoundError
from models import Subscription, SubscriptionPlan, SubscriptionStatus
from schemas import SubscriptionAccess, SubscriptionOut
from services.business import require_business

logger = logging.getLogger(__name__)

# Free tier never lapses.
FREE_PERIOD_END = datetime(2099, 12, 31)


class SubscriptionService:
    async def create_free_subscription(self, db: AsyncSession, business_id: int) -> SubscriptionOut:
        await require_business(db, business_id)
        subscription = Subscription(
            business_id=business_id,
            plan=SubscriptionPlan.FREE.value,
            status=SubscriptionStatus.ACTIVE.value,
            current_period_end=FREE_PERIOD_END,
        )
        db.add(subscription)
        try:
            await db.commit()
        except IntegrityError as e:
            await db.rollback()
            raise ConflictError("Subscription already exists for this business") from e
        logger.info("Created free subscription for business %s", business_id)
        return SubscriptionOut.model_validate(subscription)

    async def get_subscription(self, db: AsyncSession, business_id: int) -> SubscriptionOut:
        await require_business(db, business_id)
        r = await db.execute(select(Subscription).where(Subscription.business_id == business_id))
        subscription = r.scalar_one_or_none()
        if subscription is None:
            raise NotFoundError("Subscription not found")
        return SubscriptionOut.model_validate(subscription)

    async def check_access(self, db: AsyncSession, business_id: int) -> SubscriptionAccess:
        """Every plan currently has access; reports which plan applies."""
        r = await db.execute(select(Subscription).where(Subscription.business_id == business_id))
        subscription = r.scalar_one_or_none()
        plan = subscription.plan if subscription else SubscriptionPlan.FREE.value
        return SubscriptionAccess(
            has_access=True,
            plan=plan,
            is_free_user=plan == SubscriptionPlan.FREE.value,
        )
