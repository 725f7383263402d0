"""Discount lookup service for active campaign markdowns."""

import logging
import uuid
from typing import Iterable

from pydantic import TypeAdapter
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from bazaar.models.campaign import DiscountCampaign, ProductDiscount
from bazaar.schemas.pricing import CampaignDiscount
from bazaar.services.ports import DiscountLookup

logger = logging.getLogger(__name__)

_discount_adapter: TypeAdapter[CampaignDiscount] = TypeAdapter(CampaignDiscount)


def discount_from_row(campaign: DiscountCampaign) -> CampaignDiscount:
    return _discount_adapter.validate_python(
        {
            "kind": campaign.discount_type,
            "campaign_id": str(campaign.campaign_id),
            "campaign_name": campaign.name,
            "value": campaign.discount_value,
            "max_discount_amount": campaign.max_discount_amount,
            "ends_at": campaign.ends_at,
        }
    )


class DiscountService(DiscountLookup):
    """Service class for campaign discount lookups. Never writes."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_active_discounts_for_products(
        self, product_ids: Iterable[str]
    ) -> dict[str, CampaignDiscount]:
        """Get the active campaign discount for each product.

        A campaign is active when its flag is set and the database clock is
        inside its window. When several campaigns cover one product, the most
        recently started one wins.

        Args:
            product_ids: Product UUID strings; duplicates are ignored

        Returns:
            Dict of product id to discount; products without one are absent
        """
        unique_ids = {uuid.UUID(product_id) for product_id in product_ids if product_id}
        if not unique_ids:
            return {}

        now = func.now()
        result = await self.db.execute(
            select(ProductDiscount.product_id, DiscountCampaign)
            .join(DiscountCampaign, DiscountCampaign.campaign_id == ProductDiscount.campaign_id)
            .where(
                ProductDiscount.product_id.in_(unique_ids),
                DiscountCampaign.is_active.is_(True),
                DiscountCampaign.starts_at <= now,
                DiscountCampaign.ends_at > now,
            )
            .order_by(DiscountCampaign.starts_at.desc())
        )

        discounts: dict[str, CampaignDiscount] = {}
        for product_id, campaign in result.all():
            key = str(product_id)
            if key not in discounts:
                discounts[key] = discount_from_row(campaign)

        logger.debug(f"Active discounts found for {len(discounts)}/{len(unique_ids)} products")
        return discounts
