"""
Enrichment of discovered opportunities with market data.
"""

import asyncio
import logging
from typing import Dict, List, Optional

from core.context.market_data import MarketDataProvider
from core.pipeline.models import Opportunity

logger = logging.getLogger(__name__)


class Enricher:
    """
    Merges price and key metrics into each opportunity's metric map.

    All lookups run concurrently. A failed lookup leaves that opportunity
    exactly as it was; the enricher itself never raises.
    """

    def __init__(self, market_data: MarketDataProvider):
        self.market_data = market_data

    async def _enrich_one(self, opportunity: Opportunity) -> Opportunity:
        try:
            snapshot, key_metrics = await asyncio.gather(
                self.market_data.get_price_snapshot(opportunity.ticker),
                self.market_data.get_key_metrics(opportunity.ticker),
            )
        except Exception as e:
            logger.warning(
                f"[DISCOVERY] Failed to enrich {opportunity.ticker}: {e}"
            )
            return opportunity

        updates: Dict[str, Optional[float]] = {
            "price": snapshot.price,
            "market_cap": snapshot.market_cap,
        }
        updates.update(key_metrics.to_metrics())
        return opportunity.with_metrics(updates)

    async def enrich(self, opportunities: List[Opportunity]) -> List[Opportunity]:
        """Return the opportunities, in input order, with fetched metrics merged in."""
        if not opportunities:
            return []
        enriched = await asyncio.gather(*(self._enrich_one(o) for o in opportunities))
        return list(enriched)
