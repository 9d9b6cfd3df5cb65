"""
Discovery Stage: thesis in, ranked and enriched opportunities out.
"""

import logging
from typing import List, Optional

from core.config.constants import CONSTANTS
from core.langchain.agents import TextGenerator
from core.pipeline.enricher import Enricher
from core.pipeline.errors import DiscoveryError
from core.pipeline.extractor import extract_opportunities
from core.pipeline.models import Opportunity, Thesis
from core.pipeline.prompts import discovery_prompt

logger = logging.getLogger(__name__)


class DiscoveryStage:
    """
    One discovery agent call, then extraction, enrichment and ranking.

    Only a failed agent call is fatal (DiscoveryError). An answer with no
    recognisable tickers yields an empty list.
    """

    def __init__(
        self,
        agent: Optional[TextGenerator],
        enricher: Enricher,
        max_opportunities: Optional[int] = None,
    ):
        self.agent = agent
        self.enricher = enricher
        self.max_opportunities = (
            max_opportunities
            if max_opportunities is not None
            else CONSTANTS.discovery.MAX_OPPORTUNITIES
        )

    async def discover(
        self,
        thesis: Thesis,
        max_opportunities: Optional[int] = None,
    ) -> List[Opportunity]:
        limit = max_opportunities if max_opportunities is not None else self.max_opportunities
        if self.agent is None:
            raise DiscoveryError("Discovery agent not configured")

        logger.info(f"[DISCOVERY] Searching for {thesis.strategy.value} opportunities")
        try:
            text = await self.agent.generate(discovery_prompt(thesis))
        except Exception as e:
            logger.error(f"[DISCOVERY] Agent call failed: {e}")
            raise DiscoveryError(f"Discovery agent failed: {e}") from e

        drafts = extract_opportunities(text, thesis.strategy)
        if not drafts:
            logger.warning("[DISCOVERY] No opportunities found in discovery response")
            return []

        enriched = await self.enricher.enrich(drafts)
        enriched.sort(key=lambda o: o.score, reverse=True)
        ranked = enriched[:max(limit, 0)]
        logger.info(
            f"[DISCOVERY] {len(drafts)} drafts, keeping {len(ranked)}: "
            f"{', '.join(o.ticker for o in ranked)}"
        )
        return ranked
