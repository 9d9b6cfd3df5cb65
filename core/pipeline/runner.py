"""
Pipeline Runner.

Coordinates one thesis research run:

1. Mark the session as researching
2. Discovery (one agent call, extraction, enrichment, ranking)
3. Analysis of each opportunity, in batches, followed by its debate
4. Ranking and the aggregate verdict
5. Persist the result and emit ``complete``

Discovery and persistence failures end the run with a single ``error``
event. Everything below that is recorded per opportunity.
"""

import asyncio
import json
import logging
import time
import uuid
from typing import AsyncIterator, List, Optional

from core.config.constants import CONSTANTS
from core.context.market_data import MarketDataProvider, YFinanceMarketData
from core.langchain.agents import LangChainAgent
from core.pipeline import prompts
from core.pipeline.analyzer import OpportunityAnalyzer
from core.pipeline.debate import DebateFacilitator
from core.pipeline.discovery import DiscoveryStage
from core.pipeline.enricher import Enricher
from core.pipeline.events import Phase, PhaseEvent, ProgressEmitter, utc_now
from core.pipeline.models import AnalyzedOpportunity, Opportunity, PipelineRun, Thesis
from core.pipeline.persistence import SessionStore, SqlSessionStore
from core.pipeline.roster import build_roster
from core.pipeline.verdict import aggregate_verdict, rank_opportunities
from core.research.deep_research import (
    DeepResearchService,
    GeminiInteractionsClient,
    ResearchService,
)

logger = logging.getLogger(__name__)

CANCELLED_REASON = "Run cancelled before completion"


class PipelineRunner:
    """
    Top-level coordinator. Collaborators are passed in, so tests can
    substitute fakes for every external service.

    Args:
        discovery: Discovery stage
        analyzer: Per-opportunity analyzer
        store: Session store
        debate: Debate facilitator, or None to skip debates
        batch_size: Opportunities analyzed concurrently
    """

    def __init__(
        self,
        discovery: DiscoveryStage,
        analyzer: OpportunityAnalyzer,
        store: SessionStore,
        debate: Optional[DebateFacilitator] = None,
        batch_size: Optional[int] = None,
    ):
        self.discovery = discovery
        self.analyzer = analyzer
        self.store = store
        self.debate = debate
        self.batch_size = max(1, batch_size or CONSTANTS.pipeline.BATCH_SIZE)

    @classmethod
    def from_settings(
        cls,
        settings,
        store: Optional[SessionStore] = None,
        market_data: Optional[MarketDataProvider] = None,
    ) -> "PipelineRunner":
        """Build the production pipeline from application settings."""
        roster = build_roster(settings)
        research = build_research_service(settings)
        discovery = DiscoveryStage(
            roster.discovery,
            Enricher(market_data or YFinanceMarketData()),
            max_opportunities=settings.max_opportunities,
        )
        analyzer = OpportunityAnalyzer(
            roster,
            research,
            produce_bull_case=settings.enable_debate,
        )
        debate = DebateFacilitator.from_roster(roster) if settings.enable_debate else None
        return cls(
            discovery=discovery,
            analyzer=analyzer,
            store=store or SqlSessionStore(settings.database_url),
            debate=debate,
            batch_size=settings.analysis_batch_size,
        )

    # =========================================================================
    # Per-opportunity work
    # =========================================================================

    async def _process(
        self,
        thesis: Thesis,
        opportunity: Opportunity,
        emitter: ProgressEmitter,
    ) -> AnalyzedOpportunity:
        try:
            analyzed = await self.analyzer.analyze(thesis, opportunity, emitter.emit)
        except Exception as e:
            logger.exception(f"[PIPELINE] {opportunity.ticker} analysis crashed")
            analyzed = AnalyzedOpportunity(opportunity=opportunity)
            analyzed.add_error("analysis", f"Workflow failed: {e}")
            return analyzed

        if self.debate is not None and analyzed.research is not None:
            try:
                outcome = await self.debate.facilitate(analyzed, emitter.emit)
            except Exception as e:
                logger.exception(f"[DEBATE] {opportunity.ticker} debate crashed")
                analyzed.add_error("debate", str(e))
            else:
                analyzed.debate_rounds.extend(outcome.rounds)
                analyzed.errors.extend(outcome.errors)
        return analyzed

    async def _analyze_all(
        self,
        thesis: Thesis,
        opportunities: List[Opportunity],
        emitter: ProgressEmitter,
    ) -> List[AnalyzedOpportunity]:
        """Batches run one after another; members of a batch run together."""
        analyzed: List[AnalyzedOpportunity] = []
        for start in range(0, len(opportunities), self.batch_size):
            batch = opportunities[start:start + self.batch_size]
            logger.info(
                f"[PIPELINE] Batch {start // self.batch_size + 1}: "
                f"{', '.join(o.ticker for o in batch)}"
            )
            results = await asyncio.gather(
                *(self._process(thesis, o, emitter) for o in batch)
            )
            analyzed.extend(results)
        return analyzed

    # =========================================================================
    # Entry points
    # =========================================================================

    async def execute(
        self,
        thesis: Thesis,
        session_id: str,
        emitter: ProgressEmitter,
    ) -> Optional[PipelineRun]:
        """
        Run the pipeline, reporting through ``emitter``.

        Returns the finished run, or None when the run failed; in that case
        exactly one error event has been emitted.
        """
        started_at = utc_now()
        started = time.monotonic()
        try:
            await self.store.mark_researching(session_id, thesis)
            emitter.emit(
                Phase.STARTING,
                "thesis-discovery",
                f"Discovering {thesis.strategy.value} opportunities...",
            )
            opportunities = await self.discovery.discover(thesis)
            await self.store.save_discovered(session_id, opportunities)
            emitter.emit(
                Phase.STARTING,
                "thesis-discovery",
                f"Found {len(opportunities)} opportunities: "
                f"{', '.join(o.ticker for o in opportunities) or 'none'}",
            )

            analyzed = await self._analyze_all(thesis, opportunities, emitter)
            ranked = rank_opportunities(analyzed)
            duration = time.monotonic() - started
            final_verdict, summary = aggregate_verdict(ranked, len(opportunities), duration)

            run = PipelineRun(
                session_id=session_id,
                thesis=thesis,
                opportunities=tuple(opportunities),
                analyzed=tuple(ranked),
                final_verdict=final_verdict,
                summary=summary,
                events=emitter.events,
                started_at=started_at,
                completed_at=utc_now(),
            )
            await self.store.save_result(session_id, run)
        except asyncio.CancelledError:
            logger.warning(
                f"[PIPELINE] Run {session_id} cancelled",
                extra={"session_id": session_id, "phase": Phase.ERROR.value},
            )
            # The store write must finish even though this task is being cancelled
            await asyncio.shield(self._mark_failed(session_id, CANCELLED_REASON))
            if not emitter.closed:
                emitter.emit(Phase.ERROR, content=CANCELLED_REASON)
            raise
        except Exception as e:
            logger.error(
                f"[PIPELINE] Run {session_id} failed: {e}",
                extra={"session_id": session_id, "phase": Phase.ERROR.value},
            )
            await self._mark_failed(session_id, str(e))
            if not emitter.closed:
                emitter.emit(Phase.ERROR, content=str(e))
            return None

        logger.info(
            f"[PIPELINE] Run {session_id} complete in {summary.duration_seconds:.1f}s: "
            f"{summary.invest_count} INVEST, {summary.pass_count} PASS, "
            f"{summary.watch_count} WATCH",
            extra={"session_id": session_id, "phase": Phase.COMPLETE.value},
        )
        emitter.emit(Phase.COMPLETE, content=json.dumps(run.to_dict()))
        return run

    async def _mark_failed(self, session_id: str, reason: str) -> None:
        try:
            await self.store.mark_failed(session_id, reason)
        except Exception as e:
            logger.warning(f"[PIPELINE] Could not mark {session_id} failed: {e}")

    async def run(
        self,
        thesis: Thesis,
        session_id: Optional[str] = None,
        emitter: Optional[ProgressEmitter] = None,
    ) -> Optional[PipelineRun]:
        return await self.execute(thesis, session_id or str(uuid.uuid4()), emitter or ProgressEmitter())

    async def stream(
        self,
        thesis: Thesis,
        session_id: Optional[str] = None,
    ) -> AsyncIterator[PhaseEvent]:
        """
        Yield phase events as the run progresses.

        The run executes in a background task; if the consumer stops
        reading, the task is cancelled.
        """
        emitter = ProgressEmitter()
        task = asyncio.create_task(self.run(thesis, session_id, emitter))

        def _on_done(t: asyncio.Task) -> None:
            if not t.cancelled() and t.exception() is not None:
                logger.error(f"[PIPELINE] Run task crashed: {t.exception()}")
            emitter.close()

        task.add_done_callback(_on_done)
        try:
            async for event in emitter.stream():
                yield event
        finally:
            if not task.done():
                task.cancel()
                # Wait for the run to record the cancellation before returning
                await asyncio.wait([task])


def build_research_service(settings) -> Optional[ResearchService]:
    """Deep research when a Gemini key is present, with a chat model fallback."""
    key = settings.gemini_key
    if not key:
        logger.warning("[RESEARCH] No Gemini API key, research disabled")
        return None
    fallback = LangChainAgent(
        name="gemini-research",
        provider="google",
        system_prompt=prompts.RESEARCH_INSTRUCTIONS,
        model=settings.research_fallback_model,
        temperature=0.3,
        max_tokens=settings.max_output_tokens,
        api_key=key,
    )
    client = GeminiInteractionsClient(key) if settings.enable_deep_research else None
    return DeepResearchService(
        client=client,
        fallback=fallback,
        poll_interval=settings.research_poll_interval,
        max_wait=settings.research_max_wait,
    )
